"""
Chat app for real-time messaging.

This app handles:
- Conversations (direct and group)
- Message sending, history and search
- WebSocket real-time updates
- Read markers and typing indicators

Related apps:
    - authentication: User model, block lists and presence

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ConversationService, MessageService

    # Start a direct conversation
    result = ConversationService.get_or_create_direct(user=me, other_user_id="user_9xyz")
    conversation, created = result.data

    # Send message
    result = MessageService.send(
        user=me,
        conversation_id=conversation.id,
        content="Hello!",
    )
"""
