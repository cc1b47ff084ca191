"""
Authentication application.

Local mirror of identities owned by the external identity provider.
Users are never registered here; they are upserted from verified token
claims (``sync``) and then referenced by every chat record.

Key components:
    - User model: external_id-keyed user with presence and block list
    - UserService: sync, directory listing, blocking, presence heartbeat
    - Bearer tokens: simplejwt, with the ``sub`` claim mapped to external_id

Usage:
    from authentication.models import User
    from authentication.services import UserService
"""
