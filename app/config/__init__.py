# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, ASGI/WSGI applications and the Celery app for the chat
# service.
#
# Import Celery app to ensure it's loaded when Django starts, so
# shared_task decorators bind to it and beat can find chat.tasks.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
