"""
WSGI config for the Django application.

The service runs under ASGI (see asgi.py) because WebSockets need it.
WSGI remains available for HTTP-only deployments and management tooling;
WebSocket routes are not served through it.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
