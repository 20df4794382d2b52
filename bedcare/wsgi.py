"""
WSGI config for the bed management project.

It exposes the WSGI callable as a module-level variable named ``application``.
The realtime feed needs the ASGI entrypoint; plain WSGI serves HTTP only.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bedcare.settings')

application = get_wsgi_application()
