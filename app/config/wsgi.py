"""
WSGI config for the chunked upload backend.

This file exposes the WSGI callable as a module-level variable named
`application`. Each request runs on its own worker thread or process, so
a request that assembles a large upload never blocks other sessions.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
