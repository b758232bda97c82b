"""
WSGI config for the backend payload service.

Served by gunicorn on port 3000 inside the container.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.production")

application = get_wsgi_application()
