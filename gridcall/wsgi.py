"""WSGI config for the GridCall project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'gridcall.settings')

application = get_wsgi_application()
