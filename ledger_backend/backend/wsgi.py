# backend/wsgi.py
"""
WSGI entrypoint (admin console only; the ledger core has no HTTP API).
Falls back to dev settings unless DJANGO_SETTINGS_MODULE is set externally;
production deployments must export DJANGO_SETTINGS_MODULE=backend.settings.prod.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_wsgi_application()
