# backend/urls.py
"""
PROJECT URLS

The ledger core has no HTTP API. The only mounted surface is the Django
admin, used as a read-only operator console over companies, accounts,
journal entries and posting rules.

Security hardening:
- Admin path is configurable via env var (ADMIN_PATH)
  to reduce bot scanning/noise.
"""

from __future__ import annotations

import os

from django.contrib import admin
from django.urls import path

ADMIN_PATH = (os.environ.get("ADMIN_PATH") or "admin/").strip().lstrip("/")
if not ADMIN_PATH.endswith("/"):
    ADMIN_PATH += "/"

urlpatterns = [
    path(ADMIN_PATH, admin.site.urls),
]
