# backend/settings/prod.py
"""
PATH: backend/settings/prod.py

PRODUCTION SETTINGS

Fail-closed checks:
- SECRET_KEY / ALLOWED_HOSTS must be set
- Postgres only: journal numbering relies on SELECT ... FOR UPDATE,
  which SQLite silently ignores
- Ledger tunables must parse (a bad tolerance would let unbalanced
  entries through, or reject every entry)

The only web surface is the admin console, so the HTTP hardening below
is the cookie / header minimum.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F403
from .base import ACCOUNTING_BALANCE_TOLERANCE, ACCOUNTING_FISCAL_YEAR_START_MONTH, BASE_DIR, env

DEBUG = False

# ----------------------------
# SECRET KEY / HOSTS
# ----------------------------
_secret_key = (env("SECRET_KEY", default="") or "").strip()
if not _secret_key or _secret_key == "dev-insecure-change-me":
    raise ImproperlyConfigured("SECRET_KEY must be set to a strong value in production.")
SECRET_KEY = _secret_key

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=[])
if not ALLOWED_HOSTS:
    raise ImproperlyConfigured("ALLOWED_HOSTS must be set in production.")

# ----------------------------
# Database: POSTGRES ONLY
# ----------------------------
_database_url = (env("DATABASE_URL", default="") or "").strip()
if not _database_url:
    raise ImproperlyConfigured("DATABASE_URL must be set in production.")
if _database_url.startswith("sqlite"):
    raise ImproperlyConfigured("Refusing to run the ledger on SQLite in production.")

DATABASES = {"default": env.db("DATABASE_URL")}
DATABASES["default"]["CONN_MAX_AGE"] = env.int("DB_CONN_MAX_AGE", default=60)
DATABASES["default"]["ATOMIC_REQUESTS"] = False

# ----------------------------
# Ledger tunables
# ----------------------------
try:
    _tolerance = Decimal(ACCOUNTING_BALANCE_TOLERANCE)
except InvalidOperation as exc:
    raise ImproperlyConfigured(
        f"ACCOUNTING_BALANCE_TOLERANCE is not a decimal: {ACCOUNTING_BALANCE_TOLERANCE!r}"
    ) from exc
if not _tolerance.is_finite() or not (Decimal("0") < _tolerance <= Decimal("0.01")):
    raise ImproperlyConfigured("ACCOUNTING_BALANCE_TOLERANCE must be in (0, 0.01].")

if not 1 <= ACCOUNTING_FISCAL_YEAR_START_MONTH <= 12:
    raise ImproperlyConfigured("ACCOUNTING_FISCAL_YEAR_START_MONTH must be 1..12.")

# ----------------------------
# Admin console hardening
# ----------------------------
STATIC_ROOT = env("STATIC_ROOT", default=str(BASE_DIR / "staticfiles"))

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=3600)

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SAMESITE = "Lax"
CSRF_COOKIE_SAMESITE = "Lax"

SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = "same-origin"
X_FRAME_OPTIONS = "DENY"
CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS", default=[])
