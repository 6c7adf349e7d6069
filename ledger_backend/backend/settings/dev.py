# backend/settings/dev.py
"""
PATH: backend/settings/dev.py

LOCAL DEVELOPMENT SETTINGS
Safe + convenient defaults. Also used by the test suite.
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, env  # explicit for Ruff (F405)

DEBUG = True

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

# Engine logs at DEBUG locally unless LOG_LEVEL says otherwise.
LOGGING["loggers"]["accounting"]["level"] = env("LOG_LEVEL", default="DEBUG").upper()
