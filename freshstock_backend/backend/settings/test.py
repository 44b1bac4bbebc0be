# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS

- SQLite in-memory database (fast, isolated per run)
- Fast password hashing
- Engine tunables pinned so tests do not depend on a developer's .env
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import FRESHSTOCK as BASE_FRESHSTOCK
from .base import LOGGING

DEBUG = False

TIME_ZONE = "UTC"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

FRESHSTOCK = {
    **BASE_FRESHSTOCK,
    "AUDIT_EXPIRING_WITHIN_DAYS": 14,
    "AUDIT_STALE_AFTER_DAYS": 30,
    "AUDIT_LIMIT": 50,
    "MAX_ALLOCATION_QUANTITY": 1_000_000,
    "DISPOSAL_NOTE": "Expired stock bulk disposal",
}

LOGGING["loggers"]["products"]["level"] = "WARNING"
