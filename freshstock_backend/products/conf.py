# products/conf.py

"""
App tunables.

Values come from settings.FRESHSTOCK; anything missing there falls back to
DEFAULTS so the services never depend on a fully populated settings dict.
"""

from django.conf import settings

DEFAULTS = {
    "AUDIT_EXPIRING_WITHIN_DAYS": 14,
    "AUDIT_STALE_AFTER_DAYS": 30,
    "AUDIT_LIMIT": 50,
    "MAX_ALLOCATION_QUANTITY": 1_000_000,
    "DISPOSAL_NOTE": "Expired stock bulk disposal",
}


def inventory_setting(key: str):
    if key not in DEFAULTS:
        raise KeyError(f"Unknown FRESHSTOCK setting: {key}")
    overrides = getattr(settings, "FRESHSTOCK", None) or {}
    return overrides.get(key, DEFAULTS[key])
