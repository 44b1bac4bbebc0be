# backend/urls.py
"""
PROJECT URLS

The inventory engines are consumed as library calls; the only HTTP surface
is the (read-only) Django admin for operators.

Security hardening:
- Make Django admin path configurable via ADMIN_PATH setting
  to reduce bot scanning/noise and narrow attack surface.
"""

from __future__ import annotations

from django.conf import settings
from django.contrib import admin
from django.urls import path

# Default is /admin/. In production, set ADMIN_PATH to something non-obvious.
# Keep trailing slash.
ADMIN_PATH = getattr(settings, "ADMIN_PATH", "admin/")
if not ADMIN_PATH.endswith("/"):
    ADMIN_PATH = f"{ADMIN_PATH}/"

urlpatterns = [
    path(ADMIN_PATH, admin.site.urls),
]
