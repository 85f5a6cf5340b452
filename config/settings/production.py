from __future__ import annotations

from .base import *
from .base import _env, _env_bool

"""
GOAL: Configure production environment settings with maximum security.

PARAMETERS:
  None

RETURNS:
  None - Module-level configuration

RAISES:
  None

GUARANTEES:
  - DEBUG mode is disabled
  - Maximum security settings enabled
  - Minimal logging level
"""

# Debug mode
DEBUG = False

# Production hosts (should be configured via ALLOWED_HOSTS env var)
if not ALLOWED_HOSTS:
    ALLOWED_HOSTS = ["localhost"]

# Security settings
SECURE_SSL_REDIRECT = _env_bool("SECURE_SSL_REDIRECT", "True")
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_HSTS_SECONDS = int(_env("SECURE_HSTS_SECONDS", "31536000") or "31536000")
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_CONTENT_TYPE_NOSNIFF = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

# Production logging configuration
LOGGING = build_logging(level="INFO", django_level="WARNING")
