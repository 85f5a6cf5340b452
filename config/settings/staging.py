from __future__ import annotations

from .base import *
from .base import _env_bool

"""
GOAL: Configure staging environment settings mirroring production with more logging.

PARAMETERS:
  None

RETURNS:
  None - Module-level configuration

RAISES:
  None

GUARANTEES:
  - DEBUG mode is disabled
  - Secure cookies and HTTPS redirects enabled
  - INFO level logging for application code
"""

DEBUG = False

if not ALLOWED_HOSTS:
    ALLOWED_HOSTS = ["staging.localhost"]

SECURE_SSL_REDIRECT = _env_bool("SECURE_SSL_REDIRECT", "True")
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

LOGGING = build_logging(level="INFO", django_level="INFO")
