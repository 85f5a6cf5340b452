from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import dj_database_url
from corsheaders.defaults import default_headers, default_methods
from dotenv import load_dotenv

from apps.core.bootstrap_log import BootstrapLog

BASE_DIR = Path(__file__).resolve().parent.parent.parent


"""
GOAL: Read an environment variable with optional default.

PARAMETERS:
  name: str - Environment variable name - Must be non-empty
  default: str | None - Fallback value - Optional

RETURNS:
  str | None - Environment value or default - Never raises on missing var

RAISES:
  None

GUARANTEES:
  - Does not strip or coerce the value
"""
def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _env_bool(name: str, default: str = "False") -> bool:
    return (_env(name, default) or "").lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in (_env(name, default) or "").split(",") if item.strip()]


load_dotenv(BASE_DIR / ".env")


APP_NAME = _env("APP_NAME", "Frontdesk") or "Frontdesk"

# Application assembly (routes, API middleware, exception callbacks)
APPLICATION = "config.app.application"

SECRET_KEY = _env("SECRET_KEY", "dev-secret-key-change-me")

ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "corsheaders",
    "apps.core.apps.CoreConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "apps.core.middleware.ApiMiddlewareGroup",
    "apps.core.csrf_protection.PathExemptCsrfViewMiddleware",
    "apps.core.middleware.JsonExceptionMiddleware",
]

ROOT_URLCONF = "config.urls"

WSGI_APPLICATION = "config.wsgi.application"

CSRF_FAILURE_VIEW = "apps.core.error_views.csrf_failure"

SQLITE_DATABASE_PATH = BASE_DIR / "db.sqlite3"

DATABASES: dict[str, Any] = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": SQLITE_DATABASE_PATH,
        "CONN_MAX_AGE": 600,
    }
}

DATABASE_URL = (_env("DATABASE_URL", "") or "").strip()
if DATABASE_URL:
    DATABASES["default"] = dj_database_url.parse(DATABASE_URL, conn_max_age=600)

# Reject API requests unless the default database is reachable and of an allowed vendor
REQUIRE_DATABASE_CONNECTION = _env_bool("REQUIRE_DATABASE_CONNECTION")
DATABASE_ALLOWED_VENDORS = _env_list("DATABASE_ALLOWED_VENDORS", "mysql")

LOG_DATABASE_CONNECTION_INFO = _env_bool("LOG_DATABASE_CONNECTION_INFO", "True")

AUTH_PASSWORD_VALIDATORS: list[dict[str, str]] = []

LANGUAGE_CODE = "en-us"
TIME_ZONE = _env("TIME_ZONE", "UTC") or "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REDIS_URL = _env("REDIS_URL", "") or ""
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
        }
    }
else:
    CACHES = {"default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}}

# CORS for API routes (django-cors-headers)
CORS_URLS_REGEX = r"^/api(/.*)?$"
CORS_ALLOW_ALL_ORIGINS = _env_bool("CORS_ALLOW_ALL_ORIGINS")
CORS_ALLOWED_ORIGINS = _env_list(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173,http://localhost:8000",
)
CORS_ALLOWED_ORIGIN_REGEXES = _env_list("CORS_ALLOWED_ORIGIN_REGEXES")
CORS_ALLOW_METHODS = _env_list("CORS_ALLOW_METHODS") or list(default_methods)
CORS_ALLOW_HEADERS = _env_list("CORS_ALLOW_HEADERS") or list(default_headers)
CORS_EXPOSE_HEADERS = _env_list("CORS_EXPOSE_HEADERS")
CORS_PREFLIGHT_MAX_AGE = int(_env("CORS_PREFLIGHT_MAX_AGE", "0") or "0")
CORS_ALLOW_CREDENTIALS = _env_bool("CORS_ALLOW_CREDENTIALS")

REQUEST_LOG_REDACTED_FIELDS = _env_list("REQUEST_LOG_REDACTED_FIELDS", "password,password_confirmation,token")

# Sentry monitoring settings
SENTRY_DSN = _env("SENTRY_DSN", "") or ""
SENTRY_ENVIRONMENT = _env("SENTRY_ENVIRONMENT", _env("DJANGO_ENV", "development")) or "development"
SENTRY_TRACES_SAMPLE_RATE = float(_env("SENTRY_TRACES_SAMPLE_RATE", "0.0") or "0.0")
SENTRY_RELEASE = _env("SENTRY_RELEASE")

# Initialize Sentry if DSN is provided
if SENTRY_DSN:
    from apps.core.monitoring import init_sentry

    init_sentry(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        release=SENTRY_RELEASE,
    )

LOG_DIR = BASE_DIR / "logs"

# Shared with the fallback bootstrap log written before Django is configured
APP_LOG_FILE = BootstrapLog.default_path(BASE_DIR)

# Django REST Framework settings
REST_FRAMEWORK: dict[str, Any] = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.FormParser",
        "rest_framework.parsers.MultiPartParser",
    ],
    "EXCEPTION_HANDLER": "apps.core.exceptions.api_exception_handler",
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
}


"""
GOAL: Build the LOGGING dictConfig shared by all environments.

PARAMETERS:
  level: str - Level for application loggers - Valid logging level name
  django_level: str - Level for the "django" logger - Valid logging level name
  sql_level: str - Level for "django.db.backends" (DEBUG logs every query) - Valid logging level name
  log_file: Path | None - Log file shared with the bootstrap log - Defaults to APP_LOG_FILE

RETURNS:
  dict[str, Any] - logging.config.dictConfig compatible configuration

RAISES:
  None

GUARANTEES:
  - Records go to the console and to APP_LOG_FILE
  - extra={"context": {...}} is appended to each line as JSON
  - The log directory is created if missing; the file is opened on first write
  - A log directory that cannot be created drops the file handler instead of raising
"""
def build_logging(
    level: str,
    django_level: str = "INFO",
    sql_level: str = "WARNING",
    log_file: Path | None = None,
) -> dict[str, Any]:
    log_file = Path(log_file or APP_LOG_FILE)
    handlers = ["console", "app_file"]
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Console only; the bootstrap log still reports its own write failures.
        handlers = ["console"]

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "context": {
                "()": "apps.core.log_formatting.ContextFormatter",
                "format": "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "context",
            },
            "app_file": {
                "class": "logging.FileHandler",
                "filename": str(log_file),
                "formatter": "context",
                "encoding": "utf-8",
                "delay": True,
            },
        },
        "loggers": {
            "django": {
                "handlers": handlers,
                "level": django_level,
            },
            "django.db.backends": {
                "handlers": ["console"],
                "level": sql_level,
                "propagate": False,
            },
            "apps": {
                "handlers": handlers,
                "level": level,
            },
            "config": {
                "handlers": handlers,
                "level": level,
            },
            "routes": {
                "handlers": handlers,
                "level": level,
            },
        },
    }
