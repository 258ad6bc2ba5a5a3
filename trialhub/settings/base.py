"""Base settings shared by every environment.

Environment-specific modules (development, test) set their defaults in
os.environ and then star-import this module.
"""
import os
from pathlib import Path

import dj_database_url
from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent.parent


def require_env(name):
    """Return an environment variable or fail loudly at startup."""
    value = os.environ.get(name)
    if not value:
        raise ImproperlyConfigured(f"Required environment variable {name} is not set.")
    return value


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = require_env("SECRET_KEY")
DEBUG = env_bool("DEBUG", False)
ALLOWED_HOSTS = [h.strip() for h in os.environ.get("ALLOWED_HOSTS", "").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.admin",
    "apps.accounts",
    "apps.trials",
    "apps.applications",
    "apps.audit",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "trialhub.middleware.token_auth.BearerTokenMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "trialhub.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# Two databases: application data, and the append-only audit log.
DATABASES = {
    "default": dj_database_url.parse(require_env("DATABASE_URL"), conn_max_age=600),
    "audit": dj_database_url.parse(require_env("AUDIT_DATABASE_URL"), conn_max_age=600),
}
DATABASE_ROUTERS = ["trialhub.db_router.AuditRouter"]
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_USER_MODEL = "accounts.User"

LANGUAGE_CODE = "zh-hans"
TIME_ZONE = os.environ.get("TIME_ZONE", "Asia/Shanghai")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"

# PII encryption (see trialhub/encryption.py)
FIELD_ENCRYPTION_KEY = require_env("FIELD_ENCRYPTION_KEY")
IDENTIFIER_HASH_KEY = require_env("IDENTIFIER_HASH_KEY")

# Signed identity assertions for API callers
ACCESS_TOKEN_MAX_AGE = int(os.environ.get("ACCESS_TOKEN_MAX_AGE", 60 * 60 * 24 * 30))

# Application lifecycle behaviour
# "advisory": violations are recorded on the application but never block.
# "strict": violations reject the submission.
ELIGIBILITY_ENFORCEMENT = os.environ.get("ELIGIBILITY_ENFORCEMENT", "advisory")
# Applications in these statuses do not hold the applicant's city lock.
REGION_RELEASING_STATUSES = ("rejected", "withdrawn", "failed", "completed")
ENFORCE_STATUS_TRANSITIONS = env_bool("ENFORCE_STATUS_TRANSITIONS", True)
REFERRAL_FEE_PAID_ON_ENROLMENT = env_bool("REFERRAL_FEE_PAID_ON_ENROLMENT", False)
APPLICATION_PAGE_SIZE = 10
APPLICATION_MAX_PAGE_SIZE = 100

# Rate limiting (django-ratelimit)
RATELIMIT_ENABLE = env_bool("RATELIMIT_ENABLE", True)
RATELIMIT_USE_CACHE = "default"
PUBLIC_SUBMISSION_RATE = os.environ.get("PUBLIC_SUBMISSION_RATE", "10/h")
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    },
}
# LocMemCache is per-process; acceptable for single-worker deployments.
SILENCED_SYSTEM_CHECKS = ["django_ratelimit.E003", "django_ratelimit.W001"]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "apps": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "trialhub": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
