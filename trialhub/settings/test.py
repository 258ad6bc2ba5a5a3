"""Test settings: SQLite for fast tests without PostgreSQL.

Local dev: uses in-memory SQLite by default (fast, no cleanup needed).
CI: set DATABASE_URL and AUDIT_DATABASE_URL env vars to file-based SQLite
    (e.g. sqlite:///ci-test.db) so TransactionTestCase flushes work across
    process boundaries.
"""
import os

import dj_database_url

# Provide test defaults BEFORE importing base (which calls require_env).
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://:memory:")
os.environ.setdefault("AUDIT_DATABASE_URL", "sqlite://:memory:")
# Test-only keys: never use in development or production
os.environ.setdefault("FIELD_ENCRYPTION_KEY", "TUVSTlZ6a09VRWlMU0FzZjhOWlNhTFZfVFIxaURFbXM=")
os.environ.setdefault("IDENTIFIER_HASH_KEY", "test-identifier-hash-key")

from .base import *  # noqa: F401, F403

DEBUG = True
ALLOWED_HOSTS = ["*"]

DATABASES = {
    "default": dj_database_url.parse(
        os.environ["DATABASE_URL"],
        conn_max_age=0,
    ),
    "audit": dj_database_url.parse(
        os.environ["AUDIT_DATABASE_URL"],
        conn_max_age=0,
    ),
}

# Use fast password hasher for tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Disable rate limiting in tests (prevents 429s from cumulative POST counts)
RATELIMIT_ENABLE = False

LOGGING["loggers"]["apps"]["level"] = "WARNING"  # noqa: F405
