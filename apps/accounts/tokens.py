"""Signed identity assertions for API callers.

A token is the user's primary key signed with a timestamp. It expires after
ACCESS_TOKEN_MAX_AGE seconds and carries no other claims; the user row is
re-read on every request so deactivation takes effect immediately.
"""
import logging

from django.conf import settings
from django.core import signing

logger = logging.getLogger(__name__)

TOKEN_SALT = "trialhub.accounts.access-token"


class InvalidToken(Exception):
    """Raised when a token is malformed, tampered with, or expired."""


def issue_access_token(user):
    signer = signing.TimestampSigner(salt=TOKEN_SALT)
    return signer.sign(str(user.pk))


def verify_access_token(token, max_age=None):
    """Return the user id asserted by token, or raise InvalidToken."""
    if max_age is None:
        max_age = settings.ACCESS_TOKEN_MAX_AGE
    signer = signing.TimestampSigner(salt=TOKEN_SALT)
    try:
        value = signer.unsign(token, max_age=max_age)
    except signing.SignatureExpired as exc:
        raise InvalidToken("Token has expired.") from exc
    except signing.BadSignature as exc:
        raise InvalidToken("Token signature is invalid.") from exc
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidToken("Token payload is invalid.") from exc
