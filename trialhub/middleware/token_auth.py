"""Attach the user named by a bearer token to the request."""
import logging

from django.contrib.auth import get_user_model

from apps.accounts.tokens import InvalidToken, verify_access_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class BearerTokenMiddleware:
    """
    Resolve `Authorization: Bearer <token>` to request.user.

    A missing, invalid or expired token leaves request.user as whatever the
    session middleware set (normally AnonymousUser). Endpoints that require
    an identity enforce it themselves, so public endpoints keep working for
    callers holding a stale token.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        header = request.META.get("HTTP_AUTHORIZATION", "")
        if header.startswith(BEARER_PREFIX):
            user = self._resolve(header[len(BEARER_PREFIX):].strip())
            if user is not None:
                request.user = user
        return self.get_response(request)

    def _resolve(self, token):
        try:
            user_id = verify_access_token(token)
        except InvalidToken as exc:
            logger.info("Ignoring bearer token: %s", exc)
            return None
        User = get_user_model()
        user = User.objects.filter(pk=user_id, is_active=True).first()
        if user is None:
            logger.info("Bearer token names unknown or inactive user %s", user_id)
        return user
