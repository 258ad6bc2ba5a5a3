"""JSON error handlers so API callers never receive an HTML error page."""
import logging

from django.http import JsonResponse

logger = logging.getLogger(__name__)

# Exception messages longer than this are not shown to callers.
_SAFE_MESSAGE_MAX_LENGTH = 500


def permission_denied_view(request, exception):
    """403 handler. Also reached when django-ratelimit blocks a request."""
    message = str(exception) if exception else ""
    if not message or len(message) > _SAFE_MESSAGE_MAX_LENGTH:
        message = "Access denied."
    return JsonResponse({"success": False, "code": "forbidden", "message": message}, status=403)


def not_found_view(request, exception):
    return JsonResponse({"success": False, "code": "not_found", "message": "Not found."}, status=404)


def server_error_view(request):
    logger.error("Unhandled server error on %s %s", request.method, request.path)
    return JsonResponse({"success": False, "code": "server_error", "message": "Server error."}, status=500)
