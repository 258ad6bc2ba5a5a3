"""Role-based access decorators for JSON views."""
from functools import wraps

from django.http import JsonResponse

# Higher number = more access
ROLE_RANK = {"user": 1, "agent": 2, "admin": 3}


def _error(status, code, message):
    return JsonResponse({"success": False, "code": code, "message": message}, status=status)


def api_login_required(view_func):
    """Decorator: 401 unless the request carries a valid identity."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _error(401, "unauthenticated", "Authentication required.")
        return view_func(request, *args, **kwargs)
    return wrapper


def minimum_role(min_role):
    """Decorator: require at least this account role to access the view.

    Returns 401 for anonymous callers and 403 when the role is too low.
    """
    min_rank = ROLE_RANK.get(min_role, 0)

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return _error(401, "unauthenticated", "Authentication required.")
            if ROLE_RANK.get(request.user.role, 0) < min_rank:
                return _error(
                    403, "forbidden",
                    "Access denied. You do not have the required role for this action.",
                )
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator


admin_required = minimum_role("admin")
