"""Write audit rows without letting audit failures mask business results."""
import logging

from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)


def _client_ip(request):
    if request is None:
        return None
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR") or None


def record_event(action, resource_type, *, actor=None, resource_id=None, trial_id=None,
                 old_values=None, new_values=None, metadata=None, request=None):
    """Append one audit row. Returns the row, or None if the write failed."""
    authenticated = actor is not None and getattr(actor, "is_authenticated", False)
    try:
        return AuditLog.objects.using("audit").create(
            event_timestamp=timezone.now(),
            user_id=actor.pk if authenticated else None,
            user_display=actor.get_display_name() if authenticated else "[anonymous]",
            ip_address=_client_ip(request),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            trial_id=trial_id,
            old_values=old_values,
            new_values=new_values,
            metadata=metadata,
        )
    except Exception:
        logger.exception(
            "Failed to write audit row: action=%s resource=%s id=%s",
            action, resource_type, resource_id,
        )
        return None
