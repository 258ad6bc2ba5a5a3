"""Lifecycle operations on existing applications.

Every mutation re-reads the row with select_for_update() inside a
transaction, so two operators acting on the same application serialise
instead of overwriting each other.
"""
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.translation import gettext as _

from apps.audit.helpers import record_event

from . import exceptions
from .models import (
    ALLOWED_TRANSITIONS,
    ENROLLED,
    MAIN_LINE,
    SIDE_EXITS,
    WITHDRAWN,
    Application,
    is_transition_allowed,
)

logger = logging.getLogger(__name__)

VALID_STATUSES = frozenset(MAIN_LINE) | frozenset(SIDE_EXITS)
DEFAULT_WITHDRAW_NOTE = "Withdrawn by applicant"


# ── Lookup and access ───────────────────────────────────────────────

def get_application(pk):
    try:
        return Application.objects.select_related("trial", "referrer", "reviewed_by", "user").get(pk=pk)
    except Application.DoesNotExist:
        raise exceptions.NotFoundError(_("Application not found."), code="application_not_found")


def can_view(application, user):
    """Owner, referrer, or admin."""
    if user is None or not user.is_authenticated:
        return False
    return (
        user.is_admin
        or application.user_id == user.pk
        or application.referrer_id == user.pk
    )


def _record_denial(application, actor, operation, request=None):
    record_event(
        "access_denied", "application",
        actor=actor, resource_id=application.pk, trial_id=application.trial_id,
        metadata={"operation": operation}, request=request,
    )


def get_viewable_application(pk, user, request=None):
    application = get_application(pk)
    if not can_view(application, user):
        logger.warning("Application %s view denied for user %s", pk, user.pk)
        _record_denial(application, user, "view", request)
        raise exceptions.AuthorizationError(_("You do not have access to this application."))
    return application


def _lock(pk):
    try:
        return Application.objects.select_for_update().select_related("trial").get(pk=pk)
    except Application.DoesNotExist:
        raise exceptions.NotFoundError(_("Application not found."), code="application_not_found")


# ── Applicant actions ───────────────────────────────────────────────

def withdraw(application_id, actor, reason="", request=None):
    """Applicant-initiated withdrawal from pending, reviewing or approved."""
    with transaction.atomic():
        application = _lock(application_id)
        if application.user_id is None or application.user_id != actor.pk:
            logger.warning(
                "Withdraw denied: application=%s actor=%s owner=%s",
                application.pk, actor.pk, application.user_id,
            )
            _record_denial(application, actor, "withdraw", request)
            raise exceptions.AuthorizationError(_("You can only withdraw your own application."))
        if not application.can_withdraw:
            logger.info(
                "Withdraw refused: application=%s status=%s identity=%s",
                application.pk, application.status, application.identity_ref,
            )
            raise exceptions.StateError(
                _("An application in status '%(status)s' can no longer be withdrawn.")
                % {"status": application.status},
                code="invalid_state",
            )
        old_status = application.status
        application.status = WITHDRAWN
        application.notes = reason or DEFAULT_WITHDRAW_NOTE
        application.reviewed_at = timezone.now()
        application.save(update_fields=["status", "notes", "reviewed_at", "updated_at"])

    logger.info("Application %s withdrawn by owner (was %s)", application.pk, old_status)
    record_event(
        "withdraw", "application",
        actor=actor, resource_id=application.pk, trial_id=application.trial_id,
        old_values={"status": old_status}, new_values={"status": WITHDRAWN},
        metadata={"reason": application.notes}, request=request,
    )
    return application


# ── Operator actions ────────────────────────────────────────────────

def _check_transition(application, requested):
    if requested not in VALID_STATUSES:
        raise exceptions.ValidationError(
            _("Unknown status '%(status)s'.") % {"status": requested},
        )
    if not settings.ENFORCE_STATUS_TRANSITIONS:
        return
    if not is_transition_allowed(application.status, requested):
        logger.warning(
            "Illegal transition refused: application=%s %s -> %s",
            application.pk, application.status, requested,
        )
        raise exceptions.StateError(
            _("Cannot move an application from '%(current)s' to '%(requested)s'.")
            % {"current": application.status, "requested": requested},
            code="invalid_transition",
            details={
                "current": application.status,
                "requested": requested,
                "allowed": sorted(ALLOWED_TRANSITIONS.get(application.status, ())),
            },
        )


PROGRESS_FIELDS = (
    "review_notes",
    "medical_check_date",
    "medical_check_status",
    "medical_check_notes",
    "enrollment_date",
    "enrollment_status",
)


def _apply_review(application, actor, status=None, points_awarded=None, **progress):
    """Mutate a locked application in memory. Returns (old_values, new_values)."""
    old_values, new_values = {}, {}
    now = timezone.now()

    if status:
        _check_transition(application, status)
        old_values["status"] = application.status
        new_values["status"] = status
        application.status = status

    for field_name in PROGRESS_FIELDS:
        value = progress.get(field_name)
        if value in (None, ""):
            continue
        old_values[field_name] = str(getattr(application, field_name) or "")
        new_values[field_name] = str(value)
        setattr(application, field_name, value)

    if points_awarded is not None:
        old_values["points_awarded"] = application.points_awarded
        new_values["points_awarded"] = points_awarded
        application.points_awarded = points_awarded
        if points_awarded > 0:
            application.points_awarded_at = now

    application.reviewed_at = now
    application.reviewed_by = actor
    application.save()

    if (
        status == ENROLLED
        and settings.REFERRAL_FEE_PAID_ON_ENROLMENT
        and application.referrer_id
        and application.referral_fee_amount > 0
        and not application.referral_fee_paid
    ):
        _pay_referral_fee(application, now)
        new_values["referral_fee_paid"] = True

    return old_values, new_values


def review(application_id, actor, status=None, points_awarded=None, request=None, **progress):
    """Operator update: optional status change plus review and progress fields.

    Records the reviewer and review time on every call. Status changes must
    follow ALLOWED_TRANSITIONS unless ENFORCE_STATUS_TRANSITIONS is off.
    """
    unknown = set(progress) - set(PROGRESS_FIELDS)
    if unknown:
        raise TypeError(f"Unexpected review fields: {sorted(unknown)}")
    with transaction.atomic():
        application = _lock(application_id)
        old_values, new_values = _apply_review(
            application, actor, status=status, points_awarded=points_awarded, **progress,
        )

    logger.info(
        "Application %s reviewed by %s: %s", application.pk, actor.pk, new_values,
    )
    record_event(
        "transition" if status else "review", "application",
        actor=actor, resource_id=application.pk, trial_id=application.trial_id,
        old_values=old_values, new_values=new_values, request=request,
    )
    return application


def transition(application_id, actor, status, request=None):
    """Move an application along one edge of the state machine."""
    return review(application_id, actor, status=status, request=request)


def batch_review(application_ids, actor, status, review_notes="", request=None):
    """Apply one status change to many applications, all or nothing.

    One illegal edge rolls the whole batch back.
    """
    ids = sorted({int(pk) for pk in application_ids})
    if not ids:
        raise exceptions.ValidationError(_("Select at least one application."))
    changed = []
    with transaction.atomic():
        for pk in ids:
            application = _lock(pk)
            old_values, new_values = _apply_review(
                application, actor, status=status, review_notes=review_notes,
            )
            changed.append((application, old_values, new_values))

    for application, old_values, new_values in changed:
        record_event(
            "transition", "application",
            actor=actor, resource_id=application.pk, trial_id=application.trial_id,
            old_values=old_values, new_values=new_values,
            metadata={"batch_size": len(ids)}, request=request,
        )
    logger.info("Batch moved %d applications to %s by %s", len(ids), status, actor.pk)
    return [application for application, _old, _new in changed]


def _pay_referral_fee(application, now):
    application.referral_fee_paid = True
    application.referral_fee_paid_at = now
    application.save(update_fields=["referral_fee_paid", "referral_fee_paid_at", "updated_at"])
    application.referrer.add_earnings(application.referral_fee_amount)


def mark_referral_fee_paid(application_id, actor, request=None):
    """Record that the referrer has been paid for this application.

    Idempotent: a second call changes nothing and credits nothing. The
    amount credited is the snapshot taken at submission.
    """
    with transaction.atomic():
        application = _lock(application_id)
        if application.referrer_id is None:
            raise exceptions.StateError(
                _("This application has no referrer to pay."), code="invalid_state",
            )
        if application.referral_fee_paid:
            return application
        _pay_referral_fee(application, timezone.now())

    logger.info(
        "Referral fee %s paid to %s for application %s",
        application.referral_fee_amount, application.referrer_id, application.pk,
    )
    record_event(
        "fee_paid", "application",
        actor=actor, resource_id=application.pk, trial_id=application.trial_id,
        new_values={
            "referral_fee_paid": True,
            "referral_fee_amount": str(application.referral_fee_amount),
            "referrer_id": application.referrer_id,
        },
        request=request,
    )
    return application


# ── Presentation helpers ────────────────────────────────────────────

def status_progress(status):
    """Main-line steps with completion flags, for the applicant's progress bar."""
    steps = [
        {"key": key, "label": str(label), "completed": False}
        for key, label in Application.STATUS_CHOICES
        if key in MAIN_LINE
    ]
    steps.sort(key=lambda step: MAIN_LINE.index(step["key"]))
    if status in SIDE_EXITS:
        return {"steps": steps, "current_step": status, "is_completed": False, "is_failed": True}
    current_index = MAIN_LINE.index(status) if status in MAIN_LINE else -1
    for index, step in enumerate(steps):
        step["completed"] = index <= current_index
    return {
        "steps": steps,
        "current_step": status,
        "is_completed": status == MAIN_LINE[-1],
        "is_failed": False,
    }
