"""Duplicate and region-exclusivity checks run before an application is created.

Must be called inside the submission transaction. lock_applicant() runs
first, so two submissions by the same person are checked one after the
other. The unique constraints on Application are the final word on
duplicates: these checks give a clear message in the common case, and the
constraint catches anything that slips through.
"""
import logging

from django.contrib.auth import get_user_model
from django.utils.translation import gettext as _

from . import exceptions
from .models import ApplicantLock, Application

logger = logging.getLogger(__name__)


def lock_applicant(national_id_hash, user=None):
    """Serialise submissions by this applicant until the transaction ends.

    Locks the caller's account row (authenticated path), then the lock row
    for the national id hash, creating it on first use. Always in that
    order, so two submissions sharing an account or an identity cannot
    deadlock.
    """
    if user is not None and user.is_authenticated:
        get_user_model().objects.select_for_update().filter(pk=user.pk).first()
    ApplicantLock.objects.get_or_create(national_id_hash=national_id_hash)
    return ApplicantLock.objects.select_for_update().get(national_id_hash=national_id_hash)


def check_duplicates(trial, national_id_hash, user=None):
    """Reject a second application for the same trial by the same person."""
    if Application.objects.filter(national_id_hash=national_id_hash, trial=trial).exists():
        logger.info(
            "Duplicate application refused: trial=%s identity=%s",
            trial.pk, national_id_hash[:12],
        )
        raise exceptions.ConflictError(
            _("This national id has already applied to this trial."),
            code="duplicate_application",
        )
    if user is not None and user.is_authenticated:
        if Application.objects.filter(user=user, trial=trial).exists():
            logger.info("Duplicate application refused: trial=%s user=%s", trial.pk, user.pk)
            raise exceptions.ConflictError(
                _("You have already applied to this trial."),
                code="duplicate_application",
            )


def find_region_lock(national_id_hash, user=None):
    """Return the application that fixes this applicant's city, or None.

    That is the earliest-submitted application, found by national id hash or
    account, whose status still holds the lock. The applicant's rows are
    locked for the rest of the transaction where the database supports it.
    """
    return (
        Application.objects.for_identity(national_id_hash, user)
        .holding_region()
        .select_related("trial")
        .select_for_update()
        .order_by("submitted_at", "id")
        .first()
    )


def check_region(trial, national_id_hash, user=None):
    """Reject a trial in a different city from the applicant's active one."""
    existing = find_region_lock(national_id_hash, user)
    if existing is None:
        return
    existing_city = existing.trial.city
    if existing_city and trial.city and existing_city != trial.city:
        logger.info(
            "Region conflict: trial=%s city=%s held_by=%s city=%s identity=%s",
            trial.pk, trial.city, existing.pk, existing_city, national_id_hash[:12],
        )
        raise exceptions.ConflictError(
            _("You already have an application in %(city)s and cannot apply "
              "to trials in another city at the same time.") % {"city": existing_city},
            code="region_conflict",
            details={"existing_city": existing_city},
        )


def run_guards(trial, national_id_hash, user=None):
    lock_applicant(national_id_hash, user)
    check_duplicates(trial, national_id_hash, user)
    check_region(trial, national_id_hash, user)
