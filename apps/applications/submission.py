"""Admit a candidate into a trial.

One call runs the whole sequence inside a single transaction:

    derive identity → trial preconditions → eligibility → duplicate and
    region guards → referral attribution → insert → counters

Anything that fails rolls back everything before it. Authenticated and
anonymous callers share this path; an authenticated caller simply adds the
account-level checks and ownership.
"""
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.translation import gettext as _

from apps.audit.helpers import record_event
from apps.trials.models import Trial
from trialhub.encryption import hash_identifier, normalise_identifier

from . import exceptions
from .eligibility import TrialConstraints, evaluate_eligibility
from .guards import run_guards
from .identity import derive_identity
from .models import PENDING, Application
from .referrals import attribute_referral

logger = logging.getLogger(__name__)

STRICT = "strict"


def get_open_trial(trial_id, now=None):
    """Return the trial if it is accepting submissions right now."""
    now = now or timezone.now()
    trial = Trial.objects.recruiting().filter(pk=trial_id).first()
    if trial is None:
        raise exceptions.NotFoundError(
            _("Trial does not exist or is not accepting applications."),
            code="trial_not_found",
        )
    if trial.registration_closed(now):
        raise exceptions.ValidationError(_("Registration for this trial has closed."), code="registration_closed")
    if trial.has_ended(now):
        raise exceptions.ValidationError(_("This trial has ended."), code="trial_ended")
    return trial


def check_eligibility(trial, national_id, height, weight, today=None):
    """Advisory check used by the pre-submission endpoint. Creates nothing."""
    identity = derive_identity(national_id, today=today)
    result = evaluate_eligibility(identity, height, weight, TrialConstraints.from_trial(trial))
    return identity, result


def _build_application(trial, data, identity, eligibility, user):
    application = Application(
        user=user if user is not None and user.is_authenticated else None,
        trial=trial,
        sex=identity.sex,
        birth_date=identity.birth_date,
        age=identity.age,
        height=float(data["height"]),
        weight=float(data["weight"]),
        bmi=eligibility.bmi,
        smoking_status=data.get("smoking_status") or "never",
        diseases=list(data.get("diseases") or []),
        medical_history=data.get("medical_history") or "",
        current_medications=data.get("current_medications") or "",
        allergies=data.get("allergies") or "",
        eligibility_violations=list(eligibility.violations),
        status=PENDING,
    )
    application.name = data["name"]
    application.phone = data["phone"]
    application.national_id = normalise_identifier(data["national_id"])
    return application


def _create(trial_id, data, user, now):
    identity = derive_identity(data["national_id"], today=timezone.localdate(now))
    id_hash = hash_identifier(data["national_id"])

    with transaction.atomic():
        trial = get_open_trial(trial_id, now)

        eligibility = evaluate_eligibility(
            identity, data["height"], data["weight"], TrialConstraints.from_trial(trial),
        )
        if eligibility.bmi is None:
            raise exceptions.ValidationError(_("Height and weight are required."))
        if not eligibility.eligible:
            if settings.ELIGIBILITY_ENFORCEMENT == STRICT:
                raise exceptions.ValidationError(
                    _("The applicant does not meet this trial's requirements."),
                    code="ineligible",
                    details=eligibility.violations,
                )
            logger.info(
                "Accepting ineligible applicant (advisory mode): trial=%s identity=%s violations=%s",
                trial.pk, id_hash[:12], eligibility.violations,
            )

        run_guards(trial, id_hash, user)

        application = _build_application(trial, data, identity, eligibility, user)
        agent = attribute_referral(application, trial, data.get("channel_code"))
        try:
            # Savepoint: a constraint violation must not poison the outer transaction
            # before it is converted into a ConflictError.
            with transaction.atomic():
                application.save()
        except IntegrityError:
            logger.info(
                "Concurrent duplicate caught by constraint: trial=%s identity=%s",
                trial.pk, id_hash[:12],
            )
            raise exceptions.ConflictError(
                _("This applicant has already applied to this trial."),
                code="duplicate_application",
            )

        trial.increment_subjects()
        if agent is not None:
            agent.record_referral()
    return application


def submit_application(trial_id, data, user=None, request=None, now=None):
    """Create a pending application for trial_id from validated form data.

    data keys: name, phone, national_id, height, weight, and optionally
    smoking_status, diseases, medical_history, current_medications,
    allergies, channel_code.

    Raises NotFoundError, ValidationError or ConflictError; every refusal is
    logged and audited.
    """
    now = now or timezone.now()
    try:
        application = _create(trial_id, data, user, now)
    except exceptions.ApplicationError as exc:
        logger.info("Application refused: trial=%s code=%s", trial_id, exc.code)
        record_event(
            "rejected", "application",
            actor=user, trial_id=int(trial_id),
            metadata={
                "code": exc.code,
                "identity": hash_identifier(data.get("national_id", ""))[:12],
            },
            request=request,
        )
        raise

    logger.info(
        "Application %s created: trial=%s identity=%s referrer=%s",
        application.pk, application.trial_id, application.identity_ref, application.referrer_id,
    )
    record_event(
        "create", "application",
        actor=user, resource_id=application.pk, trial_id=application.trial_id,
        new_values={
            "status": application.status,
            "referrer_id": application.referrer_id,
            "referral_fee_amount": str(application.referral_fee_amount),
        },
        metadata={"eligibility_violations": application.eligibility_violations},
        request=request,
    )
    return application
