"""JSON endpoints for applicants, referral agents and operators."""
import json
import logging
from functools import wraps

from django.conf import settings
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST
from django_ratelimit.decorators import ratelimit

from apps.accounts.decorators import admin_required, api_login_required

from . import commission, exceptions, ledger, submission
from .forms import (
    ApplicationListForm,
    ApplicationSubmissionForm,
    BatchReviewForm,
    EligibilityCheckForm,
    ReviewForm,
    WithdrawForm,
)
from .models import Application
from .serializers import serialize_application, serialize_for_owner

logger = logging.getLogger(__name__)


def _ok(data, status=200):
    return JsonResponse({"success": True, "data": data}, status=status)


def _json_body(request):
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except (TypeError, ValueError):
        raise exceptions.ValidationError("Request body is not valid JSON.")
    if not isinstance(body, dict):
        raise exceptions.ValidationError("Request body must be a JSON object.")
    return body


def _validated(form):
    if not form.is_valid():
        raise exceptions.ValidationError(
            "Invalid input.", details=form.errors.get_json_data(),
        )
    return form.cleaned_data


def handles_application_errors(view_func):
    """Turn ApplicationError into a structured JSON failure."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except exceptions.ApplicationError as exc:
            logger.info(
                "%s %s refused: %s (%s)", request.method, request.path, exc.code, exc.message,
            )
            return JsonResponse(exc.as_dict(), status=exc.status_code)
    return wrapper


def _paginate(queryset, filters):
    limit = min(
        filters.get("limit") or settings.APPLICATION_PAGE_SIZE,
        settings.APPLICATION_MAX_PAGE_SIZE,
    )
    paginator = Paginator(queryset, limit)
    page = paginator.get_page(filters.get("page") or 1)
    return page, {
        "total": paginator.count,
        "page": page.number,
        "limit": limit,
        "total_pages": paginator.num_pages,
    }


def _list_filters(request):
    filters = _validated(ApplicationListForm(request.GET))
    queryset = Application.objects.select_related("trial", "referrer", "user")
    if filters.get("status"):
        queryset = queryset.filter(status=filters["status"])
    if filters.get("trial"):
        queryset = queryset.filter(trial_id=filters["trial"])
    return queryset, filters


def _submission_rate(group, request):
    return settings.PUBLIC_SUBMISSION_RATE


# ── Applicant endpoints ─────────────────────────────────────────────

@require_POST
@ratelimit(key="ip", rate=_submission_rate, method="POST", block=True)
@handles_application_errors
def submit_application_view(request, trial_id):
    """Submit to a trial. Signing in is optional."""
    data = _validated(ApplicationSubmissionForm(_json_body(request)))
    application = submission.submit_application(
        trial_id, data, user=request.user, request=request,
    )
    return _ok({"application": serialize_application(application)}, status=201)


@require_POST
@handles_application_errors
def eligibility_check_view(request, trial_id):
    """Advisory pre-submission check against a trial's envelope."""
    data = _validated(EligibilityCheckForm(_json_body(request)))
    trial = submission.get_open_trial(trial_id)
    identity, result = submission.check_eligibility(
        trial, data["national_id"], data["height"], data["weight"],
    )
    payload = result.as_dict()
    payload.update({"age": identity.age, "sex": identity.sex, "birth_date": identity.birth_date.isoformat()})
    return _ok(payload)


@require_GET
@api_login_required
@handles_application_errors
def my_applications(request):
    queryset, filters = _list_filters(request)
    page, pagination = _paginate(queryset.filter(user=request.user), filters)
    account_name = request.user.name
    return _ok({
        "applications": [serialize_for_owner(a, account_name) for a in page],
        "pagination": pagination,
    })


@require_GET
@api_login_required
@handles_application_errors
def application_detail(request, pk):
    application = ledger.get_viewable_application(pk, request.user, request=request)
    return _ok({
        "application": serialize_application(application, include_review=request.user.is_admin),
        "status_progress": ledger.status_progress(application.status),
    })


@require_POST
@api_login_required
@handles_application_errors
def withdraw_application(request, pk):
    data = _validated(WithdrawForm(_json_body(request)))
    application = ledger.withdraw(pk, request.user, reason=data.get("reason", ""), request=request)
    return _ok({"application": serialize_application(application)})


# ── Referral agent endpoints ────────────────────────────────────────

@require_GET
@api_login_required
@handles_application_errors
def referred_applications(request):
    queryset, filters = _list_filters(request)
    page, pagination = _paginate(queryset.filter(referrer=request.user), filters)
    return _ok({
        "applications": [serialize_application(a) for a in page],
        "earnings": commission.referral_earnings(request.user),
        "pagination": pagination,
    })


@require_GET
@api_login_required
def referral_stats(request):
    return _ok(commission.referral_stats(request.user))


# ── Operator endpoints ──────────────────────────────────────────────

@require_GET
@admin_required
@handles_application_errors
def manage_application_list(request):
    queryset, filters = _list_filters(request)
    page, pagination = _paginate(queryset, filters)
    return _ok({
        "applications": [serialize_application(a, include_review=True) for a in page],
        "pagination": pagination,
    })


@require_GET
@admin_required
@handles_application_errors
def manage_application_detail(request, pk):
    application = ledger.get_application(pk)
    return _ok({
        "application": serialize_application(application, include_review=True),
        "allowed_transitions": sorted(ledger.ALLOWED_TRANSITIONS.get(application.status, ())),
    })


@require_POST
@admin_required
@handles_application_errors
def manage_review(request, pk):
    data = _validated(ReviewForm(_json_body(request)))
    application = ledger.review(
        pk, request.user,
        status=data.pop("status") or None,
        points_awarded=data.pop("points_awarded"),
        request=request,
        **data,
    )
    application = ledger.get_application(application.pk)
    return _ok({"application": serialize_application(application, include_review=True)})


@require_POST
@admin_required
@handles_application_errors
def manage_batch_review(request):
    data = _validated(BatchReviewForm(_json_body(request)))
    updated = ledger.batch_review(
        data["application_ids"], request.user, data["status"],
        review_notes=data.get("review_notes", ""), request=request,
    )
    return _ok({"updated": [a.pk for a in updated]})


@require_POST
@admin_required
@handles_application_errors
def manage_mark_fee_paid(request, pk):
    application = ledger.mark_referral_fee_paid(pk, request.user, request=request)
    return _ok({"application": serialize_application(application, include_review=True)})


@require_GET
@admin_required
@handles_application_errors
def manage_status_counts(request):
    filters = _validated(ApplicationListForm(request.GET))
    return _ok(commission.status_counts(filters.get("trial")))

