"""Referral earnings and status counts, computed from the application ledger."""
from decimal import Decimal

from django.db.models import Count, Q, Sum

from .models import APPROVED, ENROLLED, MAIN_LINE, PENDING, SIDE_EXITS, Application

ZERO = Decimal("0.00")


def referral_earnings(referrer):
    """Paid and pending commission for one referrer.

    total:   sum of referral_fee_amount where the fee has been paid
    pending: sum of referral_fee_amount for enrolled, unpaid applications
    """
    totals = Application.objects.referred_by(referrer).aggregate(
        total=Sum("referral_fee_amount", filter=Q(referral_fee_paid=True)),
        pending=Sum(
            "referral_fee_amount",
            filter=Q(status=ENROLLED, referral_fee_paid=False),
        ),
    )
    return {
        "total": totals["total"] or ZERO,
        "pending": totals["pending"] or ZERO,
    }


def referral_stats(referrer):
    counts = Application.objects.referred_by(referrer).aggregate(
        total=Count("id"),
        pending=Count("id", filter=Q(status=PENDING)),
        approved=Count("id", filter=Q(status=APPROVED)),
        enrolled=Count("id", filter=Q(status=ENROLLED)),
    )
    earnings = referral_earnings(referrer)
    return {
        "total_referrals": counts["total"],
        "pending_referrals": counts["pending"],
        "approved_referrals": counts["approved"],
        "enrolled_referrals": counts["enrolled"],
        "total_earnings": earnings["total"],
        "pending_earnings": earnings["pending"],
    }


def status_counts(trial_id=None):
    """Applications per status, optionally for one trial. Every status is present."""
    queryset = Application.objects.all()
    if trial_id is not None:
        queryset = queryset.filter(trial_id=trial_id)
    rows = queryset.order_by().values("status").annotate(n=Count("id"))
    counts = {status: 0 for status in (*MAIN_LINE, *SIDE_EXITS)}
    for row in rows:
        counts[row["status"]] = row["n"]
    counts["total"] = sum(counts.values())
    return counts
