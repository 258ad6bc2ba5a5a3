"""Trial model: the capacity and eligibility envelope of a recruitment campaign.

Trials are maintained by staff elsewhere. The application lifecycle reads
them at submission time and bumps current_subjects; nothing else here
writes to them.
"""
from decimal import Decimal

from django.db import models
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class TrialQuerySet(models.QuerySet):

    def recruiting(self):
        """Trials that accept submissions (status and active flag; dates checked separately)."""
        return self.filter(status=Trial.STATUS_RECRUITING, is_active=True)


class Trial(models.Model):
    """A paid clinical trial recruiting participants in one city."""

    STATUS_RECRUITING = "recruiting"
    STATUS_CHOICES = [
        ("recruiting", _("Recruiting")),
        ("active", _("Active")),
        ("inactive", _("Inactive")),
        ("completed", _("Completed")),
        ("cancelled", _("Cancelled")),
    ]

    GENDER_UNRESTRICTED = "unrestricted"
    GENDER_CHOICES = [
        ("unrestricted", _("Unrestricted")),
        ("male", _("Male")),
        ("female", _("Female")),
    ]

    title = models.CharField(max_length=255, default="", blank=True)
    city = models.CharField(max_length=100, default="", blank=True)
    hospital = models.CharField(max_length=255, default="", blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_RECRUITING)
    is_active = models.BooleanField(default=True)

    # Eligibility envelope. Null means "no bound".
    min_age = models.PositiveSmallIntegerField(null=True, blank=True)
    max_age = models.PositiveSmallIntegerField(null=True, blank=True)
    min_bmi = models.FloatField(null=True, blank=True)
    max_bmi = models.FloatField(null=True, blank=True)
    gender_requirement = models.CharField(
        max_length=20, choices=GENDER_CHOICES, default=GENDER_UNRESTRICTED,
    )

    registration_start_date = models.DateTimeField(null=True, blank=True)
    registration_deadline = models.DateTimeField(null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)

    compensation = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    referral_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    current_subjects = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TrialQuerySet.as_manager()

    class Meta:
        app_label = "trials"
        db_table = "trials"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="trials_status_idx"),
            models.Index(fields=["city"], name="trials_city_idx"),
        ]

    def __str__(self):
        return self.title or f"Trial #{self.pk}"

    def registration_closed(self, now=None):
        now = now or timezone.now()
        return self.registration_deadline is not None and now > self.registration_deadline

    def has_ended(self, now=None):
        now = now or timezone.now()
        return self.end_date is not None and now > self.end_date

    def increment_subjects(self):
        """Atomically add one to current_subjects."""
        Trial.objects.filter(pk=self.pk).update(current_subjects=F("current_subjects") + 1)
