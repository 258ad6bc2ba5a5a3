"""Application model and its review state machine.

Main line:  pending → reviewing → approved → medical_check → enrolled → completed
Side exits: rejected, withdrawn, failed (reachable from any non-terminal state).
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from trialhub.encryption import DecryptionError, decrypt_field, encrypt_field, hash_identifier

PENDING = "pending"
REVIEWING = "reviewing"
APPROVED = "approved"
MEDICAL_CHECK = "medical_check"
ENROLLED = "enrolled"
COMPLETED = "completed"
REJECTED = "rejected"
WITHDRAWN = "withdrawn"
FAILED = "failed"

MAIN_LINE = (PENDING, REVIEWING, APPROVED, MEDICAL_CHECK, ENROLLED, COMPLETED)
SIDE_EXITS = (REJECTED, WITHDRAWN, FAILED)
TERMINAL_STATUSES = frozenset({COMPLETED, REJECTED, WITHDRAWN, FAILED})
WITHDRAWABLE_STATUSES = frozenset({PENDING, REVIEWING, APPROVED})


def _build_transitions():
    table = {}
    for index, status in enumerate(MAIN_LINE):
        if status in TERMINAL_STATUSES:
            table[status] = frozenset()
            continue
        table[status] = frozenset({MAIN_LINE[index + 1], *SIDE_EXITS})
    for status in SIDE_EXITS:
        table[status] = frozenset()
    return table


# (current status) → statuses an operator may move it to
ALLOWED_TRANSITIONS = _build_transitions()


def is_transition_allowed(current, requested):
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


class ApplicationQuerySet(models.QuerySet):

    def for_identity(self, national_id_hash=None, user=None):
        """Applications belonging to this applicant, by id hash and/or account."""
        query = models.Q()
        if national_id_hash:
            query |= models.Q(national_id_hash=national_id_hash)
        if user is not None and user.is_authenticated:
            query |= models.Q(user=user)
        if not query:
            return self.none()
        return self.filter(query)

    def holding_region(self):
        """Applications that still hold the applicant's city lock."""
        return self.exclude(status__in=settings.REGION_RELEASING_STATUSES)

    def referred_by(self, referrer):
        return self.filter(referrer=referrer)


class Application(models.Model):
    """One applicant's submission against one trial.

    The applicant's demographics are a snapshot taken at submission, not a
    link to their account. Name, phone and national id are encrypted; the
    national id is additionally stored as a keyed hash for matching.
    """

    STATUS_CHOICES = [
        (PENDING, _("Pending review")),
        (REVIEWING, _("Under review")),
        (APPROVED, _("Approved")),
        (REJECTED, _("Rejected")),
        (MEDICAL_CHECK, _("Medical check")),
        (ENROLLED, _("Enrolled")),
        (COMPLETED, _("Completed")),
        (WITHDRAWN, _("Withdrawn")),
        (FAILED, _("Failed")),
    ]

    SEX_CHOICES = [
        ("male", _("Male")),
        ("female", _("Female")),
    ]

    SMOKING_CHOICES = [
        ("never", _("Never smoked")),
        ("occasional", _("Occasional smoker")),
        ("regular", _("Regular smoker")),
        ("former", _("Former smoker")),
    ]

    MEDICAL_CHECK_CHOICES = [
        ("pending", _("Pending")),
        ("scheduled", _("Scheduled")),
        ("completed", _("Completed")),
        ("failed", _("Failed")),
    ]

    ENROLLMENT_CHOICES = [
        ("pending", _("Pending")),
        ("enrolled", _("Enrolled")),
        ("failed", _("Failed")),
    ]

    # Null for anonymous submissions.
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="applications",
    )
    trial = models.ForeignKey(
        "trials.Trial",
        on_delete=models.PROTECT,
        related_name="applications",
    )
    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="referred_applications",
    )
    channel_code = models.CharField(max_length=20, default="", blank=True)

    # Applicant snapshot. Encrypted PII
    _name_encrypted = models.BinaryField(default=b"")
    _phone_encrypted = models.BinaryField(default=b"")
    _national_id_encrypted = models.BinaryField(default=b"")
    national_id_hash = models.CharField(max_length=64, db_index=True)
    sex = models.CharField(max_length=10, choices=SEX_CHOICES)
    birth_date = models.DateField()
    age = models.PositiveSmallIntegerField()
    height = models.FloatField(help_text="Centimetres.")
    weight = models.FloatField(help_text="Kilograms.")
    bmi = models.FloatField()

    # Medical questionnaire
    smoking_status = models.CharField(max_length=20, choices=SMOKING_CHOICES, default="never")
    diseases = models.JSONField(default=list, blank=True)
    medical_history = models.TextField(default="", blank=True)
    current_medications = models.TextField(default="", blank=True)
    allergies = models.TextField(default="", blank=True)
    documents = models.JSONField(default=list, blank=True)
    eligibility_violations = models.JSONField(
        default=list,
        blank=True,
        help_text="Eligibility messages at submission time (advisory mode).",
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    notes = models.TextField(default="", blank=True)

    # Review
    review_notes = models.TextField(default="", blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_applications",
    )

    # Progress, set by staff; not gated by status
    medical_check_date = models.DateTimeField(null=True, blank=True)
    medical_check_status = models.CharField(max_length=20, choices=MEDICAL_CHECK_CHOICES, default="", blank=True)
    medical_check_notes = models.TextField(default="", blank=True)
    enrollment_date = models.DateTimeField(null=True, blank=True)
    enrollment_status = models.CharField(max_length=20, choices=ENROLLMENT_CHOICES, default="", blank=True)

    # Commission. referral_fee_amount is copied from the trial at creation
    # and never follows later edits to the trial.
    referral_fee_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    referral_fee_paid = models.BooleanField(default=False)
    referral_fee_paid_at = models.DateTimeField(null=True, blank=True)

    points_awarded = models.PositiveIntegerField(default=0)
    points_awarded_at = models.DateTimeField(null=True, blank=True)

    submitted_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ApplicationQuerySet.as_manager()

    class Meta:
        app_label = "applications"
        db_table = "applications"
        ordering = ["-submitted_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["national_id_hash", "trial"],
                name="unique_application_identity_trial",
            ),
            models.UniqueConstraint(
                fields=["user", "trial"],
                name="unique_application_user_trial",
                condition=models.Q(user__isnull=False),
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="applications_status_idx"),
            models.Index(fields=["referrer", "status"], name="applications_referrer_idx"),
            models.Index(fields=["submitted_at"], name="applications_submitted_idx"),
        ]

    def __str__(self):
        return f"Application #{self.pk} ({self.status})"

    # Encrypted PII properties
    @property
    def name(self):
        try:
            return decrypt_field(self._name_encrypted)
        except DecryptionError:
            return "[DECRYPTION ERROR]"

    @name.setter
    def name(self, value):
        self._name_encrypted = encrypt_field(value)

    @property
    def phone(self):
        try:
            return decrypt_field(self._phone_encrypted)
        except DecryptionError:
            return "[DECRYPTION ERROR]"

    @phone.setter
    def phone(self, value):
        self._phone_encrypted = encrypt_field(value)

    @property
    def national_id(self):
        try:
            return decrypt_field(self._national_id_encrypted)
        except DecryptionError:
            return "[DECRYPTION ERROR]"

    @national_id.setter
    def national_id(self, value):
        self._national_id_encrypted = encrypt_field(value)
        self.national_id_hash = hash_identifier(value)

    @property
    def identity_ref(self):
        """Short, non-reversible reference to the applicant for log lines."""
        return (self.national_id_hash or "")[:12]

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    @property
    def can_withdraw(self):
        return self.status in WITHDRAWABLE_STATUSES


class ApplicantLock(models.Model):
    """One row per applicant identity, locked for the length of a submission.

    Region exclusivity is decided by reading the applicant's existing
    applications, and a first-time applicant has none to lock. Submissions
    for the same national id hash serialise on this row instead.
    """

    national_id_hash = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        app_label = "applications"
        db_table = "applicant_locks"

    def __str__(self):
        return f"Applicant lock {self.national_id_hash[:12]}"
