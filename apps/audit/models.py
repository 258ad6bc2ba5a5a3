"""Immutable audit log: stored in separate database."""
from django.db import models
from django.utils.translation import gettext_lazy as _


class ImmutableAuditQuerySet(models.QuerySet):
    """QuerySet that prevents any mutation of audit log rows."""

    def update(self, **kwargs):
        raise PermissionError(
            "Audit logs are immutable and cannot be updated. "
            "Direct ORM update() on AuditLog is not permitted."
        )

    def delete(self):
        raise PermissionError(
            "Audit logs are immutable and cannot be deleted. "
            "Direct ORM delete() on AuditLog is not permitted."
        )


class ImmutableAuditManager(models.Manager.from_queryset(ImmutableAuditQuerySet)):
    """Manager that returns an immutable queryset and blocks bulk mutation."""


class AuditLog(models.Model):
    """
    Append-only audit trail. The database user for this table
    should have INSERT-only permission (no UPDATE/DELETE).
    """

    ACTION_CHOICES = [
        ("create", _("Created")),
        ("withdraw", _("Withdrawn")),
        ("transition", _("Status changed")),
        ("review", _("Reviewed")),
        ("fee_paid", _("Referral fee paid")),
        ("rejected", _("Request rejected")),
        ("access_denied", _("Access denied")),
    ]

    RESOURCE_TYPE_LABELS = {
        "application": _("Application"),
        "trial": _("Trial"),
        "user": _("Account"),
    }

    event_timestamp = models.DateTimeField()
    user_id = models.IntegerField(null=True, blank=True)
    user_display = models.CharField(max_length=255, default="")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    resource_type = models.CharField(max_length=100)
    resource_id = models.IntegerField(null=True, blank=True)
    trial_id = models.IntegerField(null=True, blank=True)
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(null=True, blank=True)

    # .create() and .bulk_create() are NOT overridden; appending
    # new rows is the only permitted mutation.
    objects = ImmutableAuditManager()

    class Meta:
        app_label = "audit"
        db_table = "audit_log"
        ordering = ["-event_timestamp"]

    @property
    def resource_type_display(self):
        return self.RESOURCE_TYPE_LABELS.get(
            self.resource_type, self.resource_type.replace("_", " ").title()
        )

    def __str__(self):
        return f"{self.event_timestamp} | {self.user_display} | {self.action} {self.resource_type}"
