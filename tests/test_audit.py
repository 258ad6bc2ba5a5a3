"""Tests for the append-only audit log."""
from django.test import TestCase

from apps.audit.helpers import record_event
from apps.audit.models import AuditLog

from tests.utils.builders import make_user


class AuditLogImmutabilityTests(TestCase):
    databases = {"default", "audit"}

    def setUp(self):
        self.row = record_event("create", "application", resource_id=1, trial_id=1)

    def test_record_event_writes_to_audit_database(self):
        self.assertIsNotNone(self.row)
        self.assertEqual(AuditLog.objects.using("audit").count(), 1)
        self.assertEqual(self.row.user_display, "[anonymous]")

    def test_record_event_names_signed_in_actor(self):
        user = make_user()
        row = record_event("review", "application", actor=user, resource_id=1)
        self.assertEqual(row.user_id, user.pk)
        self.assertEqual(row.user_display, "张三")

    def test_update_is_refused(self):
        with self.assertRaises(PermissionError):
            AuditLog.objects.using("audit").filter(pk=self.row.pk).update(action="review")

    def test_delete_is_refused(self):
        with self.assertRaises(PermissionError):
            AuditLog.objects.using("audit").all().delete()
        self.assertEqual(AuditLog.objects.using("audit").count(), 1)
