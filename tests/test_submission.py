"""Tests for submitting applications: preconditions, guards, referrals, counters."""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import transaction
from django.test import TestCase, override_settings
from django.utils import timezone

from apps.accounts.models import User
from apps.applications import exceptions
from apps.applications.guards import lock_applicant
from apps.applications.models import ApplicantLock, Application
from apps.audit.models import AuditLog
from apps.trials.models import Trial
from trialhub.encryption import hash_identifier
import trialhub.encryption as enc_module

from tests.utils.builders import (
    FEMALE_ID,
    MALE_ID,
    OTHER_IDS,
    TEST_KEY,
    make_agent,
    make_trial,
    make_user,
    submit,
)


@override_settings(FIELD_ENCRYPTION_KEY=TEST_KEY)
class SubmissionTests(TestCase):
    databases = {"default", "audit"}

    def setUp(self):
        enc_module._fernet = None
        self.trial = make_trial()

    def tearDown(self):
        enc_module._fernet = None

    def test_anonymous_submission_creates_pending_application(self):
        application = submit(self.trial)
        application.refresh_from_db()
        self.assertEqual(application.status, "pending")
        self.assertIsNone(application.user_id)
        self.assertEqual(application.sex, "male")
        self.assertEqual(str(application.birth_date), "1990-03-07")
        self.assertEqual(application.bmi, 22.5)
        self.assertEqual(application.diseases, ["hypertension"])

    def test_pii_is_encrypted_and_identity_hashed(self):
        application = submit(self.trial)
        stored = Application.objects.get(pk=application.pk)
        self.assertEqual(stored.national_id, MALE_ID)
        self.assertEqual(stored.name, "张三")
        self.assertNotIn(MALE_ID.encode(), bytes(stored._national_id_encrypted))
        self.assertEqual(stored.national_id_hash, hash_identifier(MALE_ID))

    def test_trial_counter_incremented(self):
        submit(self.trial)
        submit(self.trial, national_id=FEMALE_ID)
        self.trial.refresh_from_db()
        self.assertEqual(self.trial.current_subjects, 2)

    def test_create_is_audited(self):
        application = submit(self.trial)
        row = AuditLog.objects.using("audit").get(action="create")
        self.assertEqual(row.resource_id, application.pk)
        self.assertEqual(row.trial_id, self.trial.pk)

    # ── Trial preconditions ──

    def test_missing_trial(self):
        with self.assertRaises(exceptions.NotFoundError) as ctx:
            submit(Trial(pk=99999))
        self.assertEqual(ctx.exception.code, "trial_not_found")

    def test_trial_not_recruiting(self):
        trial = make_trial(status="active")
        with self.assertRaises(exceptions.NotFoundError):
            submit(trial)

    def test_inactive_trial(self):
        trial = make_trial(is_active=False)
        with self.assertRaises(exceptions.NotFoundError):
            submit(trial)

    def test_registration_deadline_passed(self):
        trial = make_trial(registration_deadline=timezone.now() - timedelta(hours=1))
        with self.assertRaises(exceptions.ValidationError) as ctx:
            submit(trial)
        self.assertEqual(ctx.exception.code, "registration_closed")

    def test_trial_ended(self):
        trial = make_trial(registration_deadline=None, end_date=timezone.now() - timedelta(days=1))
        with self.assertRaises(exceptions.ValidationError) as ctx:
            submit(trial)
        self.assertEqual(ctx.exception.code, "trial_ended")

    def test_refusal_is_audited_without_raw_identifier(self):
        trial = make_trial(status="completed")
        with self.assertRaises(exceptions.NotFoundError):
            submit(trial)
        row = AuditLog.objects.using("audit").get(action="rejected")
        self.assertEqual(row.metadata["code"], "trial_not_found")
        self.assertNotIn(MALE_ID, str(row.metadata))

    # ── Duplicates ──

    def test_same_national_id_twice_conflicts(self):
        submit(self.trial)
        with self.assertRaises(exceptions.ConflictError) as ctx:
            submit(self.trial)
        self.assertEqual(ctx.exception.code, "duplicate_application")
        self.assertEqual(Application.objects.count(), 1)

    def test_same_account_twice_conflicts_even_for_another_person(self):
        user = make_user()
        submit(self.trial, user=user)
        with self.assertRaises(exceptions.ConflictError) as ctx:
            submit(self.trial, national_id=FEMALE_ID, user=user, name="李四")
        self.assertEqual(ctx.exception.code, "duplicate_application")

    def test_anonymous_then_signed_in_same_identity_conflicts(self):
        submit(self.trial)
        with self.assertRaises(exceptions.ConflictError):
            submit(self.trial, user=make_user())

    def test_failed_submission_leaves_counter_unchanged(self):
        submit(self.trial)
        with self.assertRaises(exceptions.ConflictError):
            submit(self.trial)
        self.trial.refresh_from_db()
        self.assertEqual(self.trial.current_subjects, 1)

    def test_constraint_catches_duplicate_that_slipped_past_guards(self):
        """Simulates two concurrent submissions that both passed the checks.

        The checks are disabled so the second insert reaches the database, as
        it would if it ran alongside the first. Nothing here runs in parallel;
        the unique constraint alone must turn it into a conflict.
        """
        with patch("apps.applications.submission.run_guards"):
            submit(self.trial)
            with self.assertRaises(exceptions.ConflictError) as ctx:
                submit(self.trial)
        self.assertEqual(ctx.exception.code, "duplicate_application")
        self.assertEqual(Application.objects.filter(trial=self.trial).count(), 1)
        self.trial.refresh_from_db()
        self.assertEqual(self.trial.current_subjects, 1)

    def test_account_constraint_catches_duplicate_that_slipped_past_guards(self):
        user = make_user()
        with patch("apps.applications.submission.run_guards"):
            submit(self.trial, user=user)
            with self.assertRaises(exceptions.ConflictError):
                submit(self.trial, national_id=FEMALE_ID, user=user)
        self.assertEqual(Application.objects.filter(user=user).count(), 1)

    # ── Region exclusivity ──

    def test_active_application_in_other_city_conflicts(self):
        submit(self.trial)
        shanghai = make_trial(city="上海")
        with self.assertRaises(exceptions.ConflictError) as ctx:
            submit(shanghai)
        self.assertEqual(ctx.exception.code, "region_conflict")
        self.assertIn("株洲", ctx.exception.message)
        self.assertEqual(ctx.exception.details["existing_city"], "株洲")

    def test_same_city_is_allowed(self):
        submit(self.trial)
        another = make_trial(title="Second study")
        application = submit(another)
        self.assertEqual(application.trial_id, another.pk)

    def test_region_checked_across_account_for_proxy_applications(self):
        user = make_user()
        submit(self.trial, user=user)
        shanghai = make_trial(city="上海")
        with self.assertRaises(exceptions.ConflictError) as ctx:
            submit(shanghai, national_id=FEMALE_ID, user=user, name="李四")
        self.assertEqual(ctx.exception.code, "region_conflict")

    def test_terminal_statuses_release_the_city(self):
        shanghai = make_trial(city="上海")
        for status, national_id in zip(("rejected", "withdrawn", "failed", "completed"), OTHER_IDS):
            application = submit(self.trial, national_id=national_id)
            Application.objects.filter(pk=application.pk).update(status=status)
            submit(shanghai, national_id=national_id)
        self.assertEqual(Application.objects.filter(trial=shanghai).count(), 4)

    @override_settings(REGION_RELEASING_STATUSES=("rejected", "withdrawn", "failed"))
    def test_completed_can_be_configured_to_hold_the_city(self):
        application = submit(self.trial)
        Application.objects.filter(pk=application.pk).update(status="completed")
        with self.assertRaises(exceptions.ConflictError):
            submit(make_trial(city="上海"))

    def test_trial_without_city_never_conflicts(self):
        submit(self.trial)
        application = submit(make_trial(city=""))
        self.assertIsNotNone(application.pk)

    def test_earliest_active_application_fixes_the_city(self):
        first = submit(self.trial)
        # Legacy data: a second active application elsewhere.
        shanghai = make_trial(city="上海")
        with patch("apps.applications.submission.run_guards"):
            submit(shanghai)
        Application.objects.filter(pk=first.pk).update(status="withdrawn")
        # The Shanghai application is now the earliest active one.
        with self.assertRaises(exceptions.ConflictError) as ctx:
            submit(make_trial(city="株洲", title="Third"))
        self.assertIn("上海", ctx.exception.message)

    # ── Per-applicant serialisation ──

    def test_first_submission_creates_the_applicant_lock(self):
        submit(self.trial)
        submit(make_trial(title="Second study"))
        self.assertEqual(
            ApplicantLock.objects.filter(national_id_hash=hash_identifier(MALE_ID)).count(), 1,
        )

    def test_applicant_is_locked_before_the_region_is_read(self):
        id_hash = hash_identifier(MALE_ID)

        def region_read(trial, national_id_hash, user=None):
            self.assertTrue(ApplicantLock.objects.filter(national_id_hash=id_hash).exists())

        with patch("apps.applications.guards.check_region", side_effect=region_read) as check:
            submit(self.trial)
        check.assert_called_once()

    def test_lock_applicant_reuses_the_row(self):
        user = make_user()
        id_hash = hash_identifier(FEMALE_ID)
        with transaction.atomic():
            first = lock_applicant(id_hash, user)
            second = lock_applicant(id_hash, user)
        self.assertEqual(first.pk, second.pk)

    # ── Eligibility ──

    def test_advisory_mode_accepts_and_records_violations(self):
        trial = make_trial(city="株洲", min_age=45, gender_requirement="female")
        application = submit(trial)
        application.refresh_from_db()
        self.assertEqual(len(application.eligibility_violations), 2)

    @override_settings(ELIGIBILITY_ENFORCEMENT="strict")
    def test_strict_mode_rejects_ineligible_applicant(self):
        trial = make_trial(max_bmi=20.0)
        with self.assertRaises(exceptions.ValidationError) as ctx:
            submit(trial)
        self.assertEqual(ctx.exception.code, "ineligible")
        self.assertEqual(len(ctx.exception.details), 1)
        self.assertFalse(Application.objects.exists())

    @override_settings(ELIGIBILITY_ENFORCEMENT="strict")
    def test_strict_mode_accepts_eligible_applicant(self):
        trial = make_trial(min_age=18, max_age=45, min_bmi=19.0, max_bmi=24.0, gender_requirement="male")
        self.assertEqual(submit(trial).eligibility_violations, [])

    def test_malformed_national_id(self):
        with self.assertRaises(exceptions.ValidationError) as ctx:
            submit(self.trial, national_id="12345")
        self.assertEqual(ctx.exception.code, "invalid_national_id")


@override_settings(FIELD_ENCRYPTION_KEY=TEST_KEY)
class ReferralAttributionTests(TestCase):
    databases = {"default", "audit"}

    def setUp(self):
        enc_module._fernet = None
        self.trial = make_trial(referral_fee=Decimal("300.00"))
        self.agent = make_agent()

    def tearDown(self):
        enc_module._fernet = None

    def test_channel_code_attributes_and_counts(self):
        application = submit(self.trial, channel_code="AGENT01")
        self.assertEqual(application.referrer_id, self.agent.pk)
        self.assertEqual(application.channel_code, "AGENT01")
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.referral_count, 1)

    def test_fee_snapshot_survives_trial_edit(self):
        application = submit(self.trial, channel_code="AGENT01")
        self.trial.referral_fee = Decimal("999.00")
        self.trial.save()
        application.refresh_from_db()
        self.assertEqual(application.referral_fee_amount, Decimal("300.00"))

    def test_unknown_code_proceeds_without_attribution(self):
        application = submit(self.trial, channel_code="NOPE")
        self.assertIsNone(application.referrer_id)
        self.assertEqual(application.channel_code, "NOPE")

    def test_code_of_non_agent_does_not_resolve(self):
        make_user(phone="13600000006", channel_code="PLAIN", is_agent=False)
        application = submit(self.trial, channel_code="PLAIN")
        self.assertIsNone(application.referrer_id)

    def test_inactive_agent_does_not_resolve(self):
        User.objects.filter(pk=self.agent.pk).update(is_active=False)
        application = submit(self.trial, channel_code="AGENT01")
        self.assertIsNone(application.referrer_id)

    def test_refused_submission_does_not_count_referral(self):
        submit(self.trial, channel_code="AGENT01")
        with self.assertRaises(exceptions.ConflictError):
            submit(self.trial, channel_code="AGENT01")
        self.agent.refresh_from_db()
        self.assertEqual(self.agent.referral_count, 1)
