"""Create the Application model, its uniqueness constraints and the applicant lock table."""
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("trials", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Application",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("channel_code", models.CharField(blank=True, default="", max_length=20)),
                ("_name_encrypted", models.BinaryField(default=b"")),
                ("_phone_encrypted", models.BinaryField(default=b"")),
                ("_national_id_encrypted", models.BinaryField(default=b"")),
                ("national_id_hash", models.CharField(db_index=True, max_length=64)),
                ("sex", models.CharField(choices=[("male", "Male"), ("female", "Female")], max_length=10)),
                ("birth_date", models.DateField()),
                ("age", models.PositiveSmallIntegerField()),
                ("height", models.FloatField(help_text="Centimetres.")),
                ("weight", models.FloatField(help_text="Kilograms.")),
                ("bmi", models.FloatField()),
                ("smoking_status", models.CharField(choices=[("never", "Never smoked"), ("occasional", "Occasional smoker"), ("regular", "Regular smoker"), ("former", "Former smoker")], default="never", max_length=20)),
                ("diseases", models.JSONField(blank=True, default=list)),
                ("medical_history", models.TextField(blank=True, default="")),
                ("current_medications", models.TextField(blank=True, default="")),
                ("allergies", models.TextField(blank=True, default="")),
                ("documents", models.JSONField(blank=True, default=list)),
                ("eligibility_violations", models.JSONField(blank=True, default=list, help_text="Eligibility messages at submission time (advisory mode).")),
                ("status", models.CharField(choices=[("pending", "Pending review"), ("reviewing", "Under review"), ("approved", "Approved"), ("rejected", "Rejected"), ("medical_check", "Medical check"), ("enrolled", "Enrolled"), ("completed", "Completed"), ("withdrawn", "Withdrawn"), ("failed", "Failed")], default="pending", max_length=20)),
                ("notes", models.TextField(blank=True, default="")),
                ("review_notes", models.TextField(blank=True, default="")),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("medical_check_date", models.DateTimeField(blank=True, null=True)),
                ("medical_check_status", models.CharField(blank=True, choices=[("pending", "Pending"), ("scheduled", "Scheduled"), ("completed", "Completed"), ("failed", "Failed")], default="", max_length=20)),
                ("medical_check_notes", models.TextField(blank=True, default="")),
                ("enrollment_date", models.DateTimeField(blank=True, null=True)),
                ("enrollment_status", models.CharField(blank=True, choices=[("pending", "Pending"), ("enrolled", "Enrolled"), ("failed", "Failed")], default="", max_length=20)),
                ("referral_fee_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("referral_fee_paid", models.BooleanField(default=False)),
                ("referral_fee_paid_at", models.DateTimeField(blank=True, null=True)),
                ("points_awarded", models.PositiveIntegerField(default=0)),
                ("points_awarded_at", models.DateTimeField(blank=True, null=True)),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("referrer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="referred_applications", to=settings.AUTH_USER_MODEL)),
                ("reviewed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="reviewed_applications", to=settings.AUTH_USER_MODEL)),
                ("trial", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="applications", to="trials.trial")),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="applications", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "applications",
                "ordering": ["-submitted_at", "-id"],
                "indexes": [
                    models.Index(fields=["status"], name="applications_status_idx"),
                    models.Index(fields=["referrer", "status"], name="applications_referrer_idx"),
                    models.Index(fields=["submitted_at"], name="applications_submitted_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("national_id_hash", "trial"), name="unique_application_identity_trial"),
                    models.UniqueConstraint(condition=models.Q(("user__isnull", False)), fields=("user", "trial"), name="unique_application_user_trial"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ApplicantLock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("national_id_hash", models.CharField(max_length=64, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "applicant_locks",
            },
        ),
    ]
