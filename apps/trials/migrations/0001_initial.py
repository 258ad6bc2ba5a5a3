"""Create the Trial model."""
from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Trial",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(blank=True, default="", max_length=255)),
                ("city", models.CharField(blank=True, default="", max_length=100)),
                ("hospital", models.CharField(blank=True, default="", max_length=255)),
                ("status", models.CharField(choices=[("recruiting", "Recruiting"), ("active", "Active"), ("inactive", "Inactive"), ("completed", "Completed"), ("cancelled", "Cancelled")], default="recruiting", max_length=20)),
                ("is_active", models.BooleanField(default=True)),
                ("min_age", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("max_age", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("min_bmi", models.FloatField(blank=True, null=True)),
                ("max_bmi", models.FloatField(blank=True, null=True)),
                ("gender_requirement", models.CharField(choices=[("unrestricted", "Unrestricted"), ("male", "Male"), ("female", "Female")], default="unrestricted", max_length=20)),
                ("registration_start_date", models.DateTimeField(blank=True, null=True)),
                ("registration_deadline", models.DateTimeField(blank=True, null=True)),
                ("start_date", models.DateTimeField(blank=True, null=True)),
                ("end_date", models.DateTimeField(blank=True, null=True)),
                ("compensation", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("referral_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=10)),
                ("current_subjects", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "trials",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="trials_status_idx"),
                    models.Index(fields=["city"], name="trials_city_idx"),
                ],
            },
        ),
    ]
