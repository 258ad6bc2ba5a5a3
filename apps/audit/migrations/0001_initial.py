"""Create the append-only audit log."""
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_timestamp", models.DateTimeField()),
                ("user_id", models.IntegerField(blank=True, null=True)),
                ("user_display", models.CharField(default="", max_length=255)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("action", models.CharField(choices=[("create", "Created"), ("withdraw", "Withdrawn"), ("transition", "Status changed"), ("review", "Reviewed"), ("fee_paid", "Referral fee paid"), ("rejected", "Request rejected"), ("access_denied", "Access denied")], max_length=50)),
                ("resource_type", models.CharField(max_length=100)),
                ("resource_id", models.IntegerField(blank=True, null=True)),
                ("trial_id", models.IntegerField(blank=True, null=True)),
                ("old_values", models.JSONField(blank=True, null=True)),
                ("new_values", models.JSONField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, null=True)),
            ],
            options={
                "db_table": "audit_log",
                "ordering": ["-event_timestamp"],
            },
        ),
    ]
