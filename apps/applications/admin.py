from django.contrib import admin

from .models import Application


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ("id", "trial", "status", "referrer", "referral_fee_amount", "referral_fee_paid", "submitted_at")
    list_filter = ("status", "referral_fee_paid", "medical_check_status", "enrollment_status")
    raw_id_fields = ("user", "trial", "referrer", "reviewed_by")
    # Status and commission changes go through the JSON operator endpoints,
    # which enforce the transition table and keep agent earnings in step.
    readonly_fields = (
        "status", "national_id_hash", "referral_fee_amount", "referral_fee_paid",
        "referral_fee_paid_at", "diseases", "documents", "eligibility_violations",
        "submitted_at", "updated_at",
    )
    exclude = ("_name_encrypted", "_phone_encrypted", "_national_id_encrypted")
