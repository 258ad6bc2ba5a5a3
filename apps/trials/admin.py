from django.contrib import admin

from .models import Trial


@admin.register(Trial)
class TrialAdmin(admin.ModelAdmin):
    list_display = ("title", "city", "status", "is_active", "referral_fee", "current_subjects", "registration_deadline")
    list_filter = ("status", "is_active", "city")
    search_fields = ("title", "hospital", "city")
    readonly_fields = ("current_subjects", "created_at", "updated_at")
