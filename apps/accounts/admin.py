from django.contrib import admin

from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("phone", "name", "role", "is_agent", "channel_code", "referral_count", "total_earnings")
    list_filter = ("role", "is_agent", "is_active")
    search_fields = ("phone", "name", "channel_code")
    readonly_fields = ("referral_count", "total_earnings", "created_at", "updated_at")
    raw_id_fields = ("referred_by",)
