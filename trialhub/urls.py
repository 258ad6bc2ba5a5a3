"""URL configuration for TrialHub."""
from django.contrib import admin
from django.urls import include, path

from trialhub.error_views import not_found_view, permission_denied_view, server_error_view

handler403 = permission_denied_view
handler404 = not_found_view
handler500 = server_error_view

urlpatterns = [
    path("api/applications/", include("apps.applications.urls")),
    # ── /api/manage/ routes (admin role only) ──
    path("api/manage/applications/", include("apps.applications.manage_urls")),
    path("django-admin/", admin.site.urls),
]
