"""URL configuration for operator endpoints (admin role only)."""
from django.urls import path

from . import views

app_name = "manage_applications"

urlpatterns = [
    path("", views.manage_application_list, name="list"),
    path("stats/", views.manage_status_counts, name="stats"),
    path("batch/", views.manage_batch_review, name="batch"),
    path("<int:pk>/", views.manage_application_detail, name="detail"),
    path("<int:pk>/review/", views.manage_review, name="review"),
    path("<int:pk>/referral-fee-paid/", views.manage_mark_fee_paid, name="fee_paid"),
]
