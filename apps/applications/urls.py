"""URL configuration for applicant and referral endpoints."""
from django.urls import path

from . import views

app_name = "applications"

urlpatterns = [
    # Public (signing in optional)
    path("trials/<int:trial_id>/apply/", views.submit_application_view, name="submit"),
    path("trials/<int:trial_id>/eligibility/", views.eligibility_check_view, name="eligibility"),

    # Signed in
    path("mine/", views.my_applications, name="mine"),
    path("<int:pk>/", views.application_detail, name="detail"),
    path("<int:pk>/withdraw/", views.withdraw_application, name="withdraw"),
    path("referrals/", views.referred_applications, name="referrals"),
    path("referrals/stats/", views.referral_stats, name="referral_stats"),
]
