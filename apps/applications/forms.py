"""Forms validating JSON request bodies for the application endpoints."""
from django import forms
from django.core.validators import RegexValidator
from django.utils.translation import gettext_lazy as _

from .models import MAIN_LINE, SIDE_EXITS, Application

mobile_validator = RegexValidator(r"^1[3-9]\d{9}$", _("Enter a valid mobile number."))
national_id_validator = RegexValidator(r"^\d{17}[\dXx]$", _("Enter a valid national id number."))

STATUS_CHOICES = [(s, s) for s in (*MAIN_LINE, *SIDE_EXITS)]


class StringListField(forms.Field):
    """A JSON array of strings (or a single comma-separated string)."""

    def to_python(self, value):
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = [part for part in value.split(",")]
        if not isinstance(value, (list, tuple)):
            raise forms.ValidationError(_("Expected a list."))
        cleaned = []
        for item in value:
            if not isinstance(item, str):
                raise forms.ValidationError(_("Every entry must be text."))
            item = item.strip()
            if item:
                cleaned.append(item[:100])
        return cleaned


class EligibilityCheckForm(forms.Form):
    national_id = forms.CharField(min_length=18, max_length=18, validators=[national_id_validator])
    height = forms.FloatField(min_value=50, max_value=250)
    weight = forms.FloatField(min_value=20, max_value=300)

    def clean_national_id(self):
        return self.cleaned_data["national_id"].strip().upper()


class ApplicationSubmissionForm(EligibilityCheckForm):
    """Body of a trial submission, for both signed-in and anonymous callers."""

    name = forms.CharField(max_length=50)
    phone = forms.CharField(max_length=11, validators=[mobile_validator])
    smoking_status = forms.ChoiceField(choices=Application.SMOKING_CHOICES, required=False)
    diseases = StringListField(required=False)
    medical_history = forms.CharField(required=False, max_length=5000)
    current_medications = forms.CharField(required=False, max_length=5000)
    allergies = forms.CharField(required=False, max_length=5000)
    channel_code = forms.CharField(required=False, max_length=20)

    def clean_name(self):
        return self.cleaned_data["name"].strip()


class WithdrawForm(forms.Form):
    reason = forms.CharField(required=False, max_length=1000)


class ApplicationListForm(forms.Form):
    """Query-string filters and pagination for application listings."""

    page = forms.IntegerField(required=False, min_value=1)
    limit = forms.IntegerField(required=False, min_value=1)
    status = forms.ChoiceField(choices=STATUS_CHOICES, required=False)
    trial = forms.IntegerField(required=False, min_value=1)


class ReviewForm(forms.Form):
    """Operator update of status and progress metadata."""

    status = forms.ChoiceField(choices=STATUS_CHOICES, required=False)
    review_notes = forms.CharField(required=False, max_length=5000)
    medical_check_date = forms.DateTimeField(required=False)
    medical_check_status = forms.ChoiceField(
        choices=Application.MEDICAL_CHECK_CHOICES, required=False,
    )
    medical_check_notes = forms.CharField(required=False, max_length=5000)
    enrollment_date = forms.DateTimeField(required=False)
    enrollment_status = forms.ChoiceField(choices=Application.ENROLLMENT_CHOICES, required=False)
    points_awarded = forms.IntegerField(required=False, min_value=0)


class BatchReviewForm(forms.Form):
    application_ids = forms.JSONField()
    status = forms.ChoiceField(choices=STATUS_CHOICES)
    review_notes = forms.CharField(required=False, max_length=5000)

    def clean_application_ids(self):
        ids = self.cleaned_data["application_ids"]
        if not isinstance(ids, list) or not ids:
            raise forms.ValidationError(_("Select at least one application."))
        try:
            return [int(pk) for pk in ids]
        except (TypeError, ValueError):
            raise forms.ValidationError(_("Application ids must be integers."))
