"""Plain-dict representations of applications for JSON responses."""


def _iso(value):
    return value.isoformat() if value else None


def _user_brief(user):
    if user is None:
        return None
    return {"id": user.pk, "name": user.name, "phone": user.phone, "channel_code": user.channel_code}


def trial_brief(trial):
    return {
        "id": trial.pk,
        "title": trial.title,
        "city": trial.city,
        "hospital": trial.hospital,
        "status": trial.status,
        "compensation": str(trial.compensation) if trial.compensation is not None else None,
        "referral_fee": str(trial.referral_fee),
    }


def serialize_application(application, include_review=False):
    data = {
        "id": application.pk,
        "trial": trial_brief(application.trial),
        "user_id": application.user_id,
        "referrer": _user_brief(application.referrer),
        "channel_code": application.channel_code,
        "name": application.name,
        "phone": application.phone,
        "sex": application.sex,
        "birth_date": _iso(application.birth_date),
        "age": application.age,
        "height": application.height,
        "weight": application.weight,
        "bmi": application.bmi,
        "smoking_status": application.smoking_status,
        "diseases": application.diseases,
        "medical_history": application.medical_history,
        "current_medications": application.current_medications,
        "allergies": application.allergies,
        "status": application.status,
        "status_display": str(application.get_status_display()),
        "is_terminal": application.is_terminal,
        "can_withdraw": application.can_withdraw,
        "notes": application.notes,
        "medical_check_date": _iso(application.medical_check_date),
        "medical_check_status": application.medical_check_status,
        "enrollment_date": _iso(application.enrollment_date),
        "enrollment_status": application.enrollment_status,
        "referral_fee_amount": str(application.referral_fee_amount),
        "referral_fee_paid": application.referral_fee_paid,
        "referral_fee_paid_at": _iso(application.referral_fee_paid_at),
        "points_awarded": application.points_awarded,
        "submitted_at": _iso(application.submitted_at),
    }
    if include_review:
        data.update({
            "national_id": application.national_id,
            "eligibility_violations": application.eligibility_violations,
            "review_notes": application.review_notes,
            "reviewed_at": _iso(application.reviewed_at),
            "reviewed_by": _user_brief(application.reviewed_by),
            "medical_check_notes": application.medical_check_notes,
            "documents": application.documents,
        })
    return data


def serialize_for_owner(application, account_name):
    """Owner's listing row, labelled "self" when the applicant name is the account's."""
    data = serialize_application(application)
    data["application_type"] = "self" if application.name == account_name else "proxy"
    data["current_user_name"] = account_name
    return data
