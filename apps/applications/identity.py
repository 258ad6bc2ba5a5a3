"""Derive birth date, legal sex and age from an 18-character national id.

Layout: 6-digit region code, 8-digit birth date (YYYYMMDD, positions 7-14),
3-digit sequence whose last digit (position 17) is odd for men and even for
women, then a check character. The check character is not verified; only
the shape and the birth date are.
"""
import re
from dataclasses import dataclass
from datetime import date

from django.utils import timezone

from . import exceptions

NATIONAL_ID_LENGTH = 18
NATIONAL_ID_RE = re.compile(r"^\d{17}[\dX]$")

SEX_MALE = "male"
SEX_FEMALE = "female"


@dataclass(frozen=True)
class DerivedIdentity:
    birth_date: date
    sex: str
    age: int


def calculate_age(birth_date, today=None):
    """Whole years between birth_date and today, adjusted for month and day."""
    today = today or timezone.localdate()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def calculate_bmi(height_cm, weight_kg):
    """weight / height_m², rounded to one decimal. None when either is missing."""
    if not height_cm or not weight_kg:
        return None
    height_m = float(height_cm) / 100
    return round(float(weight_kg) / (height_m * height_m), 1)


def derive_identity(national_id, today=None):
    """Return the DerivedIdentity encoded in national_id.

    Raises ValidationError when the value is not 18 characters of the right
    shape or does not encode a real calendar date.
    """
    value = (national_id or "").strip().upper()
    if len(value) < NATIONAL_ID_LENGTH or not NATIONAL_ID_RE.match(value):
        raise exceptions.ValidationError(
            "National id must be 17 digits followed by a digit or X.",
            code="invalid_national_id",
        )
    try:
        birth_date = date(int(value[6:10]), int(value[10:12]), int(value[12:14]))
    except ValueError:
        raise exceptions.ValidationError(
            "National id does not contain a valid birth date.",
            code="invalid_national_id",
        )
    today = today or timezone.localdate()
    if birth_date > today:
        raise exceptions.ValidationError(
            "National id birth date is in the future.",
            code="invalid_national_id",
        )
    sex = SEX_FEMALE if int(value[16]) % 2 == 0 else SEX_MALE
    return DerivedIdentity(
        birth_date=birth_date,
        sex=sex,
        age=calculate_age(birth_date, today),
    )
