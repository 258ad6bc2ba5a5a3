"""Tests for national-id derivation, BMI, and the eligibility evaluator."""
from datetime import date

import pytest

from apps.applications import exceptions
from apps.applications.eligibility import TrialConstraints, evaluate_eligibility
from apps.applications.identity import (
    DerivedIdentity,
    calculate_age,
    calculate_bmi,
    derive_identity,
)

TODAY = date(2024, 6, 1)


def test_derives_birth_date_and_male_sex():
    identity = derive_identity("110101199003075316", today=TODAY)
    assert identity.birth_date == date(1990, 3, 7)
    assert identity.sex == "male"
    assert identity.age == 34


def test_even_sequence_digit_is_female():
    identity = derive_identity("110101199203074321", today=TODAY)
    assert identity.sex == "female"


def test_lowercase_check_character_is_accepted():
    identity = derive_identity("11010120000101123x", today=TODAY)
    assert identity.birth_date == date(2000, 1, 1)


def test_checksum_is_not_verified():
    """Only shape and birth date are checked; any final digit is accepted."""
    derive_identity("110101199003075310", today=TODAY)
    derive_identity("110101199003075319", today=TODAY)


@pytest.mark.parametrize("bad_id", [
    "",
    "11010119900307531",      # 17 characters
    "11010119900307531A",     # letter other than X
    "1101011990030753161",    # 19 characters
    "110101199013075316",     # month 13
    "110101199002305316",     # 30 February
], ids=["empty", "short", "bad-check", "long", "month-13", "feb-30"])
def test_malformed_ids_raise_validation_error(bad_id):
    with pytest.raises(exceptions.ValidationError) as excinfo:
        derive_identity(bad_id, today=TODAY)
    assert excinfo.value.code == "invalid_national_id"


def test_future_birth_date_is_rejected():
    with pytest.raises(exceptions.ValidationError):
        derive_identity("110101203001015316", today=TODAY)


def test_age_is_adjusted_before_birthday():
    assert calculate_age(date(1990, 6, 2), today=TODAY) == 33
    assert calculate_age(date(1990, 6, 1), today=TODAY) == 34
    assert calculate_age(date(1990, 5, 31), today=TODAY) == 34


def test_bmi_rounded_to_one_decimal():
    assert calculate_bmi(170, 65) == 22.5
    assert calculate_bmi(180, 81) == 25.0


def test_bmi_missing_inputs():
    assert calculate_bmi(None, 65) is None
    assert calculate_bmi(170, 0) is None


def _identity(age=30, sex="male"):
    return DerivedIdentity(birth_date=date(1994, 1, 1), sex=sex, age=age)


def test_no_constraints_is_eligible():
    result = evaluate_eligibility(_identity(), 170, 65, TrialConstraints())
    assert result.eligible
    assert result.violations == []
    assert result.bmi == 22.5


def test_one_violation_per_failed_constraint():
    constraints = TrialConstraints(
        min_age=35, max_age=25, min_bmi=23.0, max_bmi=20.0, gender_requirement="female",
    )
    result = evaluate_eligibility(_identity(age=30), 170, 65, constraints)
    assert not result.eligible
    assert len(result.violations) == 5


def test_bounds_are_inclusive():
    constraints = TrialConstraints(min_age=30, max_age=30, min_bmi=22.5, max_bmi=22.5)
    result = evaluate_eligibility(_identity(age=30), 170, 65, constraints)
    assert result.eligible


def test_zero_lower_bound_is_still_a_bound():
    constraints = TrialConstraints(min_age=0, max_age=0)
    result = evaluate_eligibility(_identity(age=30), 170, 65, constraints)
    assert result.violations and len(result.violations) == 1


def test_unrestricted_gender_is_not_checked():
    constraints = TrialConstraints(gender_requirement="unrestricted")
    assert evaluate_eligibility(_identity(sex="female"), 170, 65, constraints).eligible
    assert evaluate_eligibility(_identity(sex="male"), 170, 65, constraints).eligible


def test_gender_mismatch():
    constraints = TrialConstraints(gender_requirement="male")
    result = evaluate_eligibility(_identity(sex="female"), 170, 65, constraints)
    assert not result.eligible
    assert len(result.violations) == 1
