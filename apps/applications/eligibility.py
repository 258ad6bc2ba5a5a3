"""Check a candidate against a trial's age, BMI and gender envelope.

Pure: no database access. Whether a failed check blocks submission is
decided by the caller (see ELIGIBILITY_ENFORCEMENT).
"""
from dataclasses import dataclass, field

from django.utils.translation import gettext as _

from .identity import calculate_bmi

GENDER_UNRESTRICTED = "unrestricted"


@dataclass(frozen=True)
class TrialConstraints:
    min_age: int = None
    max_age: int = None
    min_bmi: float = None
    max_bmi: float = None
    gender_requirement: str = GENDER_UNRESTRICTED

    @classmethod
    def from_trial(cls, trial):
        return cls(
            min_age=trial.min_age,
            max_age=trial.max_age,
            min_bmi=trial.min_bmi,
            max_bmi=trial.max_bmi,
            gender_requirement=trial.gender_requirement or GENDER_UNRESTRICTED,
        )


@dataclass
class EligibilityResult:
    eligible: bool
    violations: list = field(default_factory=list)
    bmi: float = None

    def as_dict(self):
        return {"eligible": self.eligible, "violations": list(self.violations), "bmi": self.bmi}


def evaluate_eligibility(identity, height_cm, weight_kg, constraints):
    """Return an EligibilityResult with one message per failed constraint."""
    violations = []
    age = identity.age
    bmi = calculate_bmi(height_cm, weight_kg)

    if constraints.min_age is not None and age < constraints.min_age:
        violations.append(_("Age must be at least %(min)s.") % {"min": constraints.min_age})
    if constraints.max_age is not None and age > constraints.max_age:
        violations.append(_("Age must be at most %(max)s.") % {"max": constraints.max_age})

    if bmi is not None:
        if constraints.min_bmi is not None and bmi < constraints.min_bmi:
            violations.append(_("BMI must be at least %(min)s.") % {"min": constraints.min_bmi})
        if constraints.max_bmi is not None and bmi > constraints.max_bmi:
            violations.append(_("BMI must be at most %(max)s.") % {"max": constraints.max_bmi})

    requirement = constraints.gender_requirement or GENDER_UNRESTRICTED
    if requirement != GENDER_UNRESTRICTED and identity.sex != requirement:
        violations.append(_("This trial is open to %(sex)s participants only.") % {"sex": requirement})

    return EligibilityResult(eligible=not violations, violations=violations, bmi=bmi)
