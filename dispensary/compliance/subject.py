# dispensary/compliance/subject.py
from datetime import date
from typing import List, Optional
from .types import (
    RuleSnapshot, Subject, Violation,
    USER_NOT_FOUND, AGE_NOT_VERIFIED, DATE_OF_BIRTH_MISSING, UNDERAGE,
)

def calculate_age(date_of_birth: date, today: date) -> int:
    """Whole years, decremented if this year's birthday hasn't happened yet."""
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age

def validate_subject(user: Optional[Subject], rule: Optional[RuleSnapshot], today: date) -> List[Violation]:
    """
    Returns violations in order: missing user, verification, DOB/underage.
    A missing user ends the checks; no rule means no age checks.
    """
    if user is None:
        return [Violation(code=USER_NOT_FOUND, message="User not found.")]

    violations: List[Violation] = []
    if rule is None:
        return violations

    if rule.must_verify_age and not user.age_verified:
        violations.append(Violation(
            code=AGE_NOT_VERIFIED,
            message="Age verification is required to complete this purchase.",
            field="ageVerified",
        ))

    if user.date_of_birth is None:
        violations.append(Violation(
            code=DATE_OF_BIRTH_MISSING,
            message="Date of birth is required for age verification.",
            field="dateOfBirth",
        ))
    elif calculate_age(user.date_of_birth, today) < rule.min_age:
        violations.append(Violation(
            code=UNDERAGE,
            message=f"You must be at least {rule.min_age} years old to make a purchase.",
            field="age",
        ))

    return violations
