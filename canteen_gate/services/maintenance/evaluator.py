"""
Maintenance Rule Evaluator

Decides whether a signed-in user is blocked by the current maintenance
rule. Pure and side-effect free: the rule and the user are passed in
explicitly, nothing is read from global state.

Targeting:
    - all: every user (admin bypass is the gate's concern)
    - specific: register number or staff id listed in specific_users
    - department: students whose department is targeted
    - year: students whose year (current/joining/passing) is targeted
    - year_department: both department and year must match

Identifiers and department codes are compared after trimming and
case-folding both sides, since the admin form takes free text.
"""

from typing import Optional, Iterable, TypeVar, Type
from enum import Enum

from canteen_gate.schemas import CandidateUser, MaintenanceRule, TargetingType, YearType

E = TypeVar("E", bound=Enum)


def normalize_identifier(value: Optional[str]) -> Optional[str]:
    """Trim and case-fold an identifier; blank values become None."""
    if value is None:
        return None
    cleaned = str(value).strip().casefold()
    return cleaned or None


def _normalized_set(values: Iterable[str]) -> set[str]:
    return {v for v in (normalize_identifier(x) for x in values) if v}


def _coerce(enum_cls: Type[E], value, default: E) -> Optional[E]:
    """Map a raw rule value onto an enum; None when the value is unknown."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return enum_cls(value.strip().lower() if isinstance(value, str) else value)
    except ValueError:
        return None


def resolve_year(user: CandidateUser, year_type: YearType) -> Optional[int]:
    """Pick the academic year the rule's target years are compared with."""
    if year_type is YearType.CURRENT:
        return user.current_study_year
    if year_type is YearType.JOINING:
        return user.joining_year
    return user.passing_out_year


def matches_specific(rule: MaintenanceRule, user: CandidateUser) -> bool:
    targets = _normalized_set(rule.specific_users)
    identifiers = (
        normalize_identifier(user.register_number),
        normalize_identifier(user.staff_id),
    )
    return any(i is not None and i in targets for i in identifiers)


def matches_department(rule: MaintenanceRule, user: CandidateUser) -> bool:
    if not user.is_student:
        return False
    department = normalize_identifier(user.department)
    if department is None:
        return False
    return department in _normalized_set(rule.target_departments)


def matches_year(rule: MaintenanceRule, user: CandidateUser) -> bool:
    if not user.is_student:
        return False
    year_type = _coerce(YearType, rule.year_type, YearType.CURRENT)
    if year_type is None:
        return False
    year = resolve_year(user, year_type)
    if year is None:
        return False
    return year in set(rule.target_years)


def is_blocked(rule: MaintenanceRule, user: CandidateUser) -> bool:
    """
    Decide whether ``user`` is blocked by ``rule``.

    An inactive rule never blocks. A missing targeting type on an active
    rule means everyone; an unrecognised one matches nobody.

    Args:
        rule: Current maintenance rule
        user: Signed-in user

    Returns:
        bool: True if the maintenance screen must be shown to the user
    """
    if not rule.is_active:
        return False

    targeting = _coerce(TargetingType, rule.targeting_type, TargetingType.ALL)

    if targeting is TargetingType.ALL:
        return True
    if targeting is TargetingType.SPECIFIC:
        return matches_specific(rule, user)
    if targeting is TargetingType.DEPARTMENT:
        return matches_department(rule, user)
    if targeting is TargetingType.YEAR:
        return matches_year(rule, user)
    if targeting is TargetingType.YEAR_DEPARTMENT:
        return matches_department(rule, user) and matches_year(rule, user)

    return False
