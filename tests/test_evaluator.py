import pytest

from canteen_gate.schemas import CandidateUser, MaintenanceRule
from canteen_gate.services.maintenance import is_blocked, normalize_identifier


def make_rule(**overrides):
    values = {"is_active": True, "targeting_type": "all"}
    values.update(overrides)
    return MaintenanceRule(**values)


def student(**overrides):
    values = {
        "id": "s1",
        "role": "student",
        "register_number": "711523CSE001",
        "department": "CSE",
        "current_study_year": 2,
        "joining_year": 2023,
        "passing_out_year": 2027,
    }
    values.update(overrides)
    return CandidateUser(**values)


def staff(**overrides):
    values = {"id": "t1", "role": "staff", "staff_id": "KIT-STF-042", "department": "CSE"}
    values.update(overrides)
    return CandidateUser(**values)


ADMIN = CandidateUser(id="a1", role="admin", is_admin=True)


# =============================================================================
# ACTIVATION
# =============================================================================

@pytest.mark.parametrize(
    "targeting", ["all", "specific", "department", "year", "year_department", "bogus", None]
)
def test_inactive_rule_never_blocks(targeting):
    rule = make_rule(
        is_active=False,
        targeting_type=targeting,
        specific_users=["711523CSE001", "KIT-STF-042"],
        target_departments=["CSE"],
        target_years=[2],
    )
    for user in (student(), staff(), ADMIN):
        assert is_blocked(rule, user) is False


def test_all_targets_every_role():
    rule = make_rule()
    for user in (student(), staff(), ADMIN, CandidateUser(role="canteen_owner")):
        assert is_blocked(rule, user) is True


def test_missing_targeting_type_means_everyone():
    assert is_blocked(make_rule(targeting_type=None), staff()) is True
    assert is_blocked(make_rule(targeting_type="  "), staff()) is True


def test_unknown_targeting_type_matches_nobody():
    assert is_blocked(make_rule(targeting_type="faculty"), student()) is False


def test_targeting_type_is_case_insensitive():
    assert is_blocked(make_rule(targeting_type="ALL"), staff()) is True


# =============================================================================
# SPECIFIC USERS
# =============================================================================

def test_specific_matches_register_number():
    rule = make_rule(targeting_type="specific", specific_users=["711523CSE001"])
    assert is_blocked(rule, student()) is True
    assert is_blocked(rule, student(register_number="711523CSE002")) is False


def test_specific_matches_staff_id():
    rule = make_rule(targeting_type="specific", specific_users=["KIT-STF-042"])
    assert is_blocked(rule, staff()) is True


def test_specific_ignores_case_and_whitespace():
    rule = make_rule(targeting_type="specific", specific_users=["  kit-stf-042 "])
    assert is_blocked(rule, staff(staff_id="KIT-STF-042  ")) is True


def test_specific_user_without_identifiers_is_not_matched():
    rule = make_rule(targeting_type="specific", specific_users=["", "  "])
    assert is_blocked(rule, CandidateUser(role="student", register_number="")) is False


def test_specific_with_empty_list_blocks_nobody():
    rule = make_rule(targeting_type="specific", specific_users=[])
    assert is_blocked(rule, student()) is False


# =============================================================================
# DEPARTMENT
# =============================================================================

def test_department_blocks_students_of_listed_departments():
    rule = make_rule(targeting_type="department", target_departments=["CSE", "IT"])
    assert is_blocked(rule, student()) is True
    assert is_blocked(rule, student(department="ECE")) is False


def test_department_never_targets_staff():
    rule = make_rule(targeting_type="department", target_departments=["CSE"])
    assert is_blocked(rule, staff(department="CSE")) is False


def test_department_requires_a_department():
    rule = make_rule(targeting_type="department", target_departments=["CSE"])
    assert is_blocked(rule, student(department=None)) is False
    assert is_blocked(rule, student(department="  ")) is False


def test_department_comparison_is_normalized():
    rule = make_rule(targeting_type="department", target_departments=[" cse "])
    assert is_blocked(rule, student(department="CSE")) is True


def test_student_role_is_normalized():
    rule = make_rule(targeting_type="department", target_departments=["CSE"])
    assert is_blocked(rule, student(role=" Student ")) is True


# =============================================================================
# YEAR
# =============================================================================

@pytest.mark.parametrize(
    "year_type,years,expected",
    [
        ("current", [2], True),
        ("current", [3], False),
        ("joining", [2023], True),
        ("joining", [2022], False),
        ("passing", [2027], True),
        ("passing", [2026], False),
    ],
)
def test_year_uses_selected_year_type(year_type, years, expected):
    rule = make_rule(targeting_type="year", year_type=year_type, target_years=years)
    assert is_blocked(rule, student()) is expected


def test_missing_year_type_means_current_year():
    rule = make_rule(targeting_type="year", year_type=None, target_years=[2])
    assert is_blocked(rule, student()) is True


def test_unknown_year_type_matches_nobody():
    rule = make_rule(targeting_type="year", year_type="graduation", target_years=[2027])
    assert is_blocked(rule, student()) is False


def test_year_never_targets_staff():
    rule = make_rule(targeting_type="year", target_years=[2])
    assert is_blocked(rule, staff()) is False


def test_student_without_the_year_is_not_matched():
    rule = make_rule(targeting_type="year", year_type="joining", target_years=[2023])
    assert is_blocked(rule, student(joining_year=None)) is False


# =============================================================================
# YEAR + DEPARTMENT
# =============================================================================

def test_year_department_requires_both():
    rule = make_rule(
        targeting_type="year_department",
        target_departments=["CSE"],
        target_years=[2],
    )
    assert is_blocked(rule, student()) is True
    assert is_blocked(rule, student(department="ECE")) is False
    assert is_blocked(rule, student(current_study_year=3)) is False


def test_year_department_never_targets_staff():
    rule = make_rule(
        targeting_type="year_department",
        target_departments=["CSE"],
        target_years=[2],
    )
    assert is_blocked(rule, staff()) is False


# =============================================================================
# PURITY
# =============================================================================

def test_evaluation_does_not_modify_inputs():
    rule = make_rule(targeting_type="department", target_departments=[" cse "])
    user = student()
    rule_before = rule.model_dump()
    user_before = user.model_dump()

    for _ in range(3):
        assert is_blocked(rule, user) is True

    assert rule.model_dump() == rule_before
    assert user.model_dump() == user_before


def test_normalize_identifier():
    assert normalize_identifier("  KIT-STF-042 ") == "kit-stf-042"
    assert normalize_identifier("   ") is None
    assert normalize_identifier(None) is None
