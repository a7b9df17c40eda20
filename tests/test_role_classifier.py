import pytest

from models import Category, Department, Role
from services.roles import (
    categories_for,
    classify_role_and_department,
    department_covers,
    departments_covering,
    is_institutional_email,
    parse_department,
)


@pytest.mark.parametrize(
    "email, role, department",
    [
        ("superadmin@nitjsr.ac.in", Role.SUPER_ADMIN, Department.ALL),
        ("chiefwarden@nitjsr.ac.in", Role.ADMIN, Department.HOSTEL),
        ("it@nitjsr.ac.in", Role.ADMIN, Department.INTERNET),
        ("director@nitjsr.ac.in", Role.ADMIN, Department.ALL),
        ("2024ugcs001@nitjsr.ac.in", Role.STUDENT, Department.NONE),
        ("2022pgme123@nitjsr.ac.in", Role.STUDENT, Department.NONE),
        ("girls.hostel.warden@nitjsr.ac.in", Role.ADMIN, Department.HOSTEL),
        ("food.committee@nitjsr.ac.in", Role.ADMIN, Department.MESS),
        ("hod.cse@nitjsr.ac.in", Role.ADMIN, Department.ACADEMIC),
        ("wifi.support@nitjsr.ac.in", Role.ADMIN, Department.INTERNET),
        ("civil.works@nitjsr.ac.in", Role.ADMIN, Department.INFRASTRUCTURE),
        ("registrar@nitjsr.ac.in", Role.ADMIN, Department.OTHER),
    ],
)
def test_classification_rules(email, role, department):
    result = classify_role_and_department(email, super_admin_emails={"superadmin@nitjsr.ac.in"})
    assert result == (role, department)


def test_classification_normalizes_case_and_whitespace():
    result = classify_role_and_department("  2024UGCS001@NITJSR.AC.IN ")
    assert result.role == Role.STUDENT


def test_super_admin_list_takes_priority_over_student_pattern():
    email = "2024ugcs001@nitjsr.ac.in"
    result = classify_role_and_department(email, super_admin_emails=[email])
    assert result == (Role.SUPER_ADMIN, Department.ALL)


def test_classification_is_idempotent():
    email = "estate.office@nitjsr.ac.in"
    assert classify_role_and_department(email) == classify_role_and_department(email)


def test_malformed_roll_number_is_not_a_student():
    # three-digit year
    result = classify_role_and_department("202ugcs001@nitjsr.ac.in")
    assert result.role == Role.ADMIN


def test_institutional_domain_check():
    assert is_institutional_email("2024ugcs001@nitjsr.ac.in")
    assert not is_institutional_email("someone@gmail.com")
    assert not is_institutional_email("@nitjsr.ac.in")
    assert not is_institutional_email("mess@nitjsr.ac.in.evil.com")


def test_department_mapping_table():
    assert department_covers(Department.INTERNET, Category.INTERNET)
    assert not department_covers(Department.HOSTEL, Category.MESS)
    assert not department_covers(Department.NONE, Category.OTHER)
    assert categories_for(Role.SUPER_ADMIN, Department.NONE) is None
    assert categories_for(Role.ADMIN, Department.ALL) is None
    assert categories_for(Role.ADMIN, Department.MESS) == {Category.MESS}
    assert departments_covering(Category.HOSTEL) == (Department.HOSTEL,)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Internet / Network", Department.INTERNET),
        ("general", Department.ALL),
        ("superadmin", Department.ALL),
        ("hostel", Department.HOSTEL),
        ("n/a", Department.NONE),
        ("canteen", Department.OTHER),
        (None, Department.OTHER),
    ],
)
def test_parse_department(value, expected):
    assert parse_department(value) == expected
