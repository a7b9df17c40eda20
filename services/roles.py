import re
from typing import Dict, FrozenSet, Iterable, Mapping, NamedTuple, Optional, Tuple

from config import INSTITUTION_DOMAIN, SUPER_ADMIN_EMAILS
from models import Category, Department, Role

VIP_MAILBOXES: Dict[str, Department] = {
    "chiefwarden": Department.HOSTEL,
    "mess": Department.MESS,
    "it": Department.INTERNET,
    "deanacad": Department.ACADEMIC,
    "estate": Department.INFRASTRUCTURE,
    "enquiry": Department.OTHER,
    "dean.sw": Department.ALL,
    "director": Department.ALL,
}

# Checked in order; the first keyword found in the local part wins.
DEPARTMENT_KEYWORDS: Tuple[Tuple[Tuple[str, ...], Department], ...] = (
    (("warden",), Department.HOSTEL),
    (("mess", "food"), Department.MESS),
    (("hod", "dean", "faculty"), Department.ACADEMIC),
    (("network", "wifi"), Department.INTERNET),
    (("estate", "civil", "electrical", "maintenance"), Department.INFRASTRUCTURE),
)

DEPARTMENT_CATEGORIES: Dict[Department, FrozenSet[Category]] = {
    Department.ALL: frozenset(Category),
    Department.ACADEMIC: frozenset({Category.ACADEMIC}),
    Department.HOSTEL: frozenset({Category.HOSTEL}),
    Department.MESS: frozenset({Category.MESS}),
    Department.INTERNET: frozenset({Category.INTERNET}),
    Department.INFRASTRUCTURE: frozenset({Category.INFRASTRUCTURE}),
    Department.FINANCE: frozenset({Category.FINANCE}),
    Department.OTHER: frozenset({Category.OTHER}),
    Department.NONE: frozenset(),
}

LEGACY_DEPARTMENT_NAMES: Dict[str, Department] = {
    "general": Department.ALL,
    "superadmin": Department.ALL,
    "internet / network": Department.INTERNET,
    "network": Department.INTERNET,
}


class Classification(NamedTuple):
    role: Role
    department: Department


def student_email_pattern(domain: str) -> "re.Pattern[str]":
    # admission year, program code, branch code, roll number: 2024ugcs001
    return re.compile(r"^\d{4}[a-z]{2}[a-z]{2}\d{3}@" + re.escape(domain) + r"$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_institutional_email(email: str, domain: str = INSTITUTION_DOMAIN) -> bool:
    local, sep, host = normalize_email(email).rpartition("@")
    return bool(sep and local and host == domain)


def classify_role_and_department(
    email: str,
    super_admin_emails: Iterable[str] = SUPER_ADMIN_EMAILS,
    vip_mailboxes: Optional[Mapping[str, Department]] = None,
    domain: str = INSTITUTION_DOMAIN,
) -> Classification:
    """
    Derive the role and department implied by an institutional email address.

    Rules are applied in priority order: configured super-admins, VIP
    departmental mailboxes, the student roll-number convention, keyword
    heuristics on the local part, and finally an unscoped ``other`` admin.
    The caller is responsible for rejecting addresses outside ``domain``.
    """
    normalized = normalize_email(email)
    if normalized in {normalize_email(e) for e in super_admin_emails}:
        return Classification(Role.SUPER_ADMIN, Department.ALL)

    local, _, host = normalized.rpartition("@")
    mailboxes = VIP_MAILBOXES if vip_mailboxes is None else vip_mailboxes
    if host == domain and local in mailboxes:
        return Classification(Role.ADMIN, mailboxes[local])

    if student_email_pattern(domain).match(normalized):
        return Classification(Role.STUDENT, Department.NONE)

    for keywords, department in DEPARTMENT_KEYWORDS:
        if any(keyword in local for keyword in keywords):
            return Classification(Role.ADMIN, department)

    return Classification(Role.ADMIN, Department.OTHER)


def parse_department(value) -> Department:
    """Map a stored or legacy department name onto the closed enum."""
    if isinstance(value, Department):
        return value
    name = (value or "").strip().lower()
    if name in LEGACY_DEPARTMENT_NAMES:
        return LEGACY_DEPARTMENT_NAMES[name]
    try:
        return Department(name)
    except ValueError:
        return Department.OTHER


def categories_for(role: Role, department: Department) -> Optional[FrozenSet[Category]]:
    """Categories visible to a caller; None means unrestricted."""
    if role == Role.SUPER_ADMIN or department == Department.ALL:
        return None
    return DEPARTMENT_CATEGORIES[department]


def department_covers(department: Department, category: Category) -> bool:
    return category in DEPARTMENT_CATEGORIES[department]


def departments_covering(category: Category) -> Tuple[Department, ...]:
    return tuple(
        department
        for department, categories in DEPARTMENT_CATEGORIES.items()
        if department != Department.ALL and category in categories
    )
