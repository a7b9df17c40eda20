import os


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./complaint_desk.db")
AUTO_CREATE_TABLES = _env_flag("AUTO_CREATE_TABLES", "true")

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")

INSTITUTION_DOMAIN = os.getenv("INSTITUTION_DOMAIN", "nitjsr.ac.in").strip().lower()
SUPER_ADMIN_EMAILS = frozenset(
    email.strip().lower()
    for email in os.getenv("SUPER_ADMIN_EMAILS", "").split(",")
    if email.strip()
)

# Department match on claim is off by default ("open access" claiming).
ENFORCE_DEPARTMENT_ON_CLAIM = _env_flag("ENFORCE_DEPARTMENT_ON_CLAIM", "false")

PRIORITY_BUMP_MINUTES = int(os.getenv("PRIORITY_BUMP_MINUTES", "30"))
ESCALATION_HOURS = int(os.getenv("ESCALATION_HOURS", "24"))
PRIORITY_BUMP_INTERVAL_SECONDS = int(os.getenv("PRIORITY_BUMP_INTERVAL_SECONDS", "300"))
ESCALATION_INTERVAL_SECONDS = int(os.getenv("ESCALATION_INTERVAL_SECONDS", "3600"))
ESCALATION_SCHEDULER_ENABLED = _env_flag("ESCALATION_SCHEDULER_ENABLED", "true")

NOTIFY_BROADCAST_UPDATES = _env_flag("NOTIFY_BROADCAST_UPDATES", "true")
NOTIFY_ALLOW_ANONYMOUS = _env_flag("NOTIFY_ALLOW_ANONYMOUS", "true")
