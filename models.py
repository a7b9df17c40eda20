import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(str, enum.Enum):
    ACADEMIC = "academic"
    HOSTEL = "hostel"
    MESS = "mess"
    INTERNET = "internet"
    INFRASTRUCTURE = "infrastructure"
    FINANCE = "finance"
    OTHER = "other"


class Priority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplaintStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    REJECTED = "rejected"


ACTIVE_STATUSES = (ComplaintStatus.OPEN, ComplaintStatus.IN_PROGRESS)
TERMINAL_STATUSES = (ComplaintStatus.RESOLVED, ComplaintStatus.REJECTED)


class Role(str, enum.Enum):
    STUDENT = "student"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class Department(str, enum.Enum):
    ALL = "all"
    ACADEMIC = "academic"
    HOSTEL = "hostel"
    MESS = "mess"
    INTERNET = "internet"
    INFRASTRUCTURE = "infrastructure"
    FINANCE = "finance"
    OTHER = "other"
    NONE = "n/a"


class ActivityAction(str, enum.Enum):
    CREATED = "CREATED"
    CLAIMED = "CLAIMED"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


class AuthorRole(str, enum.Enum):
    STUDENT = "student"
    ADMIN = "admin"


def _enum_column(enum_cls, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        create_constraint=True,
        validate_strings=True,
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(_enum_column(Role, "user_role"), nullable=False, index=True)
    department = Column(
        _enum_column(Department, "user_department"),
        nullable=False,
        default=Department.NONE,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    complaints = relationship(
        "Complaint", back_populates="author", foreign_keys="Complaint.author_id"
    )


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category = Column(
        _enum_column(Category, "complaint_category"), nullable=False, index=True
    )
    status = Column(
        _enum_column(ComplaintStatus, "complaint_status"),
        nullable=False,
        default=ComplaintStatus.OPEN,
        index=True,
    )
    priority = Column(
        _enum_column(Priority, "complaint_priority"),
        nullable=False,
        default=Priority.MEDIUM,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(1000), nullable=True)
    claimed_by = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    escalation_flag = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    author = relationship(
        "User", back_populates="complaints", foreign_keys=[author_id]
    )
    claimer = relationship("User", foreign_keys=[claimed_by])
    activities = relationship(
        "ComplaintActivity",
        back_populates="complaint",
        order_by="ComplaintActivity.id",
    )
    updates = relationship(
        "ComplaintUpdate",
        back_populates="complaint",
        order_by="ComplaintUpdate.id",
    )

    __table_args__ = (
        # One non-terminal complaint per author, enforced by the database.
        Index(
            "uq_complaints_one_active_per_author",
            "author_id",
            unique=True,
            sqlite_where=text("status IN ('open', 'in_progress')"),
            postgresql_where=text("status IN ('open', 'in_progress')"),
        ),
    )

    @property
    def author_email(self):
        return self.author.email if self.author else None

    @property
    def claimer_email(self):
        return self.claimer.email if self.claimer else None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ComplaintActivity(Base):
    __tablename__ = "complaint_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    complaint_id = Column(
        Integer, ForeignKey("complaints.id"), index=True, nullable=False
    )
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action = Column(_enum_column(ActivityAction, "activity_action"), nullable=False)
    new_state = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    complaint = relationship("Complaint", back_populates="activities")


class ComplaintUpdate(Base):
    __tablename__ = "complaint_updates"

    id = Column(Integer, primary_key=True, index=True)
    complaint_id = Column(
        Integer, ForeignKey("complaints.id"), index=True, nullable=False
    )
    message = Column(Text, nullable=False)
    author_role = Column(_enum_column(AuthorRole, "update_author_role"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    complaint = relationship("Complaint", back_populates="updates")
