import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import atomic
from errors import ActiveComplaintError, NotFoundError, ValidationError
from models import (
    ACTIVE_STATUSES,
    ActivityAction,
    AuthorRole,
    Category,
    Complaint,
    ComplaintActivity,
    ComplaintStatus,
    ComplaintUpdate,
    Department,
    Priority,
    Role,
)
from services.notifications import hub
from services.roles import categories_for

logger = logging.getLogger("complaintdesk.complaints")


def _with_emails(db: Session):
    return db.query(Complaint).options(
        joinedload(Complaint.author), joinedload(Complaint.claimer)
    )


def parse_category(value) -> Category:
    try:
        return Category((value or "").strip().lower())
    except (AttributeError, ValueError):
        raise ValidationError(
            "Invalid category",
            details={"valid": [category.value for category in Category]},
        ) from None


def add_activity(
    db: Session,
    complaint_id: int,
    action: ActivityAction,
    actor_id: Optional[int],
    new_state: dict,
) -> ComplaintActivity:
    activity = ComplaintActivity(
        complaint_id=complaint_id,
        actor_id=actor_id,
        action=action,
        new_state=new_state,
    )
    db.add(activity)
    return activity


def list_complaints(
    db: Session,
    role: Role,
    department: Department,
    user_id: int,
    status: Optional[ComplaintStatus] = None,
    escalated: Optional[bool] = None,
) -> List[Complaint]:
    query = _with_emails(db)

    if role == Role.STUDENT:
        query = query.filter(Complaint.author_id == user_id)
    else:
        visible = categories_for(role, department)
        if visible is not None:
            query = query.filter(Complaint.category.in_(sorted(visible)))

    if status is not None:
        query = query.filter(Complaint.status == status)
    if escalated is not None:
        query = query.filter(Complaint.escalation_flag.is_(escalated))

    return query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).all()


def get_complaint_by_id(db: Session, complaint_id: int) -> Optional[Complaint]:
    return _with_emails(db).filter(Complaint.id == complaint_id).first()


def require_complaint(db: Session, complaint_id: int) -> Complaint:
    complaint = get_complaint_by_id(db, complaint_id)
    if complaint is None:
        raise NotFoundError("Complaint not found")
    return complaint


def can_view(complaint: Complaint, role: Role, department: Department, user_id: int) -> bool:
    if role == Role.STUDENT:
        return complaint.author_id == user_id
    visible = categories_for(role, department)
    return visible is None or complaint.category in visible


def has_active_complaint(db: Session, student_id: int) -> bool:
    return (
        db.query(Complaint.id)
        .filter(
            Complaint.author_id == student_id,
            Complaint.status.in_(ACTIVE_STATUSES),
        )
        .first()
        is not None
    )


def create_complaint(
    db: Session,
    student_id: int,
    title: Optional[str],
    category,
    description: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Complaint:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    parsed_category = parse_category(category)

    if has_active_complaint(db, student_id):
        raise ActiveComplaintError("Active complaint already exists")

    complaint = Complaint(
        author_id=student_id,
        category=parsed_category,
        status=ComplaintStatus.OPEN,
        priority=Priority.MEDIUM,
        title=title,
        description=description,
        image_url=image_url,
    )
    try:
        with atomic(db):
            db.add(complaint)
            db.flush()
            add_activity(
                db,
                complaint_id=complaint.id,
                action=ActivityAction.CREATED,
                actor_id=student_id,
                new_state={
                    "id": complaint.id,
                    "author_id": student_id,
                    "category": parsed_category.value,
                    "status": ComplaintStatus.OPEN.value,
                    "priority": Priority.MEDIUM.value,
                    "title": title,
                    "description": description,
                    "image_url": image_url,
                },
            )
    except IntegrityError as exc:
        # A concurrent submission won the partial unique index.
        raise ActiveComplaintError("Active complaint already exists") from exc

    logger.info("Complaint %s created by student %s", complaint.id, student_id)
    complaint = get_complaint_by_id(db, complaint.id)
    hub.complaint_created(complaint)
    return complaint


def add_complaint_update(
    db: Session, complaint_id: int, message: Optional[str], author_role: AuthorRole
) -> ComplaintUpdate:
    message = (message or "").strip()
    if not message:
        raise ValidationError("Message is required")
    if db.query(Complaint.id).filter(Complaint.id == complaint_id).first() is None:
        raise NotFoundError("Complaint not found")

    update = ComplaintUpdate(
        complaint_id=complaint_id,
        message=message,
        author_role=AuthorRole(author_role),
    )
    with atomic(db):
        db.add(update)
    db.refresh(update)

    hub.complaint_updated(complaint_id, update)
    return update


def list_activity(db: Session, complaint_id: int) -> List[ComplaintActivity]:
    return (
        db.query(ComplaintActivity)
        .filter(ComplaintActivity.complaint_id == complaint_id)
        .order_by(ComplaintActivity.created_at.asc(), ComplaintActivity.id.asc())
        .all()
    )
