from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy.orm import Session

from models import AuthorRole, Complaint, ComplaintStatus, ComplaintUpdate
from services.complaints import get_complaint_by_id

UPDATE_TITLES = {
    AuthorRole.STUDENT: "Student Comment",
    AuthorRole.ADMIN: "Staff Update",
}


@dataclass
class TimelineEvent:
    type: str
    title: str
    timestamp: datetime
    description: Optional[str] = None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iter_timeline_events(complaint: Complaint, updates: List[ComplaintUpdate]) -> Iterator[TimelineEvent]:
    yield TimelineEvent(
        type="created",
        title="Complaint Filed",
        description="Complaint successfully registered in the system.",
        timestamp=_as_utc(complaint.created_at),
    )
    for update in updates:
        yield TimelineEvent(
            type="update",
            title=UPDATE_TITLES[AuthorRole(update.author_role)],
            description=update.message,
            timestamp=_as_utc(update.created_at),
        )
    if complaint.status == ComplaintStatus.RESOLVED:
        yield TimelineEvent(
            type="resolved",
            title="Complaint Resolved",
            description="Issue has been marked as resolved.",
            timestamp=_as_utc(complaint.updated_at),
        )
    elif complaint.status == ComplaintStatus.REJECTED:
        yield TimelineEvent(
            type="rejected",
            title="Complaint Rejected",
            description="Issue was rejected.",
            timestamp=_as_utc(complaint.updated_at),
        )


def get_complaint_timeline(db: Session, complaint_id: int) -> List[TimelineEvent]:
    """
    Chronological view of one complaint: filing, comments and the terminal
    decision. Rebuilt on every call. A missing complaint yields an empty list.
    """
    complaint = get_complaint_by_id(db, complaint_id)
    if complaint is None:
        return []

    updates = (
        db.query(ComplaintUpdate)
        .filter(ComplaintUpdate.complaint_id == complaint_id)
        .order_by(ComplaintUpdate.created_at.asc(), ComplaintUpdate.id.asc())
        .all()
    )
    # sorted() is stable, so equal timestamps keep the order events were built in
    return sorted(iter_timeline_events(complaint, updates), key=lambda event: event.timestamp)
