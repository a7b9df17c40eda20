from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from dependencies import get_current_user, require_role
from errors import ForbiddenError
from models import AuthorRole, ComplaintStatus, Role, User
from rate_limiter import limiter
from schemas import (
    ComplaintActivityOut,
    ComplaintCreate,
    ComplaintOut,
    ComplaintStatusUpdate,
    ComplaintUpdateCreate,
    ComplaintUpdateOut,
    TimelineEventOut,
)
from services.complaints import (
    add_complaint_update,
    can_view,
    create_complaint,
    list_activity,
    list_complaints,
    require_complaint,
)
from services.lifecycle import claim_complaint, resolve_complaint
from services.timeline import get_complaint_timeline

router = APIRouter(prefix="/api/complaints", tags=["Complaints"])

STAFF_ROLES = (Role.ADMIN, Role.SUPER_ADMIN)


def visible_complaint(db: Session, complaint_id: int, user: User):
    complaint = require_complaint(db, complaint_id)
    if not can_view(complaint, user.role, user.department, user.id):
        raise ForbiddenError("Not allowed to view this complaint")
    return complaint


@router.get("", response_model=List[ComplaintOut])
def get_complaints(
    status: Optional[ComplaintStatus] = Query(default=None),
    escalated: Optional[bool] = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_complaints(
        db,
        role=current_user.role,
        department=current_user.department,
        user_id=current_user.id,
        status=status,
        escalated=escalated,
    )


@router.post("", response_model=ComplaintOut, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def file_complaint(
    request: Request,
    payload: ComplaintCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.STUDENT)),
):
    return create_complaint(
        db,
        student_id=current_user.id,
        title=payload.title,
        category=payload.category,
        description=payload.description,
        image_url=payload.image_url,
    )


@router.get("/{complaint_id}", response_model=ComplaintOut)
def get_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return visible_complaint(db, complaint_id, current_user)


@router.patch("/{complaint_id}/claim", response_model=ComplaintOut)
def claim(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(*STAFF_ROLES)),
):
    return claim_complaint(db, complaint_id, current_user)


@router.patch("/{complaint_id}/status", response_model=ComplaintOut)
def update_complaint_status(
    complaint_id: int,
    payload: ComplaintStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(*STAFF_ROLES)),
):
    """
    Moves an in-progress complaint to resolved or rejected.

    Only the claimer may resolve; super-admins may resolve any claimed
    complaint. An unclaimed complaint answers 409 for everyone, super-admins
    included, since status only moves forward through in_progress.
    """
    return resolve_complaint(
        db,
        complaint_id,
        current_user,
        status=payload.status,
        remarks=payload.remarks,
    )


@router.post(
    "/{complaint_id}/updates",
    response_model=ComplaintUpdateOut,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
def post_update(
    request: Request,
    complaint_id: int,
    payload: ComplaintUpdateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    visible_complaint(db, complaint_id, current_user)
    if current_user.role == Role.STUDENT:
        author_role = AuthorRole.STUDENT
    else:
        author_role = AuthorRole.ADMIN
    return add_complaint_update(db, complaint_id, payload.message, author_role)


@router.get("/{complaint_id}/timeline", response_model=List[TimelineEventOut])
def get_timeline(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    visible_complaint(db, complaint_id, current_user)
    return get_complaint_timeline(db, complaint_id)


@router.get("/{complaint_id}/activity", response_model=List[ComplaintActivityOut])
def get_activity(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(*STAFF_ROLES)),
):
    visible_complaint(db, complaint_id, current_user)
    return list_activity(db, complaint_id)
