"""
Claim and resolution state machine.

    open --claim--> in_progress --resolve--> resolved | rejected

Both transitions are conditional UPDATEs, so two admins racing for the same
complaint get exactly one winner, and a complaint can reach a terminal status
only once. The activity log row is written in the same transaction as the
status change; notifications go out after commit.
"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from config import ENFORCE_DEPARTMENT_ON_CLAIM
from database import atomic
from errors import (
    AlreadyClaimedError,
    ForbiddenError,
    InvalidTransitionError,
    ValidationError,
)
from models import ActivityAction, Complaint, ComplaintStatus, Role, User, utcnow
from services.complaints import add_activity, get_complaint_by_id, require_complaint
from services.notifications import hub
from services.roles import department_covers, parse_department

logger = logging.getLogger("complaintdesk.lifecycle")

RESOLUTION_ACTIONS = {
    ComplaintStatus.RESOLVED: ActivityAction.RESOLVED,
    ComplaintStatus.REJECTED: ActivityAction.REJECTED,
}


def parse_resolution_status(value) -> ComplaintStatus:
    try:
        status = ComplaintStatus((value or "").strip().lower())
    except (AttributeError, ValueError):
        status = None
    if status not in RESOLUTION_ACTIONS:
        raise ValidationError("status must be resolved or rejected")
    return status


def claim_complaint(
    db: Session,
    complaint_id: int,
    actor: User,
    enforce_department: Optional[bool] = None,
) -> Complaint:
    if enforce_department is None:
        enforce_department = ENFORCE_DEPARTMENT_ON_CLAIM

    complaint = require_complaint(db, complaint_id)
    if (
        enforce_department
        and actor.role == Role.ADMIN
        and not department_covers(parse_department(actor.department), complaint.category)
    ):
        raise ForbiddenError("Department does not match complaint category")

    with atomic(db):
        result = db.execute(
            update(Complaint)
            .where(
                Complaint.id == complaint_id,
                Complaint.claimed_by.is_(None),
                Complaint.status == ComplaintStatus.OPEN,
            )
            .values(
                claimed_by=actor.id,
                status=ComplaintStatus.IN_PROGRESS,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AlreadyClaimedError("Already claimed")
        add_activity(
            db,
            complaint_id=complaint_id,
            action=ActivityAction.CLAIMED,
            actor_id=actor.id,
            new_state={
                "claimed_by": actor.id,
                "status": ComplaintStatus.IN_PROGRESS.value,
            },
        )

    complaint = get_complaint_by_id(db, complaint_id)
    logger.info("Complaint %s claimed by %s", complaint_id, actor.id)
    hub.complaint_status_changed(complaint)
    return complaint


def resolve_complaint(
    db: Session,
    complaint_id: int,
    actor: User,
    status,
    remarks: Optional[str],
) -> Complaint:
    new_status = parse_resolution_status(status)
    remarks = (remarks or "").strip()
    if not remarks:
        raise ValidationError("remarks required")

    complaint = require_complaint(db, complaint_id)
    if actor.role != Role.SUPER_ADMIN and complaint.claimed_by != actor.id:
        raise ForbiddenError("You cannot resolve a complaint claimed by someone else")

    action = RESOLUTION_ACTIONS[new_status]
    with atomic(db):
        result = db.execute(
            update(Complaint)
            .where(
                Complaint.id == complaint_id,
                Complaint.status == ComplaintStatus.IN_PROGRESS,
            )
            .values(status=new_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError("Complaint is not in progress")
        add_activity(
            db,
            complaint_id=complaint_id,
            action=action,
            actor_id=actor.id,
            new_state={"status": new_status.value, "remarks": remarks},
        )

    complaint = get_complaint_by_id(db, complaint_id)
    logger.info("Complaint %s %s by %s", complaint_id, new_status.value, actor.id)
    hub.complaint_status_changed(complaint)
    return complaint
