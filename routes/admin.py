import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from dependencies import require_role
from models import Role, User
from schemas import EscalationRunOut
from services.escalation import run_escalation_pass

router = APIRouter(prefix="/api/admin", tags=["Admin"])
logger = logging.getLogger("complaintdesk.admin")


@router.post("/escalations/run", response_model=EscalationRunOut)
def run_escalations(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.SUPER_ADMIN)),
):
    """
    Runs the priority-bump and escalation rules immediately instead of waiting
    for the next scheduler tick.
    """
    result = run_escalation_pass(db)
    logger.info(
        "Manual escalation pass by %s: %d bumped, %d escalated",
        current_user.id,
        len(result["priority_bumped"]),
        len(result["escalated"]),
    )
    return EscalationRunOut(**result)
