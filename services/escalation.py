"""
Time-based escalation.

Two independent rules, both pure comparisons against ``created_at``:

- stale open complaints with low/medium priority are bumped to high
- unresolved complaints older than the escalation threshold are flagged for
  super-admin attention

``EscalationScheduler`` runs each rule on its own interval in a background
thread, the way long-running services are scheduled elsewhere in the stack.
A failed pass is logged and retried on the next tick.
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from config import (
    ESCALATION_HOURS,
    ESCALATION_INTERVAL_SECONDS,
    PRIORITY_BUMP_INTERVAL_SECONDS,
    PRIORITY_BUMP_MINUTES,
)
from database import SessionLocal, atomic
from models import (
    ACTIVE_STATUSES,
    Complaint,
    ComplaintStatus,
    Priority,
    utcnow,
)

logger = logging.getLogger("complaintdesk.escalation")

EscalationHook = Callable[[List[int]], None]


def bump_stale_priorities(
    db: Session,
    now: Optional[datetime] = None,
    threshold: timedelta = timedelta(minutes=PRIORITY_BUMP_MINUTES),
) -> List[int]:
    cutoff = (now or utcnow()) - threshold
    with atomic(db):
        stale = (
            db.query(Complaint)
            .filter(
                Complaint.status == ComplaintStatus.OPEN,
                Complaint.priority.in_((Priority.LOW, Priority.MEDIUM)),
                Complaint.created_at < cutoff,
            )
            .all()
        )
        for complaint in stale:
            complaint.priority = Priority.HIGH
        ids = [complaint.id for complaint in stale]
    return ids


def flag_overdue_complaints(
    db: Session,
    now: Optional[datetime] = None,
    threshold: timedelta = timedelta(hours=ESCALATION_HOURS),
) -> List[int]:
    cutoff = (now or utcnow()) - threshold
    with atomic(db):
        overdue = (
            db.query(Complaint)
            .filter(
                Complaint.status.in_(ACTIVE_STATUSES),
                Complaint.escalation_flag.is_(False),
                Complaint.created_at < cutoff,
            )
            .all()
        )
        for complaint in overdue:
            complaint.escalation_flag = True
        ids = [complaint.id for complaint in overdue]
    return ids


def run_escalation_pass(db: Session, now: Optional[datetime] = None) -> Dict[str, List[int]]:
    now = now or utcnow()
    return {
        "priority_bumped": bump_stale_priorities(db, now=now),
        "escalated": flag_overdue_complaints(db, now=now),
    }


class EscalationScheduler:
    """Background thread running the escalation rules on fixed intervals."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        bump_interval: int = PRIORITY_BUMP_INTERVAL_SECONDS,
        escalation_interval: int = ESCALATION_INTERVAL_SECONDS,
        on_bumped: Optional[EscalationHook] = None,
        on_escalated: Optional[EscalationHook] = None,
    ):
        self.session_factory = session_factory
        self.jobs = [
            ("priority bump", bump_stale_priorities, bump_interval, on_bumped),
            ("escalation", flag_overdue_complaints, escalation_interval, on_escalated),
        ]
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def start(self):
        if self.running:
            logger.warning("Escalation scheduler is already running")
            return
        self.running = True
        self._stop.clear()
        self.thread = threading.Thread(
            target=self._run_loop, daemon=True, name="EscalationScheduler"
        )
        self.thread.start()
        logger.info("Escalation scheduler started")

    def stop(self):
        self.running = False
        self._stop.set()
        if self.thread:
            self.thread.join(timeout=10)
        logger.info("Escalation scheduler stopped")

    def _run_loop(self):
        next_run = {name: time.monotonic() + interval for name, _, interval, _ in self.jobs}
        while not self._stop.is_set():
            current = time.monotonic()
            for name, rule, interval, hook in self.jobs:
                if current >= next_run[name]:
                    self.run_job(name, rule, hook)
                    next_run[name] = time.monotonic() + interval
            wake_at = min(next_run.values())
            self._stop.wait(max(0.0, wake_at - time.monotonic()))

    def run_job(self, name: str, rule, hook: Optional[EscalationHook] = None) -> List[int]:
        db = self.session_factory()
        try:
            ids = rule(db)
        except Exception as e:
            logger.error(f"Error in {name} pass: {e}", exc_info=True)
            return []
        finally:
            db.close()

        if ids:
            logger.info("%s pass: %d complaint(s) updated %s", name.capitalize(), len(ids), ids)
            if hook is not None:
                try:
                    hook(ids)
                except Exception:
                    logger.exception("%s hook failed", name.capitalize())
        return ids

    def run_now(self) -> Dict[str, List[int]]:
        return {
            name: self.run_job(name, rule, hook) for name, rule, _, hook in self.jobs
        }
