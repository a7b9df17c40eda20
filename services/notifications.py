"""
Notification fan-out for complaint state changes.

Observers (WebSocket connections in production) subscribe to topics:

- ``broadcast``: every observer, including anonymous ones
- ``complaint:<id>``: observers following one complaint
- ``department:<code>``: admins of a department (``department:all`` for
  unscoped admins and super-admins)
- ``user:<id>``: every connection of one user

Publishing is at-most-once and best-effort. Requests publish after their
transaction commits, from worker threads, so ``publish`` hands the delivery
over to the event loop the observers were registered on and never raises.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from fastapi.encoders import jsonable_encoder

from config import NOTIFY_BROADCAST_UPDATES
from models import Category, Department
from services.roles import departments_covering

logger = logging.getLogger("complaintdesk.notifications")

BROADCAST_TOPIC = "broadcast"

NEW_COMPLAINT = "new_complaint"
COMPLAINT_STATUS_CHANGE = "complaint_status_change"
COMPLAINT_UPDATE = "complaint_update"


def complaint_topic(complaint_id: int) -> str:
    return f"complaint:{complaint_id}"


def department_topic(department: Department) -> str:
    return f"department:{Department(department).value}"


def user_topic(user_id: int) -> str:
    return f"user:{user_id}"


class NotificationHub:
    def __init__(self, broadcast_updates: bool = NOTIFY_BROADCAST_UPDATES):
        self.broadcast_updates = broadcast_updates
        self.topics: Dict[str, Set[Any]] = {}
        self.observer_topics: Dict[Any, Set[str]] = {}
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.pending_tasks: Set[asyncio.Task] = set()

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def subscribe(self, observer: Any, *topics: str) -> None:
        with self._lock:
            for topic in topics:
                self.topics.setdefault(topic, set()).add(observer)
                self.observer_topics.setdefault(observer, set()).add(topic)

    def unsubscribe(self, observer: Any, *topics: str) -> None:
        with self._lock:
            for topic in topics:
                self._discard(observer, topic)

    def disconnect(self, observer: Any) -> None:
        with self._lock:
            for topic in list(self.observer_topics.get(observer, ())):
                self._discard(observer, topic)
            self.observer_topics.pop(observer, None)

    def _discard(self, observer: Any, topic: str) -> None:
        members = self.topics.get(topic)
        if members is not None:
            members.discard(observer)
            if not members:
                del self.topics[topic]
        subscribed = self.observer_topics.get(observer)
        if subscribed is not None:
            subscribed.discard(topic)

    def subscribers(self, topics: Iterable[str]) -> List[Any]:
        """Observers of any of ``topics``, each listed once."""
        seen: List[Any] = []
        with self._lock:
            for topic in topics:
                for observer in self.topics.get(topic, ()):
                    if observer not in seen:
                        seen.append(observer)
        return seen

    async def dispatch(self, event: str, payload: Any, topics: Iterable[str]) -> int:
        message = {"type": event, "event": event, "data": jsonable_encoder(payload)}
        delivered = 0
        for observer in self.subscribers(topics):
            try:
                await observer.send_json(message)
                delivered += 1
            except Exception as exc:
                logger.warning("Dropping observer after failed send of %s: %s", event, exc)
                self.disconnect(observer)
        return delivered

    def publish(self, event: str, payload: Any, topics: Iterable[str]) -> None:
        try:
            topics = list(topics)
            if not self.subscribers(topics):
                return
            loop = self._loop
            if loop is None or not loop.is_running():
                logger.warning("No running event loop, dropping %s notification", event)
                return
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            coroutine = self.dispatch(event, payload, topics)
            if running is loop:
                task = loop.create_task(coroutine)
                self.pending_tasks.add(task)
                task.add_done_callback(self.pending_tasks.discard)
            else:
                asyncio.run_coroutine_threadsafe(coroutine, loop)
        except Exception:
            logger.exception("Failed to publish %s notification", event)

    def publish_lazily(
        self, event: str, build: Callable[[], Tuple[Any, List[str]]]
    ) -> None:
        """Like ``publish``, but a failure while building the message is logged too."""
        try:
            payload, topics = build()
        except Exception:
            logger.exception("Failed to build %s notification", event)
            return
        self.publish(event, payload, topics)

    def complaint_created(self, complaint: Any) -> None:
        self.publish_lazily(
            NEW_COMPLAINT,
            lambda: (
                complaint_payload(complaint),
                [BROADCAST_TOPIC, *_department_topics(complaint.category)],
            ),
        )

    def complaint_status_changed(self, complaint: Any) -> None:
        self.publish_lazily(
            COMPLAINT_STATUS_CHANGE,
            lambda: (
                complaint_payload(complaint),
                [
                    BROADCAST_TOPIC,
                    complaint_topic(complaint.id),
                    user_topic(complaint.author_id),
                    *_department_topics(complaint.category),
                ],
            ),
        )

    def complaint_updated(self, complaint_id: int, update: Any) -> None:
        def build():
            topics = [complaint_topic(complaint_id)]
            if self.broadcast_updates:
                topics.append(BROADCAST_TOPIC)
            payload = {
                "complaint_id": complaint_id,
                "update": {
                    "id": update.id,
                    "complaint_id": update.complaint_id,
                    "message": update.message,
                    "author_role": update.author_role,
                    "created_at": update.created_at,
                },
            }
            return payload, topics

        self.publish_lazily(COMPLAINT_UPDATE, build)


def _department_topics(category: Category) -> List[str]:
    return [
        department_topic(Department.ALL),
        *(department_topic(d) for d in departments_covering(Category(category))),
    ]


def complaint_payload(complaint: Any) -> Dict[str, Any]:
    return {
        "id": complaint.id,
        "author_id": complaint.author_id,
        "author_email": complaint.author_email,
        "category": complaint.category,
        "status": complaint.status,
        "priority": complaint.priority,
        "title": complaint.title,
        "description": complaint.description,
        "image_url": complaint.image_url,
        "claimed_by": complaint.claimed_by,
        "claimer_email": complaint.claimer_email,
        "escalation_flag": complaint.escalation_flag,
        "created_at": complaint.created_at,
        "updated_at": complaint.updated_at,
    }


hub = NotificationHub()
