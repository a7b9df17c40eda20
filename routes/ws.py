"""
WebSocket endpoint for real-time complaint notifications.

Query parameters:
- token: bearer token from the identity service (optional while anonymous
  observers are allowed; anonymous observers only receive broadcast events)

Authenticated observers can follow individual complaints by sending
``{"action": "subscribe", "complaint_id": 12}`` (and ``"unsubscribe"``).
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from config import NOTIFY_ALLOW_ANONYMOUS
from database import get_db
from dependencies import resolve_user
from errors import AppError
from models import Department, Role
from security import decode_token, token_email
from services.complaints import can_view, get_complaint_by_id
from services.notifications import (
    BROADCAST_TOPIC,
    complaint_topic,
    department_topic,
    hub,
    user_topic,
)
from services.roles import categories_for

router = APIRouter()
logger = logging.getLogger("complaintdesk.ws")


def identity_topics(user_id: int, role: Role, department: Department) -> List[str]:
    topics = [BROADCAST_TOPIC, user_topic(user_id)]
    if role in (Role.ADMIN, Role.SUPER_ADMIN):
        if categories_for(role, department) is None:
            topics.append(department_topic(Department.ALL))
        else:
            topics.append(department_topic(department))
    return topics


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = None,
    db: Session = Depends(get_db),
):
    identity = None
    if token:
        try:
            user = resolve_user(db, token_email(decode_token(token)))
            identity = (user.id, user.role, user.department)
        except AppError as exc:
            await websocket.close(code=1008, reason=exc.message)
            return
        finally:
            db.close()
    elif not NOTIFY_ALLOW_ANONYMOUS:
        await websocket.close(code=1008, reason="Authentication required")
        return

    await websocket.accept()
    hub.bind_loop(asyncio.get_running_loop())

    topics = identity_topics(*identity) if identity else [BROADCAST_TOPIC]
    hub.subscribe(websocket, *topics)
    logger.info("Observer connected (user %s) on %s", identity[0] if identity else "anonymous", topics)
    await websocket.send_json(
        {
            "type": "connection",
            "status": "connected",
            "user_id": identity[0] if identity else None,
            "topics": sorted(topics),
        }
    )

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            reply = handle_message(db, websocket, identity, message)
            await websocket.send_json(reply)
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)


def handle_message(db: Session, websocket: WebSocket, identity, message) -> dict:
    if not isinstance(message, dict):
        return {"type": "error", "message": "Expected a JSON object"}

    action = message.get("action")
    if action == "ping":
        return {"type": "pong"}
    if action not in ("subscribe", "unsubscribe"):
        return {"type": "error", "message": f"Unknown action: {action}"}

    complaint_id = message.get("complaint_id")
    if not isinstance(complaint_id, int):
        return {"type": "error", "message": "complaint_id must be an integer"}

    if action == "unsubscribe":
        hub.unsubscribe(websocket, complaint_topic(complaint_id))
        return {"type": "unsubscribed", "complaint_id": complaint_id}

    if identity is None:
        return {"type": "error", "message": "Authentication required"}
    user_id, role, department = identity
    try:
        complaint = get_complaint_by_id(db, complaint_id)
        allowed = complaint is not None and can_view(complaint, role, department, user_id)
    finally:
        db.close()
    if not allowed:
        return {"type": "error", "message": "Complaint not found or not visible"}

    hub.subscribe(websocket, complaint_topic(complaint_id))
    return {"type": "subscribed", "complaint_id": complaint_id}
