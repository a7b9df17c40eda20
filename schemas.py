from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from models import (
    ActivityAction,
    AuthorRole,
    Category,
    ComplaintStatus,
    Department,
    Priority,
    Role,
)


class UserOut(BaseModel):
    id: int
    email: EmailStr
    full_name: Optional[str] = None
    role: Role
    department: Department

    model_config = ConfigDict(from_attributes=True)


class ComplaintCreate(BaseModel):
    # Blank titles and unknown categories are rejected by the store.
    title: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=5000)
    image_url: Optional[str] = Field(
        default=None,
        max_length=1000,
        validation_alias=AliasChoices("image_url", "image"),
    )


class ComplaintStatusUpdate(BaseModel):
    status: Optional[str] = None
    remarks: Optional[str] = Field(default=None, max_length=2000)


class ComplaintUpdateCreate(BaseModel):
    message: Optional[str] = Field(default=None, max_length=2000)


class ComplaintOut(BaseModel):
    id: int
    author_id: int
    author_email: Optional[str] = None
    category: Category
    status: ComplaintStatus
    priority: Priority
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    claimed_by: Optional[int] = None
    claimer_email: Optional[str] = None
    escalation_flag: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ComplaintUpdateOut(BaseModel):
    id: int
    complaint_id: int
    message: str
    author_role: AuthorRole
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ComplaintActivityOut(BaseModel):
    id: int
    complaint_id: int
    actor_id: Optional[int]
    action: ActivityAction
    new_state: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TimelineEventOut(BaseModel):
    type: str
    title: str
    description: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class EscalationRunOut(BaseModel):
    priority_bumped: List[int] = Field(default_factory=list)
    escalated: List[int] = Field(default_factory=list)
