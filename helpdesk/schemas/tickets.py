# helpdesk/schemas/tickets.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from helpdesk.db.models import PriorityEnum, TicketStatusEnum
from helpdesk.schemas.categories import CategoryOut
from helpdesk.schemas.users import UserBrief


class TicketCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    priority: PriorityEnum = Field(default=PriorityEnum.medium)
    category_id: Optional[int] = None


class StatusIn(BaseModel):
    status: str


class AssignIn(BaseModel):
    # null unassigns
    assigned_agent_id: Optional[int] = None


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject: str
    description: str
    status: TicketStatusEnum
    priority: PriorityEnum
    category_id: Optional[int] = None
    category: Optional[CategoryOut] = None
    user_id: int
    owner: Optional[UserBrief] = None
    assigned_agent_id: Optional[int] = None
    assigned_agent: Optional[UserBrief] = None
    upvotes: int = 0
    downvotes: int = 0
    created_at: datetime
    updated_at: datetime


class TicketEnvelope(BaseModel):
    ticket: TicketOut


class TicketList(BaseModel):
    tickets: list[TicketOut]


class StatusCounts(BaseModel):
    open: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0


class DashboardOut(BaseModel):
    counts: StatusCounts
    recent: list[TicketOut]
