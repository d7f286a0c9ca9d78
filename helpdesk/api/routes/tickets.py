# helpdesk/api/routes/tickets.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, status

from helpdesk.api.deps import CurrentPrincipal, DBDep
from helpdesk.schemas.tickets import (
    AssignIn,
    DashboardOut,
    StatusIn,
    TicketCreate,
    TicketEnvelope,
    TicketList,
    TicketOut,
)
from helpdesk.services import tickets as tickets_service

router = APIRouter()
dashboard_router = APIRouter()


def _envelope(ticket) -> TicketEnvelope:
    return TicketEnvelope(ticket=TicketOut.model_validate(ticket))


@router.get("", response_model=TicketList)
async def list_tickets(
    db: DBDep,
    current: CurrentPrincipal,
    status_: Optional[str] = Query(default=None, alias="status"),
    priority: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None, include_in_schema=False),
    sort: str = Query(default="created_at"),
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    rows = await tickets_service.list_tickets(
        db,
        current,
        status=status_,
        priority=priority,
        category=category,
        search=search or q,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )
    return TicketList(tickets=[TicketOut.model_validate(t) for t in rows])


@router.post("", response_model=TicketEnvelope, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreate, db: DBDep, current: CurrentPrincipal):
    ticket = await tickets_service.create_ticket(
        db,
        current,
        subject=payload.subject,
        description=payload.description,
        priority=payload.priority,
        category_id=payload.category_id,
    )
    return _envelope(ticket)


@router.get("/{ticket_id}", response_model=TicketEnvelope)
async def get_ticket(ticket_id: int, db: DBDep, current: CurrentPrincipal):
    return _envelope(await tickets_service.get_ticket(db, current, ticket_id))


@router.post("/{ticket_id}/status", response_model=TicketEnvelope)
async def change_status(ticket_id: int, payload: StatusIn, db: DBDep, current: CurrentPrincipal):
    ticket = await tickets_service.change_status(db, current, ticket_id, payload.status)
    return _envelope(ticket)


@router.post("/{ticket_id}/assign", response_model=TicketEnvelope)
async def assign_ticket(ticket_id: int, payload: AssignIn, db: DBDep, current: CurrentPrincipal):
    ticket = await tickets_service.assign_ticket(db, current, ticket_id, payload.assigned_agent_id)
    return _envelope(ticket)


@dashboard_router.get("", response_model=DashboardOut)
async def dashboard(db: DBDep, current: CurrentPrincipal):
    data = await tickets_service.dashboard(db, current)
    return DashboardOut(
        counts=data["counts"],
        recent=[TicketOut.model_validate(t) for t in data["recent"]],
    )
