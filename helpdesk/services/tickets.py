"""
Tickets service (lifecycle rules for tickets)

The state machine lives here together with the ticket operations. Routers
call these functions instead of touching the ORM, so every read goes through
the role scope and every mutation through the permission evaluator.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.errors import NotFound, ValidationFailed
from helpdesk.db.models import (
    STAFF_ROLES,
    Category,
    PriorityEnum,
    Ticket,
    TicketStatusEnum,
    User,
    utcnow,
)
from helpdesk.db.session import commit_or_raise
from helpdesk.services import notifications
from helpdesk.services.permissions import (
    Action,
    Principal,
    StatusChange,
    require,
    ticket_scope,
)

log = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "created_at": Ticket.created_at,
    "updated_at": Ticket.updated_at,
    "priority": Ticket.priority,
    "status": Ticket.status,
    "subject": Ticket.subject,
}


def initial_status() -> TicketStatusEnum:
    return TicketStatusEnum.open


def parse_status(value: object) -> TicketStatusEnum:
    try:
        return TicketStatusEnum(value)
    except ValueError:
        raise ValidationFailed("Invalid status")


def parse_priority(value: object) -> PriorityEnum:
    try:
        return PriorityEnum(value)
    except ValueError:
        raise ValidationFailed("Invalid priority")


def _parse_category_filter(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValidationFailed("Invalid category")


async def _fetch_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    stmt = (
        select(Ticket)
        .where(Ticket.id == ticket_id)
        .execution_options(populate_existing=True)
    )
    ticket = (await db.execute(stmt)).scalar_one_or_none()
    if ticket is None:
        raise NotFound("Ticket not found")
    return ticket


async def get_ticket(db: AsyncSession, principal: Principal, ticket_id: int) -> Ticket:
    ticket = await _fetch_ticket(db, ticket_id)
    require(principal, Action.VIEW_TICKET, ticket)
    return ticket


async def create_ticket(
    db: AsyncSession,
    principal: Principal,
    *,
    subject: str,
    description: str,
    priority: PriorityEnum = PriorityEnum.medium,
    category_id: Optional[int] = None,
) -> Ticket:
    require(principal, Action.CREATE_TICKET)

    if category_id is not None and await db.get(Category, category_id) is None:
        raise ValidationFailed("Invalid category")

    ticket = Ticket(
        subject=subject.strip(),
        description=description.strip(),
        priority=priority,
        category_id=category_id,
        status=initial_status(),
        # owner always comes from the session, never from the payload
        user_id=principal.id,
    )
    db.add(ticket)
    await commit_or_raise(db, "Failed to create ticket")
    await db.refresh(ticket)

    log.info("ticket_created id=%s owner=%s", ticket.id, principal.id)
    notifications.enqueue("ticket_created", {
        "ticket_id": ticket.id,
        "subject": ticket.subject,
        "owner_email": principal.email,
    })
    return ticket


async def list_tickets(
    db: AsyncSession,
    principal: Principal,
    *,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "created_at",
    order: str = "desc",
    limit: int = 100,
    offset: int = 0,
) -> Sequence[Ticket]:
    require(principal, Action.LIST_TICKETS)

    q = select(Ticket)
    owner_id = ticket_scope(principal)
    if owner_id is not None:
        q = q.where(Ticket.user_id == owner_id)

    if status and status != "all":
        q = q.where(Ticket.status == parse_status(status))
    if priority and priority != "all":
        q = q.where(Ticket.priority == parse_priority(priority))
    if category and category != "all":
        q = q.where(Ticket.category_id == _parse_category_filter(category))
    if search:
        like = f"%{search.strip()}%"
        q = q.where(or_(Ticket.subject.ilike(like), Ticket.description.ilike(like)))

    column = SORTABLE_COLUMNS.get(sort)
    if column is None:
        raise ValidationFailed("Invalid sort column")
    q = q.order_by(column.asc() if order == "asc" else column.desc(), Ticket.id.desc())
    q = q.limit(limit).offset(offset)

    return (await db.execute(q)).scalars().all()


async def change_status(
    db: AsyncSession,
    principal: Principal,
    ticket_id: int,
    new_status: object,
) -> Ticket:
    target = parse_status(new_status)
    ticket = await _fetch_ticket(db, ticket_id)
    require(principal, Action.CHANGE_STATUS, StatusChange(ticket, target))

    old = ticket.status
    ticket.status = target
    ticket.updated_at = utcnow()
    await commit_or_raise(db, "Failed to update ticket status")
    await db.refresh(ticket)

    log.info(
        "status_changed ticket=%s %s->%s by=%s",
        ticket.id, old.value, target.value, principal.id,
    )
    notifications.enqueue("status_changed", {
        "ticket_id": ticket.id,
        "from": old.value,
        "to": target.value,
        "actor_id": principal.id,
        "owner_email": ticket.owner.email if ticket.owner else None,
    })
    return ticket


async def assign_ticket(
    db: AsyncSession,
    principal: Principal,
    ticket_id: int,
    agent_id: Optional[int],
) -> Ticket:
    """Assign (or, with ``agent_id=None``, unassign) a ticket."""
    require(principal, Action.ASSIGN_TICKET)
    ticket = await _fetch_ticket(db, ticket_id)

    agent: Optional[User] = None
    if agent_id is not None:
        agent = await db.get(User, agent_id)
        # a bad target is a validation problem, not a permission one
        if agent is None or agent.role not in STAFF_ROLES:
            raise ValidationFailed("Invalid agent selected")

    ticket.assigned_agent_id = agent.id if agent else None
    ticket.updated_at = utcnow()
    await commit_or_raise(db, "Failed to assign ticket")
    await db.refresh(ticket)

    log.info("ticket_assigned ticket=%s agent=%s by=%s", ticket.id, ticket.assigned_agent_id, principal.id)
    notifications.enqueue("ticket_assigned", {
        "ticket_id": ticket.id,
        "agent_id": ticket.assigned_agent_id,
        "agent_email": agent.email if agent else None,
        "actor_id": principal.id,
    })
    return ticket


async def dashboard(db: AsyncSession, principal: Principal, *, recent: int = 5) -> dict:
    """Status counts and the latest tickets owned by the caller."""
    rows = (
        await db.execute(
            select(Ticket.status, func.count())
            .where(Ticket.user_id == principal.id)
            .group_by(Ticket.status)
        )
    ).all()
    counts = {s.value: 0 for s in TicketStatusEnum}
    for status, count in rows:
        counts[TicketStatusEnum(status).value] = int(count)

    latest = (
        await db.execute(
            select(Ticket)
            .where(Ticket.user_id == principal.id)
            .order_by(Ticket.created_at.desc(), Ticket.id.desc())
            .limit(recent)
        )
    ).scalars().all()
    return {"counts": counts, "recent": latest}
