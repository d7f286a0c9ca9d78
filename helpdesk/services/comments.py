"""
Ticket comments: visibility filtering and the creation pipeline.

Internal comments are only ever returned to agents and admins. Any view that
returns comments must pass them through ``visible_comments``.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from helpdesk.core.errors import NotFound, ValidationFailed
from helpdesk.db.models import Comment, Ticket, utcnow
from helpdesk.db.session import commit_or_raise
from helpdesk.services import notifications
from helpdesk.services.permissions import Action, Principal, can_perform, require

log = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000


def visible_comments(principal: Principal, comments: Iterable[Comment]) -> List[Comment]:
    if principal.is_staff:
        return list(comments)
    return [c for c in comments if not c.is_internal]


def normalize_comment_content(raw: object) -> str:
    content = raw.strip() if isinstance(raw, str) else ""
    if not content:
        raise ValidationFailed("Comment content is required")
    if len(content) > MAX_COMMENT_LENGTH:
        raise ValidationFailed(f"Comment is too long (max {MAX_COMMENT_LENGTH} characters)")
    return content


async def _get_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    ticket = await db.get(Ticket, ticket_id)
    if ticket is None:
        raise NotFound("Ticket not found")
    return ticket


async def list_comments(db: AsyncSession, principal: Principal, ticket_id: int) -> List[Comment]:
    ticket = await _get_ticket(db, ticket_id)
    require(principal, Action.READ_COMMENTS, ticket)

    q = (
        select(Comment)
        .where(Comment.ticket_id == ticket_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    # filter in SQL for non-staff as well; visible_comments stays the final word
    if not principal.is_staff:
        q = q.where(Comment.is_internal.is_(False))
    rows = (await db.execute(q)).scalars().all()
    return visible_comments(principal, rows)


async def create_comment(
    db: AsyncSession,
    principal: Principal,
    ticket_id: int,
    *,
    content: object,
    is_internal: bool = False,
) -> Comment:
    ticket = await _get_ticket(db, ticket_id)
    require(principal, Action.CREATE_COMMENT, ticket)
    text = normalize_comment_content(content)

    # the client flag only counts for agents/admins
    internal = bool(is_internal) and bool(can_perform(principal, Action.MARK_INTERNAL))

    comment = Comment(
        ticket_id=ticket.id,
        user_id=principal.id,
        content=text,
        is_internal=internal,
    )
    db.add(comment)
    ticket.updated_at = utcnow()
    # insert and parent touch share one transaction
    await commit_or_raise(db, "Failed to create comment")
    await db.refresh(comment)

    log.info("comment_added ticket=%s comment=%s internal=%s", ticket.id, comment.id, internal)
    notifications.enqueue("comment_created", {
        "ticket_id": ticket.id,
        "comment_id": comment.id,
        "author_id": principal.id,
        "is_internal": internal,
        "owner_id": ticket.user_id,
        "owner_email": ticket.owner.email if ticket.owner else None,
    })
    return comment
