"""
Permission evaluator.

Every role check in the API goes through ``can_perform``: a pure function of
(principal, action, resource) returning a ``Decision``. Routes and services
never compare roles themselves; they call ``enforce`` on the decision.

Denials come in two kinds:
  - ``forbidden``: authenticated but not allowed (403),
  - ``invalid``: the request targets something it may never target, e.g. the
    caller's own account (400).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Collection, Optional

from helpdesk.core.errors import IntegrityGuard, PermissionDenied
from helpdesk.db.models import STAFF_ROLES, RoleEnum, TicketStatusEnum

USER_TARGET_STATUSES = frozenset({TicketStatusEnum.resolved, TicketStatusEnum.closed})

# Staff may move a ticket between any two states, closed included.
STATUS_TRANSITIONS: dict[TicketStatusEnum, frozenset[TicketStatusEnum]] = {
    src: frozenset(TicketStatusEnum) for src in TicketStatusEnum
}


def can_transition(role: RoleEnum, src: TicketStatusEnum, dst: TicketStatusEnum) -> bool:
    """
    Whether ``role`` may move a ticket from ``src`` to ``dst``. Ownership is
    checked separately, in ``_can_change_status``.
    """
    if role in STAFF_ROLES:
        return dst in STATUS_TRANSITIONS.get(src, frozenset())
    return dst in USER_TARGET_STATUSES


@dataclass(frozen=True)
class Principal:
    """The authenticated actor of a request."""

    id: int
    email: str
    full_name: str
    role: RoleEnum

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.admin


class Action(str, enum.Enum):
    VIEW_TICKET = "view_ticket"
    LIST_TICKETS = "list_tickets"
    CREATE_TICKET = "create_ticket"
    CHANGE_STATUS = "change_status"
    ASSIGN_TICKET = "assign_ticket"
    READ_COMMENTS = "read_comments"
    CREATE_COMMENT = "create_comment"
    MARK_INTERNAL = "mark_internal"
    LIST_AGENTS = "list_agents"
    VIEW_USER = "view_user"
    EDIT_USER = "edit_user"
    CHANGE_ROLE = "change_role"
    CREATE_USER = "create_user"
    LIST_USERS = "list_users"
    DELETE_USER = "delete_user"
    BULK_USERS = "bulk_users"


class DenyKind(str, enum.Enum):
    forbidden = "forbidden"
    invalid = "invalid"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None
    kind: Optional[DenyKind] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def deny(reason: str = "Insufficient permissions", kind: DenyKind = DenyKind.forbidden) -> Decision:
    return Decision(False, reason, kind)


# ---- resources ----


@dataclass(frozen=True)
class UserRef:
    """A user identified by id only, for checks made before the row is loaded."""

    id: int


@dataclass(frozen=True)
class StatusChange:
    ticket: Any
    target: TicketStatusEnum


@dataclass(frozen=True)
class RoleChange:
    user: Any
    role: Any


@dataclass(frozen=True)
class UserBatch:
    user_ids: Collection[int]


# ---- rules ----


def _can_view_ticket(principal: Principal, ticket: Any) -> Decision:
    if principal.is_staff:
        return ALLOW
    if ticket.user_id == principal.id or ticket.assigned_agent_id == principal.id:
        return ALLOW
    return deny("Access denied")


def _can_change_status(principal: Principal, change: StatusChange) -> Decision:
    if not principal.is_staff and change.ticket.user_id != principal.id:
        return deny("Insufficient permissions")
    if not can_transition(principal.role, change.ticket.status, change.target):
        return deny("Users can only resolve or close tickets")
    return ALLOW


def _can_comment(principal: Principal, ticket: Any) -> Decision:
    view = _can_view_ticket(principal, ticket)
    if not view:
        return view
    if not principal.is_staff and ticket.status == TicketStatusEnum.closed:
        return deny("Cannot comment on closed tickets")
    return ALLOW


def _self_or_admin(principal: Principal, user: Any) -> Decision:
    if principal.is_admin or principal.id == user.id:
        return ALLOW
    return deny("Insufficient permissions")


def _can_change_role(principal: Principal, change: RoleChange) -> Decision:
    if not principal.is_admin:
        return deny("Cannot change role")
    if change.user.id == principal.id and change.role != principal.role:
        return deny("Cannot change your own role", DenyKind.invalid)
    return ALLOW


def _admin_only(principal: Principal) -> Decision:
    return ALLOW if principal.is_admin else deny("Insufficient permissions")


def _staff_only(principal: Principal) -> Decision:
    return ALLOW if principal.is_staff else deny("Insufficient permissions")


def _can_delete_user(principal: Principal, user: Any) -> Decision:
    if not principal.is_admin:
        return deny("Insufficient permissions")
    if user.id == principal.id:
        return deny("Cannot delete your own account", DenyKind.invalid)
    return ALLOW


def _can_bulk(principal: Principal, batch: Optional[UserBatch]) -> Decision:
    if not principal.is_admin:
        return deny("Insufficient permissions")
    if batch is not None and principal.id in set(batch.user_ids):
        return deny("Cannot perform bulk operations on your own account", DenyKind.invalid)
    return ALLOW


def can_perform(principal: Principal, action: Action, resource: Any = None) -> Decision:
    if action in (Action.VIEW_TICKET, Action.READ_COMMENTS):
        return _can_view_ticket(principal, resource)
    if action in (Action.LIST_TICKETS, Action.CREATE_TICKET):
        return ALLOW
    if action == Action.CHANGE_STATUS:
        return _can_change_status(principal, resource)
    if action in (Action.ASSIGN_TICKET, Action.MARK_INTERNAL, Action.LIST_AGENTS):
        return _staff_only(principal)
    if action == Action.CREATE_COMMENT:
        return _can_comment(principal, resource)
    if action in (Action.VIEW_USER, Action.EDIT_USER):
        return _self_or_admin(principal, resource)
    if action == Action.CHANGE_ROLE:
        return _can_change_role(principal, resource)
    if action in (Action.CREATE_USER, Action.LIST_USERS):
        return _admin_only(principal)
    if action == Action.DELETE_USER:
        return _can_delete_user(principal, resource)
    if action == Action.BULK_USERS:
        return _can_bulk(principal, resource)
    return deny("Unknown action")


def enforce(decision: Decision) -> None:
    """Raise the error matching a denial; no-op when allowed."""
    if decision.allowed:
        return
    if decision.kind == DenyKind.invalid:
        raise IntegrityGuard(decision.reason or "Invalid request")
    raise PermissionDenied(decision.reason or "Insufficient permissions")


def require(principal: Principal, action: Action, resource: Any = None) -> None:
    enforce(can_perform(principal, action, resource))


def ticket_scope(principal: Principal) -> Optional[int]:
    """
    Owner id every ticket query must be restricted to, or None for staff.
    Applied in the query, not per row.
    """
    return None if principal.is_staff else principal.id
