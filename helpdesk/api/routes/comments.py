# helpdesk/api/routes/comments.py
from fastapi import APIRouter, status

from helpdesk.api.deps import CurrentPrincipal, DBDep
from helpdesk.schemas.comments import CommentCreate, CommentEnvelope, CommentList, CommentOut
from helpdesk.services import comments as comments_service

router = APIRouter()


@router.get("/{ticket_id}/comments", response_model=CommentList)
async def list_comments(ticket_id: int, db: DBDep, current: CurrentPrincipal):
    rows = await comments_service.list_comments(db, current, ticket_id)
    return CommentList(comments=[CommentOut.model_validate(c) for c in rows])


@router.post("/{ticket_id}/comments", response_model=CommentEnvelope, status_code=status.HTTP_201_CREATED)
async def add_comment(ticket_id: int, payload: CommentCreate, db: DBDep, current: CurrentPrincipal):
    comment = await comments_service.create_comment(
        db,
        current,
        ticket_id,
        content=payload.content,
        is_internal=payload.is_internal,
    )
    return CommentEnvelope(comment=CommentOut.model_validate(comment))
