from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from helpdesk.schemas.users import UserBrief


class CommentCreate(BaseModel):
    # emptiness and length are checked on the trimmed text by the service
    content: str = ""
    is_internal: bool = False


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    user_id: int
    content: str
    is_internal: bool
    created_at: datetime
    author: Optional[UserBrief] = None


class CommentEnvelope(BaseModel):
    comment: CommentOut


class CommentList(BaseModel):
    comments: list[CommentOut]
