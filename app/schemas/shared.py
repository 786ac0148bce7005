from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import CamelModel


class SharedPostIn(BaseModel):
    content_type: Literal["exam", "practice"]
    title: str = Field(..., min_length=1, max_length=200)


class CompletionIn(BaseModel):
    session_id: Optional[UUID] = None


class SharedPostOut(CamelModel):
    id: UUID
    author_id: UUID
    content_type: str
    title: str
    status: str
    created_at: Optional[datetime] = None
