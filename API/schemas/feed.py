"""
Posts, comments and announcements.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Content is required")
    return v


class PostCreate(BaseModel):
    content: str
    mentions: List[int] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def check_content(cls, v: str) -> str:
        return _not_blank(v)


class CommentCreate(PostCreate):
    pass


class CommentResponse(BaseModel):
    id: int
    post_id: int
    author_id: int
    content: str
    mentions: List[int] = Field(default_factory=list)
    created_at: datetime

    model_config = {"from_attributes": True}


class PostResponse(BaseModel):
    id: int
    author_id: int
    content: str
    mentions: List[int] = Field(default_factory=list)
    created_at: datetime
    comments: List[CommentResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class AnnouncementCreate(BaseModel):
    title: str
    content: str
    is_pinned: bool = False

    @field_validator("title", "content")
    @classmethod
    def check_text(cls, v: str) -> str:
        return _not_blank(v)


class AnnouncementResponse(BaseModel):
    id: int
    author_id: Optional[int] = None
    title: str
    content: str
    is_pinned: bool
    created_at: datetime

    model_config = {"from_attributes": True}
