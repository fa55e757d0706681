"""Read models for collections and their ordered posts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

# SQLite hands timestamps back as text; PostgreSQL as datetime
Timestamp = Union[datetime, str]


class CollectionPost(BaseModel):
    id: int
    title: str
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    cover_image_url: Optional[str] = None
    status: str
    created_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None
    position: int
    added_at: Optional[Timestamp] = None


class CollectionDetail(BaseModel):
    id: int
    title: str
    slug: str
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    is_public: bool
    created_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None
    posts: list[CollectionPost] = Field(default_factory=list)


__all__ = ["CollectionPost", "CollectionDetail"]
