"""Community schemas: forum posts, comments, likes and image attachments."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional

CATEGORIES = ("general", "achievement", "question", "programming", "design", "announcements")
Category = Literal["general", "achievement", "question", "programming", "design", "announcements"]

MIN_TITLE_LENGTH = 3
MIN_CONTENT_LENGTH = 10


class CreatePost(BaseModel):
    """Payload for a new post; text is trimmed before length checks."""
    title: str = Field(..., max_length=200)
    content: str
    category: Category = "general"

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_TITLE_LENGTH:
            raise ValueError(f"Title must be at least {MIN_TITLE_LENGTH} characters")
        return v

    @field_validator("content")
    @classmethod
    def _content(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_CONTENT_LENGTH:
            raise ValueError(f"Content must be at least {MIN_CONTENT_LENGTH} characters")
        return v


class CreateComment(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def _content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class PostImage(BaseModel):
    """Normalized file record for an uploaded attachment."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    path: str
    name: str
    size: int
    mime: str
    url: str


class Post(BaseModel):
    """A forum post decorated with author, comment and like projections."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    content: str
    category: str
    image_url: Optional[str] = None
    created_at: datetime
    author_name: Optional[str] = None
    author_points: int = 0
    comment_count: int = 0
    likes_count: int = 0
    liked_by_user: bool = False
    images: List[PostImage] = Field(default_factory=list)


class Comment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    post_id: str
    user_id: str
    content: str
    created_at: datetime


class LikeState(BaseModel):
    """Authoritative like state for one post as seen by one user."""
    post_id: str
    liked: bool
    likes_count: int
