"""Member schemas: profiles, capabilities, leaderboard and directory stats."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict
from typing import List, Literal, Optional

Role = Literal["admin", "instructor", "student"]


class Profile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str = "student"
    points: int = 0
    created_at: Optional[datetime] = None


class Capabilities(BaseModel):
    """What the UI should offer a given role."""
    is_admin: bool
    is_instructor: bool
    is_student: bool
    can_manage_content: bool

    @classmethod
    def for_role(cls, role: str) -> "Capabilities":
        return cls(
            is_admin=role == "admin",
            is_instructor=role == "instructor",
            is_student=role == "student",
            can_manage_content=role in ("admin", "instructor"),
        )


class Me(BaseModel):
    profile: Profile
    capabilities: Capabilities


class RoleUpdate(BaseModel):
    role: Role


class LeaderboardEntry(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    points: int = 0
    role: str = "student"
    post_count: int = 0
    progress_count: int = 0
    rank: int
    badge: str


class Member(Profile):
    post_count: int = 0
    progress_count: int = 0


class MemberStats(BaseModel):
    total_members: int
    active_this_week: int
    total_posts: int
    completed_lessons: int


class Directory(BaseModel):
    members: List[Member]
    stats: MemberStats
