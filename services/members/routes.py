# services/members/routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.db import get_session
from packages.common.rbac import get_current_profile, require_roles
from packages.schemas.members import (
    Capabilities, Directory, LeaderboardEntry, Me, Profile as ProfileOut, RoleUpdate,
)
from . import repo
from .models import Profile

router = APIRouter(tags=["members"])


@router.get("/me", response_model=Me)
async def me(profile: Profile = Depends(get_current_profile)) -> Me:
    return Me(profile=ProfileOut.model_validate(profile), capabilities=Capabilities.for_role(profile.role))


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    limit: int = Query(default=50, ge=1, le=200),
    _: Profile = Depends(get_current_profile),
    session: AsyncSession = Depends(get_session),
) -> list[LeaderboardEntry]:
    return await repo.leaderboard(session, limit)


@router.get("/members", response_model=Directory)
async def members(
    _: Profile = Depends(get_current_profile),
    session: AsyncSession = Depends(get_session),
) -> Directory:
    return Directory(members=await repo.list_members(session), stats=await repo.member_stats(session))


@router.patch("/members/{profile_id}/role", response_model=ProfileOut)
async def change_role(
    profile_id: str,
    body: RoleUpdate,
    _: Profile = Depends(require_roles("admin")),
    session: AsyncSession = Depends(get_session),
) -> ProfileOut:
    return ProfileOut.model_validate(await repo.update_role(session, profile_id, body.role))
