# services/content/routes.py
from typing import Literal

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.config import get_settings
from packages.common.db import get_session
from packages.common.errors import CampusError
from packages.common.rbac import CONTENT_MANAGERS, get_current_profile, require_roles
from packages.common.storage import ObjectStorage, discard, ensure_image, module_covers, object_key, store_object
from packages.schemas.content import (
    ClassroomModule, CompletionResult, ContentGraph, ContentNode, CreateContent, Module, UpdateContent,
)
from services.members.models import Profile
from . import repo
from .projector import LayoutSpacing, project_tree

router = APIRouter()
managers = require_roles(*CONTENT_MANAGERS)

Kind = Literal["modules", "topics", "lessons"]


@router.get("/ping", tags=["content"])
def ping():
    return {"ok": True}


@router.get("/content/tree", response_model=list[Module], tags=["content"])
async def tree(_: Profile = Depends(managers), session: AsyncSession = Depends(get_session)) -> list[Module]:
    return [Module.model_validate(m) for m in await repo.list_tree(session)]


@router.get("/content/graph", response_model=ContentGraph, tags=["content"])
async def graph(
    reserve_lesson_extent: bool = False,
    _: Profile = Depends(managers),
    session: AsyncSession = Depends(get_session),
) -> ContentGraph:
    modules = await repo.list_tree(session)
    return project_tree(modules, LayoutSpacing(reserve_lesson_extent=reserve_lesson_extent))


@router.post("/content/modules", response_model=ContentNode, status_code=201, tags=["content"])
async def create_module(
    body: CreateContent, _: Profile = Depends(managers), session: AsyncSession = Depends(get_session)
):
    return await repo.create_module(session, body)


@router.post("/content/modules/{module_id}/topics", response_model=ContentNode, status_code=201, tags=["content"])
async def create_topic(
    module_id: str, body: CreateContent, _: Profile = Depends(managers), session: AsyncSession = Depends(get_session)
):
    return await repo.create_topic(session, module_id, body)


@router.post("/content/topics/{topic_id}/lessons", response_model=ContentNode, status_code=201, tags=["content"])
async def create_lesson(
    topic_id: str, body: CreateContent, _: Profile = Depends(managers), session: AsyncSession = Depends(get_session)
):
    return await repo.create_lesson(session, topic_id, body)


@router.patch("/content/{kind}/{item_id}", response_model=ContentNode, tags=["content"])
async def update_item(
    kind: Kind,
    item_id: str,
    body: UpdateContent,
    _: Profile = Depends(managers),
    session: AsyncSession = Depends(get_session),
):
    return await repo.update_item(session, kind, item_id, body)


@router.delete("/content/{kind}/{item_id}", status_code=204, tags=["content"])
async def delete_item(
    kind: Kind, item_id: str, _: Profile = Depends(managers), session: AsyncSession = Depends(get_session)
) -> None:
    await repo.delete_item(session, kind, item_id)


@router.post("/content/modules/{module_id}/cover", response_model=ContentNode, tags=["content"])
async def upload_cover(
    module_id: str,
    file: UploadFile = File(...),
    _: Profile = Depends(managers),
    storage: ObjectStorage = Depends(module_covers),
    session: AsyncSession = Depends(get_session),
):
    await repo.get_item(session, "modules", module_id)
    data = await file.read()
    ensure_image(file.content_type, len(data), get_settings().MODULE_COVER_MAX_BYTES)
    key = object_key(f"modules/{module_id}", file.filename or "cover")
    url = await run_in_threadpool(store_object, storage, key, data, file.content_type, "cover image")
    try:
        return await repo.set_cover_image(session, module_id, url)
    except CampusError:
        await run_in_threadpool(discard, storage, [key])
        raise


@router.get("/classroom", response_model=list[ClassroomModule], tags=["classroom"])
async def classroom(
    profile: Profile = Depends(get_current_profile), session: AsyncSession = Depends(get_session)
) -> list[ClassroomModule]:
    return await repo.classroom(session, profile.id)


@router.post("/classroom/lessons/{lesson_id}/complete", response_model=CompletionResult, tags=["classroom"])
async def complete_lesson(
    lesson_id: str, profile: Profile = Depends(get_current_profile), session: AsyncSession = Depends(get_session)
) -> CompletionResult:
    points = await repo.mark_lesson_complete(session, profile.id, lesson_id)
    return CompletionResult(lesson_id=lesson_id, points_awarded=points)
