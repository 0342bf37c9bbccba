"""
Project API routes: projects, chapters and exports.

Creation endpoints enforce the caller's tier quotas before writing anything.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_owned_project
from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.schemas.project import (
    ChapterCreateRequest,
    ChapterResponse,
    ChapterUpdateRequest,
    ExportRequest,
    ExportResponse,
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectResponse,
)
from core.errors import NotFoundError
from infrastructure.database.connection import get_db
from infrastructure.database.models.project import Chapter, Export, Project
from infrastructure.database.models.user import User
from services.entitlements import EntitlementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await EntitlementService(db).check_project_limit(current_user.id)

    project = Project(
        user_id=current_user.id,
        title=body.title,
        genre=body.genre,
        description=body.description,
        language=body.language,
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)
    logger.info("Created project %s", project.id, extra={"user_id": current_user.id, "project_id": project.id})
    return project


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Project)
        .where(Project.user_id == current_user.id)
        .order_by(Project.created_at.desc())
    )
    projects = result.scalars().all()
    return ProjectListResponse(
        items=[ProjectResponse.model_validate(p) for p in projects],
        total=len(projects),
    )


# ---------------------------------------------------------------------------
# Chapters
# ---------------------------------------------------------------------------

@router.post(
    "/{project_id}/chapters",
    response_model=ChapterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_chapter(
    body: ChapterCreateRequest,
    project: Project = Depends(get_owned_project),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await EntitlementService(db).check_chapter_limit(current_user.id, project.id)

    max_order = await db.execute(
        select(func.max(Chapter.order)).where(Chapter.project_id == project.id)
    )
    next_order = (max_order.scalar() or 0) + 1

    chapter = Chapter(
        project_id=project.id,
        title=body.title,
        content=body.content,
        order=next_order,
    )
    db.add(chapter)
    await db.commit()
    await db.refresh(chapter)
    return chapter


@router.patch("/{project_id}/chapters/{chapter_id}", response_model=ChapterResponse)
@limiter.limit(get_rate_limit("chapter_save"))
async def update_chapter(
    request: Request,
    chapter_id: str,
    body: ChapterUpdateRequest,
    project: Project = Depends(get_owned_project),
    db: AsyncSession = Depends(get_db),
):
    """Partial update; this is the editor's autosave target."""
    result = await db.execute(
        select(Chapter).where(Chapter.id == chapter_id, Chapter.project_id == project.id)
    )
    chapter = result.scalar_one_or_none()
    if not chapter:
        raise NotFoundError("Chapter not found")

    if body.title is not None:
        chapter.title = body.title
    if body.content is not None:
        chapter.content = body.content

    await db.commit()
    await db.refresh(chapter)
    return chapter


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

@router.post(
    "/{project_id}/exports",
    response_model=ExportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_export(
    body: ExportRequest,
    project: Project = Depends(get_owned_project),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Record an export. The format must be allowed by the caller's tier and
    the monthly export quota must not be used up. Free-tier exports are
    watermarked.
    """
    entitlements = EntitlementService(db)
    limits = await entitlements.check_export_format(current_user.id, body.format)
    await entitlements.check_export_limit(current_user.id)

    export = Export(
        project_id=project.id,
        format=body.format,
        has_watermark=limits.has_watermark,
    )
    db.add(export)
    await db.commit()
    await db.refresh(export)
    logger.info(
        "Export %s (%s) for project %s",
        export.id,
        export.format,
        project.id,
        extra={"user_id": current_user.id, "project_id": project.id},
    )
    return export
