"""
AI cover generation routes.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_owned_project
from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.schemas.cover import CoverBatchRequest, CoverBatchResponse, CoverRequest, CoverResponse
from infrastructure.database.connection import get_db
from infrastructure.database.models.project import Project
from infrastructure.database.models.user import User
from services.cover_generation import CoverBatchGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}/covers", tags=["Covers"])


@router.post("/batch", response_model=CoverBatchResponse)
@limiter.limit(get_rate_limit("cover_batch"))
async def generate_cover_batch(
    request: Request,
    body: CoverBatchRequest,
    project: Project = Depends(get_owned_project),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Generate up to five cover candidates.

    One credit is charged per cover actually produced. Failed attempts are
    free; if none succeed the request fails with 502 and nothing is charged.
    """
    result = await CoverBatchGenerator(db).run_batch(
        current_user.id,
        project.id,
        body.prompt,
        count=body.count,
        style=body.style,
    )
    return CoverBatchResponse(
        artifacts=result.artifacts,
        credits_used=result.credits_used,
        credits_remaining=result.credits_remaining,
    )


@router.post("", response_model=CoverResponse)
@limiter.limit(get_rate_limit("cover_single"))
async def generate_cover(
    request: Request,
    body: CoverRequest,
    project: Project = Depends(get_owned_project),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Generate a single cover; its cost is refunded if generation fails."""
    url, remaining = await CoverBatchGenerator(db).generate_single(
        current_user.id,
        project.id,
        body.prompt,
        style=body.style,
    )
    return CoverResponse(cover_url=url, credits_remaining=remaining)
