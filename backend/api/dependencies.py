"""
API dependencies for project ownership.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.routes.auth import get_current_user
from core.errors import ForbiddenError, NotFoundError
from infrastructure.database.connection import get_db
from infrastructure.database.models.project import Project
from infrastructure.database.models.user import User


async def get_owned_project(
    project_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
) -> Project:
    """
    Dependency resolving ``{project_id}`` to a project the caller owns.

    Raises:
        NotFoundError: No such project.
        ForbiddenError: The project belongs to another user.
    """
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError("Project not found")
    if project.user_id != current_user.id:
        raise ForbiddenError("You do not have access to this project")
    return project
