"""
Project, chapter and export request/response schemas.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    genre: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=5000)
    language: str = Field("English", max_length=50)


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    genre: str
    description: str | None = None
    language: str
    cover_image: str | None = None
    created_at: datetime | None = None


class ProjectListResponse(BaseModel):
    items: list[ProjectResponse]
    total: int


class ChapterCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    content: str = ""


class ChapterUpdateRequest(BaseModel):
    """Partial chapter update; the editor's autosave sends only ``content``."""

    title: str | None = Field(None, min_length=1, max_length=500)
    content: str | None = None


class ChapterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    title: str
    content: str
    order: int
    updated_at: datetime | None = None


class ExportRequest(BaseModel):
    format: str = Field(..., pattern="^(pdf|epub|mobi)$", description="Export format")


class ExportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    format: str
    has_watermark: bool
    generated_at: datetime
