"""
AI cover generation request/response schemas.
"""

from pydantic import BaseModel, Field

from core.domain.generation import MAX_BATCH


class CoverBatchRequest(BaseModel):
    """Generate several cover candidates in one go."""

    prompt: str = Field(..., min_length=1, max_length=2000)
    count: int = Field(MAX_BATCH, ge=1, le=MAX_BATCH, description="Covers to attempt")
    style: str | None = Field(
        None, max_length=200, description="Pin one style instead of rotating through variations"
    )

    model_config = {
        "json_schema_extra": {
            "example": {"prompt": "A lighthouse in a storm", "count": 3}
        }
    }


class CoverBatchResponse(BaseModel):
    artifacts: list[str] = Field(..., description="Public URLs of the covers produced, in order")
    credits_used: int
    credits_remaining: int


class CoverRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)
    style: str | None = Field(None, max_length=200)


class CoverResponse(BaseModel):
    cover_url: str
    credits_remaining: int
