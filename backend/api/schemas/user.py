"""
User preference schemas.
"""

from pydantic import BaseModel, ConfigDict, Field


class PreferencesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    auto_save: bool
    auto_save_interval: int = Field(..., description="Autosave debounce in seconds")


class PreferencesUpdateRequest(BaseModel):
    auto_save: bool | None = None
    auto_save_interval: int | None = Field(None, ge=1, le=60)
