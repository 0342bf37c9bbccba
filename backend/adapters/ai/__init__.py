# AI Adapters
# Replicate integration for cover images

from .replicate_adapter import (
    GeneratedImage,
    ReplicateCoverService,
    cover_ai_service,
)

__all__ = [
    "ReplicateCoverService",
    "cover_ai_service",
    "GeneratedImage",
]
