# Domain Entities
# Pure business objects with no external dependencies
from .generation import (
    DEFAULT_SINGLE_STYLE,
    MAX_BATCH,
    STYLE_MODIFIERS,
    AttemptResult,
    BatchResult,
    build_cover_prompt,
    build_single_cover_prompt,
    select_style,
    summarize_attempts,
)

__all__ = [
    "DEFAULT_SINGLE_STYLE",
    "MAX_BATCH",
    "STYLE_MODIFIERS",
    "AttemptResult",
    "BatchResult",
    "build_cover_prompt",
    "build_single_cover_prompt",
    "select_style",
    "summarize_attempts",
]
