"""Editor-side helpers: debounced autosave and the API client it saves through."""

from .api_client import EditorClient, PersistFailedError
from .autosave import (
    AsyncioScheduler,
    AutoSaveSession,
    AutoSaveSettings,
    SaveStatus,
)

__all__ = [
    "AsyncioScheduler",
    "AutoSaveSession",
    "AutoSaveSettings",
    "EditorClient",
    "PersistFailedError",
    "SaveStatus",
]
