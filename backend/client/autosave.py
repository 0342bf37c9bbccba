"""
Debounced autosave for the chapter editor.

One ``AutoSaveSession`` per open document. Edits restart a debounce timer;
when it fires the current content is persisted unless it matches what was
last saved. Only one save runs at a time. A failed save shows ``error`` and
is retried on a fixed delay for as long as autosave stays enabled.

Timers go through an injectable scheduler so the whole state machine can be
driven on virtual time in tests::

    session = AutoSaveSession(client.chapter_persister(pid, cid), content)
    session.update_content(new_text)
    ...
    session.close()
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3.0
SAVED_DISPLAY_SECONDS = 2.0
RETRY_DELAY_SECONDS = 5.0

MIN_INTERVAL_SECONDS = 1
MAX_INTERVAL_SECONDS = 60


class SaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


@dataclass(frozen=True)
class AutoSaveSettings:
    """Per-user autosave preferences."""

    enabled: bool = True
    interval: float = DEFAULT_INTERVAL_SECONDS

    @classmethod
    def from_preferences(cls, prefs: Mapping[str, Any]) -> "AutoSaveSettings":
        """Build from a user profile payload (``auto_save``, ``auto_save_interval``)."""
        enabled = prefs.get("auto_save")
        interval = prefs.get("auto_save_interval")
        if interval is None:
            interval = DEFAULT_INTERVAL_SECONDS
        interval = min(max(float(interval), MIN_INTERVAL_SECONDS), MAX_INTERVAL_SECONDS)
        return cls(enabled=True if enabled is None else bool(enabled), interval=interval)


class AutoSaveSession:
    """Autosave state machine for a single open document."""

    def __init__(
        self,
        persist: Callable[[str], Awaitable[Any]],
        content: str = "",
        *,
        enabled: bool = True,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        on_status: Callable[[SaveStatus], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        saved_display: float = SAVED_DISPLAY_SECONDS,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self._persist = persist
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._on_status = on_status
        self._on_error = on_error
        self._saved_display = saved_display
        self._retry_delay = retry_delay

        self._enabled = enabled
        self._interval = interval
        self._content = content
        # Content loaded from the server is already saved
        self._snapshot = content
        self._status = SaveStatus.IDLE
        self._in_flight = False
        self._closed = False
        self._last_saved_at: datetime | None = None
        self._last_error: Exception | None = None

        self._debounce: TimerHandle | None = None
        self._retry: TimerHandle | None = None
        self._idle: TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def content(self) -> str:
        return self._content

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_saving(self) -> bool:
        return self._in_flight

    @property
    def has_unsaved_changes(self) -> bool:
        return self._content != self._snapshot

    @property
    def last_saved_at(self) -> datetime | None:
        return self._last_saved_at

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    def update_content(self, content: str) -> None:
        """Record an edit and restart the debounce timer."""
        self._content = content
        if self._closed:
            return
        if content == self._snapshot:
            self._cancel_debounce()
            self._clear_error()
            return
        if self._enabled:
            self._cancel_debounce()
            self._schedule_debounce()

    async def trigger_save(self) -> None:
        """Save now, skipping the debounce delay."""
        if self._closed:
            return
        self._cancel_debounce()
        await self._perform_save()

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self._cancel_debounce()
            self._cancel_retry()
        elif not self._closed and self.has_unsaved_changes and not self._in_flight:
            self._cancel_debounce()
            self._schedule_debounce()

    def set_interval(self, seconds: float) -> None:
        """Change the debounce interval; a pending timer restarts with it."""
        if seconds <= 0:
            raise ValueError(f"interval must be positive, got {seconds}")
        self._interval = seconds
        if self._debounce is not None:
            self._cancel_debounce()
            self._schedule_debounce()

    def close(self) -> None:
        """Stop all timers. A save already in flight is left to finish."""
        self._closed = True
        self._cancel_debounce()
        self._cancel_retry()
        if self._idle is not None:
            self._idle.cancel()
            self._idle = None

    async def _perform_save(self) -> None:
        if self._closed or self._in_flight:
            return
        content = self._content
        if content == self._snapshot:
            self._clear_error()
            return

        self._in_flight = True
        self._cancel_retry()
        self._set_status(SaveStatus.SAVING)
        try:
            await self._persist(content)
        except Exception as exc:
            self._in_flight = False
            self._last_error = exc
            logger.warning("Autosave failed, retrying in %.0fs: %s", self._retry_delay, exc)
            self._set_status(SaveStatus.ERROR)
            if self._on_error is not None:
                self._on_error(exc)
            if not self._closed:
                self._retry = self._scheduler.call_later(self._retry_delay, self._on_retry_fire)
            return
        except BaseException:
            self._in_flight = False
            raise

        self._in_flight = False
        self._snapshot = content
        self._last_saved_at = self._clock()
        self._last_error = None
        self._set_status(SaveStatus.SAVED)
        if self._closed:
            return
        if self._idle is not None:
            self._idle.cancel()
        self._idle = self._scheduler.call_later(self._saved_display, self._on_idle_fire)

        # Edits made while the save was running
        if self._enabled and self.has_unsaved_changes and self._debounce is None:
            self._schedule_debounce()

    def _on_debounce_fire(self) -> None:
        self._debounce = None
        if self._closed or self._in_flight:
            return
        self._spawn_save()

    def _on_retry_fire(self) -> None:
        self._retry = None
        if self._closed or not self._enabled or self._in_flight:
            return
        self._spawn_save()

    def _on_idle_fire(self) -> None:
        self._idle = None
        if self._status is SaveStatus.SAVED:
            self._set_status(SaveStatus.IDLE)

    def _spawn_save(self) -> None:
        task = asyncio.get_running_loop().create_task(self._perform_save())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule_debounce(self) -> None:
        self._debounce = self._scheduler.call_later(self._interval, self._on_debounce_fire)

    def _cancel_debounce(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    def _cancel_retry(self) -> None:
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    def _clear_error(self) -> None:
        # Nothing left to save, so a failed save no longer matters
        if self._status is SaveStatus.ERROR:
            self._cancel_retry()
            self._last_error = None
            self._set_status(SaveStatus.IDLE)

    def _set_status(self, status: SaveStatus) -> None:
        self._status = status
        if self._on_status is not None:
            self._on_status(status)
