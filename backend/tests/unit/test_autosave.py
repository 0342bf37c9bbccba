"""
Unit tests for the editor autosave session.

Timers run on a manual virtual-time scheduler, so every test is
deterministic and finishes instantly.
"""

import asyncio
from datetime import UTC, datetime

import pytest

from client.autosave import (
    AsyncioScheduler,
    AutoSaveSession,
    AutoSaveSettings,
    SaveStatus,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _drain() -> None:
    """Let spawned save tasks run until they block."""
    for _ in range(20):
        await asyncio.sleep(0)


class _Handle:
    def __init__(self, when: float, callback) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """call_later on virtual time; ``advance`` fires due timers in order."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_Handle] = []

    def call_later(self, delay, callback):
        handle = _Handle(self.now + delay, callback)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> list[_Handle]:
        return [h for h in self._timers if not h.cancelled and not h.fired]

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = sorted((h for h in self.pending if h.when <= target), key=lambda h: h.when)
            if not due:
                break
            handle = due[0]
            self.now = handle.when
            handle.fired = True
            handle.callback()
            await _drain()
        self.now = target


class RecordingPersist:
    """Persist collaborator that records content and can fail or block."""

    def __init__(self, failures: int = 0) -> None:
        self.calls: list[str] = []
        self.failures = failures
        self.gate: asyncio.Event | None = None

    def hold(self) -> None:
        self.gate = asyncio.Event()

    async def __call__(self, content: str) -> None:
        self.calls.append(content)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("Server returned 503")


FIXED_NOW = datetime(2026, 5, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def persist() -> RecordingPersist:
    return RecordingPersist()


def _session(persist, scheduler, content="", **kwargs) -> AutoSaveSession:
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    return AutoSaveSession(persist, content, scheduler=scheduler, **kwargs)


# ---------------------------------------------------------------------------
# Tests: debounce
# ---------------------------------------------------------------------------


class TestDebounce:
    async def test_unchanged_content_is_never_persisted(self, persist, scheduler):
        session = _session(persist, scheduler, content="Chapter one")

        session.update_content("Chapter one")
        await scheduler.advance(60)

        assert persist.calls == []
        assert session.status is SaveStatus.IDLE

    async def test_rapid_edits_collapse_into_one_save_of_latest_content(self, persist, scheduler):
        session = _session(persist, scheduler)

        session.update_content("It was")
        await scheduler.advance(2)
        session.update_content("It was a dark")
        await scheduler.advance(2.9)
        assert persist.calls == []

        await scheduler.advance(0.2)
        assert persist.calls == ["It was a dark"]
        assert session.status is SaveStatus.SAVED
        assert session.last_saved_at == FIXED_NOW
        assert not session.has_unsaved_changes

    async def test_reverting_to_saved_content_cancels_pending_save(self, persist, scheduler):
        session = _session(persist, scheduler, content="draft")

        session.update_content("draft!")
        session.update_content("draft")
        await scheduler.advance(10)

        assert persist.calls == []

    async def test_saved_returns_to_idle_after_two_seconds(self, persist, scheduler):
        session = _session(persist, scheduler)
        session.update_content("hello")
        await scheduler.advance(3)
        assert session.status is SaveStatus.SAVED

        await scheduler.advance(1.5)
        assert session.status is SaveStatus.SAVED
        await scheduler.advance(0.5)
        assert session.status is SaveStatus.IDLE

    async def test_status_transitions_are_reported(self, persist, scheduler):
        seen: list[SaveStatus] = []
        session = _session(persist, scheduler, on_status=seen.append)

        session.update_content("hello")
        await scheduler.advance(5)

        assert seen == [SaveStatus.SAVING, SaveStatus.SAVED, SaveStatus.IDLE]


# ---------------------------------------------------------------------------
# Tests: failure and retry
# ---------------------------------------------------------------------------


class TestRetry:
    async def test_failure_shows_error_then_retries(self, scheduler):
        persist = RecordingPersist(failures=1)
        errors: list[Exception] = []
        session = _session(persist, scheduler, on_error=errors.append)

        session.update_content("hello")
        await scheduler.advance(3)

        assert session.status is SaveStatus.ERROR
        assert len(errors) == 1
        assert isinstance(session.last_error, RuntimeError)
        assert session.has_unsaved_changes

        await scheduler.advance(4)
        assert persist.calls == ["hello"]

        await scheduler.advance(1)
        assert persist.calls == ["hello", "hello"]
        assert session.status is SaveStatus.SAVED
        assert session.last_error is None

    async def test_retries_continue_while_failures_persist(self, scheduler):
        persist = RecordingPersist(failures=3)
        session = _session(persist, scheduler)

        session.update_content("hello")
        await scheduler.advance(3 + 5 * 3)

        assert len(persist.calls) == 4
        assert session.status is SaveStatus.SAVED

    async def test_retry_skipped_once_disabled(self, scheduler):
        persist = RecordingPersist(failures=1)
        session = _session(persist, scheduler)

        session.update_content("hello")
        await scheduler.advance(3)
        session.set_enabled(False)
        await scheduler.advance(30)

        assert persist.calls == ["hello"]
        assert session.status is SaveStatus.ERROR

    async def test_idle_timer_does_not_clear_newer_error(self, scheduler):
        persist = RecordingPersist()
        session = _session(persist, scheduler, interval=1)

        session.update_content("one")
        await scheduler.advance(1)
        assert session.status is SaveStatus.SAVED

        persist.failures = 1
        session.update_content("two")
        await scheduler.advance(1)
        assert session.status is SaveStatus.ERROR

        # The two-second idle timer from the first save fires now
        await scheduler.advance(1.5)
        assert session.status is SaveStatus.ERROR

    async def test_reverting_to_saved_content_clears_error(self, scheduler):
        persist = RecordingPersist(failures=1)
        session = _session(persist, scheduler, content="a")

        session.update_content("b")
        await scheduler.advance(3)
        assert session.status is SaveStatus.ERROR

        session.update_content("a")
        assert session.status is SaveStatus.IDLE
        assert session.last_error is None
        assert not session.has_unsaved_changes

        await scheduler.advance(60)
        assert persist.calls == ["b"]
        assert session.status is SaveStatus.IDLE
        assert scheduler.pending == []

    async def test_reverting_while_disabled_clears_error(self, scheduler):
        persist = RecordingPersist(failures=1)
        session = _session(persist, scheduler, content="a")

        session.update_content("b")
        await scheduler.advance(3)
        session.set_enabled(False)
        session.update_content("a")

        assert session.status is SaveStatus.IDLE
        assert scheduler.pending == []


# ---------------------------------------------------------------------------
# Tests: single flight
# ---------------------------------------------------------------------------


class TestSingleFlight:
    async def test_manual_save_while_in_flight_is_ignored(self, persist, scheduler):
        session = _session(persist, scheduler)
        persist.hold()
        gate = persist.gate

        session.update_content("first")
        first = asyncio.create_task(session.trigger_save())
        await _drain()
        assert session.is_saving
        assert session.status is SaveStatus.SAVING

        session.update_content("first and second")
        await session.trigger_save()
        assert persist.calls == ["first"]

        persist.gate = None
        gate.set()
        await first
        await _drain()

        # Edits made during the save are picked up by a fresh debounce
        await scheduler.advance(3)
        assert persist.calls == ["first", "first and second"]

    async def test_timer_fire_while_in_flight_is_swallowed(self, persist, scheduler):
        session = _session(persist, scheduler)
        persist.hold()
        gate = persist.gate

        session.update_content("a")
        await scheduler.advance(3)
        assert persist.calls == ["a"]

        session.update_content("ab")
        await scheduler.advance(3)
        assert persist.calls == ["a"]

        persist.gate = None
        gate.set()
        await _drain()
        assert session.status is SaveStatus.SAVED

        await scheduler.advance(3)
        assert persist.calls == ["a", "ab"]

    async def test_manual_save_skips_debounce(self, persist, scheduler):
        session = _session(persist, scheduler)

        session.update_content("now please")
        await session.trigger_save()

        assert persist.calls == ["now please"]
        assert session.status is SaveStatus.SAVED


# ---------------------------------------------------------------------------
# Tests: configuration and lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    async def test_disabled_session_never_saves_on_its_own(self, persist, scheduler):
        session = _session(persist, scheduler, enabled=False)

        session.update_content("hello")
        await scheduler.advance(60)
        assert persist.calls == []

        await session.trigger_save()
        assert persist.calls == ["hello"]

    async def test_enabling_schedules_pending_changes(self, persist, scheduler):
        session = _session(persist, scheduler, enabled=False)
        session.update_content("hello")

        session.set_enabled(True)
        await scheduler.advance(3)

        assert persist.calls == ["hello"]

    async def test_set_interval_restarts_pending_timer(self, persist, scheduler):
        session = _session(persist, scheduler)
        session.update_content("hello")
        await scheduler.advance(2)

        session.set_interval(10)
        await scheduler.advance(9.5)
        assert persist.calls == []
        await scheduler.advance(0.5)
        assert persist.calls == ["hello"]

    async def test_invalid_interval(self, persist, scheduler):
        with pytest.raises(ValueError):
            _session(persist, scheduler, interval=0)
        session = _session(persist, scheduler)
        with pytest.raises(ValueError):
            session.set_interval(-1)

    async def test_close_cancels_every_timer(self, scheduler):
        persist = RecordingPersist(failures=1)
        session = _session(persist, scheduler)

        session.update_content("hello")
        await scheduler.advance(3)
        session.update_content("hello again")
        session.close()
        await scheduler.advance(60)

        assert persist.calls == ["hello"]
        assert scheduler.pending == []

    async def test_asyncio_scheduler_drives_a_real_save(self, persist):
        session = AutoSaveSession(persist, "", interval=0.01, scheduler=AsyncioScheduler())

        session.update_content("real time")
        await asyncio.sleep(0.1)

        assert persist.calls == ["real time"]
        session.close()


class TestAutoSaveSettings:
    def test_reads_profile_fields(self):
        prefs = AutoSaveSettings.from_preferences({"auto_save": False, "auto_save_interval": 10})
        assert prefs == AutoSaveSettings(enabled=False, interval=10.0)

    def test_defaults_when_missing(self):
        assert AutoSaveSettings.from_preferences({}) == AutoSaveSettings(enabled=True, interval=3.0)

    def test_interval_is_clamped(self):
        assert AutoSaveSettings.from_preferences({"auto_save_interval": 0}).interval == 1
        assert AutoSaveSettings.from_preferences({"auto_save_interval": 600}).interval == 60
