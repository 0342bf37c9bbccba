"""
HTTP client used by the editor to persist chapters and read preferences.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .autosave import AutoSaveSession, AutoSaveSettings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
EDITOR_USER_AGENT = "AuthorStudio-Editor/1.0"


class PersistFailedError(Exception):
    """A save did not reach the server or was rejected by it."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class EditorClient:
    """Thin async wrapper over the chapter and preferences endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": EDITOR_USER_AGENT,
            },
        )

    async def __aenter__(self) -> "EditorClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def save_chapter(self, project_id: str, chapter_id: str, content: str) -> dict[str, Any]:
        """
        Persist chapter content.

        Raises:
            PersistFailedError: On transport errors or a non-2xx response.
        """
        return await self._request(
            "PATCH",
            f"/projects/{project_id}/chapters/{chapter_id}",
            json={"content": content},
        )

    async def get_preferences(self) -> AutoSaveSettings:
        data = await self._request("GET", "/users/me/preferences")
        return AutoSaveSettings.from_preferences(data)

    def chapter_persister(self, project_id: str, chapter_id: str) -> Callable[[str], Awaitable[Any]]:
        """Bind ``save_chapter`` to one chapter for use as an autosave target."""

        async def persist(content: str) -> dict[str, Any]:
            return await self.save_chapter(project_id, chapter_id, content)

        return persist

    async def open_autosave(
        self,
        project_id: str,
        chapter_id: str,
        content: str,
        **session_kwargs: Any,
    ) -> AutoSaveSession:
        """Autosave session for a chapter, configured from the user's preferences."""
        prefs = await self.get_preferences()
        return AutoSaveSession(
            self.chapter_persister(project_id, chapter_id),
            content,
            enabled=prefs.enabled,
            interval=prefs.interval,
            **session_kwargs,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise PersistFailedError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise PersistFailedError(f"Connection error: {e}") from e

        if response.is_success:
            return response.json() if response.content else {}

        detail = response.text
        try:
            detail = response.json().get("detail", detail)
        except ValueError:
            pass
        logger.warning("%s %s returned %d: %s", method, path, response.status_code, detail)
        raise PersistFailedError(
            f"Server returned {response.status_code}: {detail}",
            status_code=response.status_code,
        )
