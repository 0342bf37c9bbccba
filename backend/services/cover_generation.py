"""
AI cover generation for book projects.

A batch runs its attempts one after another. Each attempt is isolated, so a
provider error costs the author nothing and does not stop the batch. Credits
are settled once at the end for the covers that were actually produced.
"""

import asyncio
import logging
import time
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.ai.replicate_adapter import ReplicateCoverService, cover_ai_service
from adapters.storage.image_storage import StorageAdapter, store_cover
from core.domain.generation import (
    MAX_BATCH,
    AttemptResult,
    BatchResult,
    build_cover_prompt,
    build_single_cover_prompt,
    select_style,
    summarize_attempts,
)
from core.errors import (
    ForbiddenError,
    GenerationFailedError,
    InsufficientCreditsError,
    NotFoundError,
)
from infrastructure.config.settings import settings
from infrastructure.database.models.project import Project
from services.credit_ledger import CreditLedger
from services.generation_tracker import GenerationTracker

logger = logging.getLogger(__name__)

# Portrait, suitable for KDP covers
COVER_WIDTH = 1024
COVER_HEIGHT = 1792

RESOURCE_TYPE = "cover"


class CoverBatchGenerator:
    """Generates cover candidates for a project and charges for the successes."""

    def __init__(
        self,
        db: AsyncSession,
        image_service: Optional[ReplicateCoverService] = None,
        storage: Optional[StorageAdapter] = None,
    ):
        self.db = db
        self.ledger = CreditLedger(db)
        self.tracker = GenerationTracker(db)
        self.image_service = image_service or cover_ai_service
        self.storage = storage

    async def run_batch(
        self,
        user_id: str,
        project_id: str,
        prompt: str,
        count: int = MAX_BATCH,
        style: Optional[str] = None,
    ) -> BatchResult:
        """
        Generate up to *count* covers and charge one credit per success.

        Raises:
            ValueError: If count is outside 1..MAX_BATCH.
            NotFoundError: If the project does not exist.
            ForbiddenError: If the project belongs to someone else.
            InsufficientCreditsError: If the balance cannot cover *count*;
                raised before any attempt is made.
            GenerationFailedError: If every attempt failed. Nothing is charged.
        """
        if not 1 <= count <= MAX_BATCH:
            raise ValueError(f"count must be between 1 and {MAX_BATCH}, got {count}")

        project = await self._get_owned_project(user_id, project_id)

        balance = await self.ledger.get_balance(user_id)
        if balance < count:
            raise InsufficientCreditsError(required=count, available=balance)

        attempts: list[AttemptResult] = []
        try:
            for index in range(count):
                attempts.append(await self._attempt(user_id, project, prompt, index, style))
        except asyncio.CancelledError:
            successes = summarize_attempts(attempts)
            logger.warning(
                "Cover batch cancelled after %d/%d attempts for project %s",
                len(attempts),
                count,
                project_id,
                extra={"user_id": user_id, "project_id": project_id},
            )
            if successes:
                await asyncio.shield(self._settle(user_id, project_id, successes))
            raise

        artifacts = summarize_attempts(attempts)
        if not artifacts:
            await self.db.commit()
            errors = "; ".join(a.error or "unknown error" for a in attempts)
            logger.error(
                "All %d cover attempts failed for project %s: %s",
                count,
                project_id,
                errors,
                extra={"user_id": user_id, "project_id": project_id, "attempts": count},
            )
            raise GenerationFailedError(
                "Failed to generate any cover images. Please try again.",
                {"attempted": count},
            )

        charged, remaining = await self._settle(user_id, project_id, artifacts)
        logger.info(
            "Generated %d/%d covers for project %s",
            len(artifacts),
            count,
            project_id,
            extra={
                "user_id": user_id,
                "project_id": project_id,
                "credits_used": charged,
                "credits_remaining": remaining,
                "attempts": count,
            },
        )
        return BatchResult(
            artifacts=artifacts,
            credits_used=charged,
            credits_remaining=remaining,
            attempted=count,
        )

    async def generate_single(
        self,
        user_id: str,
        project_id: str,
        prompt: str,
        style: Optional[str] = None,
    ) -> tuple[str, int]:
        """
        Generate one cover, paid for up front and refunded on failure.

        Returns:
            ``(cover_url, credits_remaining)``
        """
        project = await self._get_owned_project(user_id, project_id)
        cost = settings.single_cover_cost

        await self.ledger.debit(user_id, cost, reason="cover:single", reference_id=project_id)
        await self.db.commit()

        enhanced = build_single_cover_prompt(prompt, style, project.title, project.genre)
        log = await self.tracker.log_start(
            user_id, project_id, RESOURCE_TYPE, {"style": style, "mode": "single"}
        )
        start = time.monotonic()
        try:
            url = await self._produce(project_id, enhanced, style, "ai-cover")
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.error("Single cover generation failed for project %s: %s", project_id, e)
            await self.tracker.log_failure(log.id, str(e), duration_ms)
            await self.ledger.refund(
                user_id, cost, reason="cover:single:failed", reference_id=project_id
            )
            await self.db.commit()
            raise GenerationFailedError(
                "Failed to generate cover image. Please try again."
            ) from e

        duration_ms = int((time.monotonic() - start) * 1000)
        await self.tracker.log_success(log.id, self.image_service.model, duration_ms)
        remaining = await self.ledger.get_balance(user_id)
        await self.db.commit()
        return url, remaining

    async def _get_owned_project(self, user_id: str, project_id: str) -> Project:
        result = await self.db.execute(select(Project).where(Project.id == project_id))
        project = result.scalar_one_or_none()
        if not project:
            raise NotFoundError("Project not found")
        if project.user_id != user_id:
            raise ForbiddenError("You do not have access to this project")
        return project

    async def _attempt(
        self,
        user_id: str,
        project: Project,
        prompt: str,
        index: int,
        explicit_style: Optional[str],
    ) -> AttemptResult:
        style = select_style(index, explicit_style)
        enhanced = build_cover_prompt(prompt, style, project.title, project.genre)

        log_id = await self._safe_log_start(user_id, project.id, style, index)
        start = time.monotonic()
        try:
            url = await self._produce(project.id, enhanced, style, f"ai-cover-{index + 1}")
        except Exception as e:
            logger.warning(
                "Cover attempt %d failed for project %s: %s",
                index + 1,
                project.id,
                e,
                extra={"project_id": project.id},
            )
            await self._safe_log_end(log_id, start, error=str(e))
            return AttemptResult.failure(index, style, str(e))

        await self._safe_log_end(log_id, start)
        return AttemptResult.success(index, style, url)

    async def _produce(self, project_id: str, prompt: str, style: Optional[str], name: str) -> str:
        image = await self.image_service.generate_image(
            prompt=prompt,
            width=COVER_WIDTH,
            height=COVER_HEIGHT,
            style=style,
        )
        return await store_cover(image.url, project_id, f"{name}.png", adapter=self.storage)

    async def _settle(self, user_id: str, project_id: str, artifacts: list[str]) -> tuple[int, int]:
        charged, remaining = await self.ledger.debit_up_to(
            user_id,
            len(artifacts),
            reason=f"cover:batch:{len(artifacts)}",
            reference_id=project_id,
        )
        await self.db.commit()
        return charged, remaining

    # Tracking is best effort: a produced cover must never be lost to a log write.
    # Each write runs in its own savepoint so a failed flush leaves the session usable.

    async def _safe_log_start(
        self, user_id: str, project_id: str, style: str, index: int
    ) -> Optional[str]:
        try:
            async with self.db.begin_nested():
                log = await self.tracker.log_start(
                    user_id, project_id, RESOURCE_TYPE, {"style": style, "index": index}
                )
            return log.id
        except Exception as e:
            logger.warning("Failed to record generation start: %s", e)
            return None

    async def _safe_log_end(self, log_id: Optional[str], start: float, error: Optional[str] = None) -> None:
        if log_id is None:
            return
        duration_ms = int((time.monotonic() - start) * 1000)
        try:
            async with self.db.begin_nested():
                if error is None:
                    await self.tracker.log_success(log_id, self.image_service.model, duration_ms)
                else:
                    await self.tracker.log_failure(log_id, error, duration_ms)
        except Exception as e:
            logger.warning("Failed to record generation outcome: %s", e)
