"""
Generation tracking service.
Logs every generation attempt with its outcome and timing. Charging is not
done here: credits are settled once per batch by the credit ledger.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models.generation import GenerationLog

logger = logging.getLogger(__name__)


class GenerationTracker:
    """Persists one GenerationLog row per attempt."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_start(
        self,
        user_id: str,
        project_id: Optional[str],
        resource_type: str,
        input_metadata: Optional[dict] = None,
    ) -> GenerationLog:
        """Log the start of a generation. Returns the log entry for later update."""
        log = GenerationLog(
            user_id=user_id,
            project_id=project_id,
            resource_type=resource_type,
            status="started",
            input_metadata=input_metadata,
        )
        self.db.add(log)
        await self.db.flush()
        return log

    async def log_success(
        self,
        log_id: str,
        ai_model: Optional[str] = None,
        duration_ms: Optional[int] = None,
    ) -> None:
        log = await self.db.get(GenerationLog, log_id)
        if not log:
            logger.warning("Generation log %s not found for success update", log_id)
            return

        log.status = "success"
        log.ai_model = ai_model
        log.duration_ms = duration_ms
        await self.db.flush()

    async def log_failure(
        self,
        log_id: str,
        error_message: str,
        duration_ms: Optional[int] = None,
    ) -> None:
        log = await self.db.get(GenerationLog, log_id)
        if not log:
            logger.warning("Generation log %s not found for failure update", log_id)
            return

        log.status = "failed"
        log.error_message = error_message[:2000] if error_message else None
        log.duration_ms = duration_ms
        await self.db.flush()
