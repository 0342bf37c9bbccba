"""
Credit ledger service.

All balance mutations are single conditional UPDATE statements, so the
"balance >= N" check and the decrement happen atomically in the database.
Concurrent requests for the same user (two tabs, two batches) are serialised
by the row lock the UPDATE takes; the loser re-evaluates the WHERE clause
against the committed balance instead of a stale read.

The ledger flushes but never commits: the caller owns the transaction.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InsufficientCreditsError, NotFoundError
from infrastructure.database.models.generation import CreditTransaction, CreditTransactionKind
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)

# Upper bound on compare-and-swap rounds in debit_up_to
_MAX_SETTLE_ROUNDS = 5


def _validate_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise ValueError(f"Credit amount must be an integer, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Credit amount must be non-negative, got {amount}")


class CreditLedger:
    """Atomic debit / refund / grant operations on a user's AI credit balance."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_balance(self, user_id: str) -> int:
        """Current spendable balance. Raises NotFoundError for unknown users."""
        result = await self.db.execute(select(User.ai_credits).where(User.id == user_id))
        balance = result.scalar_one_or_none()
        if balance is None:
            raise NotFoundError("User not found")
        return balance

    async def debit(
        self,
        user_id: str,
        amount: int,
        reason: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> int:
        """
        Take *amount* credits, all or nothing.

        Returns:
            The new balance.

        Raises:
            InsufficientCreditsError: If the balance is below *amount*; the
                balance is left untouched.
            NotFoundError: If the user does not exist.
        """
        _validate_amount(amount)
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.ai_credits >= amount)
            .values(ai_credits=User.ai_credits - amount)
            .returning(User.ai_credits)
            .execution_options(synchronize_session="fetch")
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            available = await self.get_balance(user_id)
            logger.info(
                "Debit of %d rejected for user %s (balance %d)",
                amount,
                user_id,
                available,
                extra={"user_id": user_id},
            )
            raise InsufficientCreditsError(required=amount, available=available)

        await self._record(user_id, CreditTransactionKind.DEBIT, amount, new_balance, reason, reference_id)
        return new_balance

    async def debit_up_to(
        self,
        user_id: str,
        amount: int,
        reason: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> tuple[int, int]:
        """
        Charge as much of *amount* as the balance allows.

        Used to settle work that has already happened: if another request
        spent credits in the meantime, the smaller affordable amount is charged
        rather than failing. Each round is a conditional debit, so the balance
        can never go negative.

        Returns:
            ``(charged, new_balance)``
        """
        _validate_amount(amount)
        target = amount
        for _ in range(_MAX_SETTLE_ROUNDS):
            if target == 0:
                return 0, await self.get_balance(user_id)
            try:
                new_balance = await self.debit(user_id, target, reason, reference_id)
                if target < amount:
                    logger.warning(
                        "Settled %d of %d credits for user %s; balance changed concurrently",
                        target,
                        amount,
                        user_id,
                        extra={"user_id": user_id},
                    )
                return target, new_balance
            except InsufficientCreditsError as e:
                target = min(amount, e.available)

        balance = await self.get_balance(user_id)
        logger.error(
            "Gave up settling %d credits for user %s after %d rounds",
            amount,
            user_id,
            _MAX_SETTLE_ROUNDS,
            extra={"user_id": user_id},
        )
        return 0, balance

    async def refund(
        self,
        user_id: str,
        amount: int,
        reason: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> int:
        """Give back previously debited credits. Never touches lifetime_credits."""
        _validate_amount(amount)
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(ai_credits=User.ai_credits + amount)
            .returning(User.ai_credits)
            .execution_options(synchronize_session="fetch")
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            raise NotFoundError("User not found")

        await self._record(user_id, CreditTransactionKind.REFUND, amount, new_balance, reason, reference_id)
        return new_balance

    async def grant(
        self,
        user_id: str,
        amount: int,
        reason: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> int:
        """Add newly granted credits to both the balance and the lifetime total."""
        _validate_amount(amount)
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                ai_credits=User.ai_credits + amount,
                lifetime_credits=User.lifetime_credits + amount,
            )
            .returning(User.ai_credits)
            .execution_options(synchronize_session="fetch")
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            raise NotFoundError("User not found")

        await self._record(user_id, CreditTransactionKind.GRANT, amount, new_balance, reason, reference_id)
        logger.info("Granted %d credits to user %s (%s)", amount, user_id, reason or "unspecified")
        return new_balance

    async def _record(
        self,
        user_id: str,
        kind: str,
        amount: int,
        balance_after: int,
        reason: Optional[str],
        reference_id: Optional[str],
    ) -> None:
        self.db.add(
            CreditTransaction(
                user_id=user_id,
                kind=kind,
                amount=amount,
                balance_after=balance_after,
                reason=reason,
                reference_id=reference_id,
            )
        )
        await self.db.flush()
