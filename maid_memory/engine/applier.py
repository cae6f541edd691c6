"""Commits a decision plan in a single transaction."""

from dataclasses import dataclass
from typing import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.memories import insert_memory, overwrite_memory
from ..db.messages import mark_extracted
from .errors import TransactionError
from .planner import DecisionPlan, PlannedAdd, PlannedUpdate

logger = structlog.get_logger()


@dataclass
class ApplyResult:
    memories_added: int = 0
    memories_updated: int = 0
    messages_marked: int = 0


class DecisionApplier:
    """Writes planned memories and marks their source messages extracted.

    Everything happens inside one transaction: either all writes and all
    message marks are committed, or nothing is.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def apply(
        self,
        user_id: str,
        plan: DecisionPlan,
        message_ids: Sequence[int],
    ) -> ApplyResult:
        """Apply the plan's writes in order, then mark `message_ids`.

        Raises:
            TransactionError: Any write or the commit failed; the
                transaction has been rolled back.
        """
        result = ApplyResult()
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    for write in plan.writes:
                        embedding = plan.embedding_for(write)
                        if isinstance(write, PlannedAdd):
                            await self._add(session, user_id, write, embedding)
                            result.memories_added += 1
                        elif await self._update(session, user_id, write, embedding):
                            result.memories_updated += 1
                    result.messages_marked = await mark_extracted(session, message_ids)
        except Exception as e:
            logger.error(
                "memory_transaction_rolled_back",
                user_id=user_id,
                planned_writes=len(plan.writes),
                error=str(e),
            )
            raise TransactionError(f"Applying memory plan for user {user_id} failed: {e}") from e

        return result

    async def mark_only(self, message_ids: Sequence[int]) -> int:
        """Mark messages extracted without writing memories."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    return await mark_extracted(session, message_ids)
        except Exception as e:
            raise TransactionError(f"Marking {len(message_ids)} message(s) extracted failed: {e}") from e

    async def _add(
        self,
        session: AsyncSession,
        user_id: str,
        write: PlannedAdd,
        embedding: Sequence[float],
    ) -> None:
        await insert_memory(
            session,
            user_id=user_id,
            content=write.text,
            embedding=embedding,
            category=write.category,
            importance=write.importance,
            confidence=write.confidence,
        )

    async def _update(
        self,
        session: AsyncSession,
        user_id: str,
        write: PlannedUpdate,
        embedding: Sequence[float],
    ) -> bool:
        changed = await overwrite_memory(
            session,
            user_id=user_id,
            memory_id=write.target.memory_id,
            content=write.text,
            prev_content=write.prev_content,
            embedding=embedding,
        )
        if not changed:
            logger.warning("update_target_missing", user_id=user_id, memory_id=write.target.memory_id)
        return bool(changed)
