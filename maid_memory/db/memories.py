"""Memory table writes and listings."""

from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Memory


async def insert_memory(
    session: AsyncSession,
    user_id: str,
    content: str,
    embedding: Sequence[float],
    category: Optional[str] = None,
    importance: Optional[float] = None,
    confidence: Optional[float] = None,
) -> Memory:
    """Insert a memory created by an ADD decision."""
    memory = Memory(
        user_id=user_id,
        content=content,
        embedding=list(embedding),
        category=category,
        importance=importance,
        confidence=confidence,
        action="ADD",
    )
    session.add(memory)
    await session.flush()
    return memory


async def overwrite_memory(
    session: AsyncSession,
    user_id: str,
    memory_id: int,
    content: str,
    prev_content: Optional[str],
    embedding: Sequence[float],
) -> int:
    """Apply an UPDATE decision to an existing memory.

    Content and embedding are replaced together so the vector keeps
    describing the stored text. Returns the number of rows changed.
    """
    result = await session.execute(
        update(Memory)
        .where(Memory.id == memory_id, Memory.user_id == user_id)
        .values(
            content=content,
            prev_content=prev_content,
            embedding=list(embedding),
            action="UPDATE",
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def list_memories(
    session: AsyncSession,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
) -> list[Memory]:
    """A user's memories, most recently created first."""
    result = await session.execute(
        select(Memory)
        .where(Memory.user_id == user_id)
        .order_by(Memory.created_at.desc(), Memory.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_memories(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count(Memory.id)).where(Memory.user_id == user_id)
    )
    return result.scalar_one()
