"""Message queries used by the extraction engine.

Messages belong to a user through their story, so every query joins on
`story.user_id`.
"""

from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Message, Story


async def get_messages_by_user(
    session: AsyncSession,
    user_id: str,
    story_id: Optional[int] = None,
    extracted: Optional[bool] = None,
    role: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> list[Message]:
    """List a user's messages, oldest first, with optional filters.

    Args:
        session: Database session.
        user_id: Owner of the stories the messages belong to.
        story_id: Restrict to one story.
        extracted: Restrict to extracted (True) or pending (False) messages.
        role: Restrict to "system", "user" or "assistant".
        limit: Maximum number of messages to return (defaults to all).
        offset: Number of messages to skip.

    Returns:
        Messages ordered by creation time, ties broken by id.
    """
    stmt = (
        select(Message)
        .join(Story, Message.story_id == Story.id)
        .where(Story.user_id == user_id)
    )

    if story_id is not None:
        stmt = stmt.where(Message.story_id == story_id)
    if extracted is not None:
        stmt = stmt.where(Message.extracted == extracted)
    if role is not None:
        stmt = stmt.where(Message.role == role)

    stmt = stmt.order_by(Message.created_at.asc(), Message.id.asc())

    if limit is not None:
        stmt = stmt.limit(limit)
    if offset is not None:
        stmt = stmt.offset(offset)

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_pending_messages(session: AsyncSession, user_id: str) -> list[Message]:
    """User-authored messages that have not been through extraction yet."""
    return await get_messages_by_user(session, user_id, extracted=False, role="user")


async def mark_extracted(session: AsyncSession, message_ids: Sequence[int]) -> int:
    """Flag messages as extracted inside the caller's transaction.

    Only messages still pending are touched, so a message is flipped at
    most once. Returns the number of rows changed.
    """
    if not message_ids:
        return 0

    result = await session.execute(
        update(Message)
        .where(Message.id.in_(list(message_ids)), Message.extracted.is_(False))
        .values(extracted=True)
    )
    return result.rowcount
