"""
Tests for committing decision plans.

Tests:
- Inserts, overwrites and message marking in one transaction
- Rollback when any write fails
- User scoping of overwrites
"""

import pytest

from maid_memory.db import memories as memory_queries
from maid_memory.engine.applier import DecisionApplier
from maid_memory.engine.errors import TransactionError
from maid_memory.engine.planner import DecisionPlan, PlannedAdd, PlannedUpdate
from maid_memory.engine.search import ExistingMemory
from .factories import (
    OTHER_USER_ID,
    USER_ID,
    basis,
    fetch_memories,
    fetch_messages,
    seed_memory,
    seed_messages,
)


def add(text: str) -> PlannedAdd:
    return PlannedAdd(text=text, category="OTHER", importance=0.4, confidence=0.8)


def plan_for(*writes, vectors: dict | None = None) -> DecisionPlan:
    embeddings = vectors or {write.text: basis(idx) for idx, write in enumerate(writes)}
    return DecisionPlan(writes=list(writes), embeddings=embeddings)


@pytest.mark.asyncio
class TestDecisionApplier:
    """Tests for the write transaction."""

    async def test_applies_writes_and_marks_messages(self, session_factory):
        message_ids = await seed_messages(session_factory, USER_ID, ["I switched to dark roast", "I run"])
        memory_id = await seed_memory(session_factory, USER_ID, "User likes coffee", basis(9))
        target = ExistingMemory(unified_id=1, memory_id=memory_id, content="User likes coffee")
        plan = plan_for(
            PlannedUpdate(target=target, text="User likes dark roast coffee"),
            add("User runs"),
        )

        result = await DecisionApplier(session_factory).apply(USER_ID, plan, message_ids)

        assert (result.memories_added, result.memories_updated, result.messages_marked) == (1, 1, 2)
        stored = await fetch_memories(session_factory, USER_ID)
        assert [(m.content, m.prev_content, m.action) for m in stored] == [
            ("User likes dark roast coffee", "User likes coffee", "UPDATE"),
            ("User runs", None, "ADD"),
        ]
        assert list(stored[0].embedding) == basis(0)
        assert stored[1].category == "OTHER"
        assert all(m.extracted for m in await fetch_messages(session_factory, message_ids))

    async def test_failure_rolls_back_everything(self, session_factory, monkeypatch):
        message_ids = await seed_messages(session_factory, USER_ID, ["I like tea", "I own a cat"])
        calls = []

        async def failing_insert(session, **kwargs):
            calls.append(kwargs["content"])
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return await memory_queries.insert_memory(session, **kwargs)

        monkeypatch.setattr("maid_memory.engine.applier.insert_memory", failing_insert)
        plan = plan_for(add("User likes tea"), add("User owns a cat"), add("User lives alone"))

        with pytest.raises(TransactionError, match="disk full"):
            await DecisionApplier(session_factory).apply(USER_ID, plan, message_ids)

        assert calls == ["User likes tea", "User owns a cat"]
        assert await fetch_memories(session_factory, USER_ID) == []
        assert not any(m.extracted for m in await fetch_messages(session_factory, message_ids))

    async def test_update_scoped_to_user(self, session_factory):
        foreign_id = await seed_memory(session_factory, OTHER_USER_ID, "User likes jazz", basis(3))
        target = ExistingMemory(unified_id=1, memory_id=foreign_id, content="User likes jazz")
        plan = plan_for(PlannedUpdate(target=target, text="User likes bebop jazz"))

        result = await DecisionApplier(session_factory).apply(USER_ID, plan, [])

        assert result.memories_updated == 0
        stored = await fetch_memories(session_factory, OTHER_USER_ID)
        assert stored[0].content == "User likes jazz"
        assert stored[0].action == "ADD"

    async def test_mark_only(self, session_factory):
        message_ids = await seed_messages(session_factory, USER_ID, ["hi", "how are you"])

        marked = await DecisionApplier(session_factory).mark_only(message_ids)

        assert marked == 2
        assert await fetch_memories(session_factory, USER_ID) == []
        assert all(m.extracted for m in await fetch_messages(session_factory, message_ids))
