"""
Tests for per-user similarity search.

Tests:
- User isolation
- Threshold, ranking and top-K
- pgvector statement shape
- First-seen numbering of matches
"""

import pytest
from sqlalchemy.dialects import postgresql

from maid_memory.db.models import Memory
from maid_memory.engine.search import (
    SimilarMemory,
    SimilaritySearch,
    build_similarity_query,
    bulk_search_similar_memories,
    collect_existing_memories,
    search_similar_memories,
)
from .factories import OTHER_USER_ID, USER_ID, basis, blend, seed_memory


@pytest.mark.asyncio
class TestSimilaritySearch:
    """Tests for search on the in-process ranking path."""

    async def test_only_returns_requesting_user(self, session_factory):
        own = await seed_memory(session_factory, USER_ID, "User likes coffee", basis(0))
        await seed_memory(session_factory, OTHER_USER_ID, "User likes coffee", basis(0))
        search = SimilaritySearch(session_factory)

        results = await search.search(basis(0), USER_ID)

        assert [r.memory.id for r in results] == [own]
        assert results[0].similarity == pytest.approx(1.0)

    async def test_threshold_excludes_weak_matches(self, session_factory):
        strong = await seed_memory(session_factory, USER_ID, "User likes dark roast", blend(0.9))
        await seed_memory(session_factory, USER_ID, "User likes mornings", blend(0.6))
        search = SimilaritySearch(session_factory, min_similarity=0.75)

        results = await search.search(basis(0), USER_ID)

        assert [r.memory.id for r in results] == [strong]

    async def test_threshold_is_strict(self, session_factory):
        await seed_memory(session_factory, USER_ID, "User owns a bike", basis(5))
        search = SimilaritySearch(session_factory, min_similarity=0.0)

        assert await search.search(basis(0), USER_ID) == []

    async def test_ranks_and_caps_results(self, session_factory):
        low = await seed_memory(session_factory, USER_ID, "low", blend(0.72))
        top = await seed_memory(session_factory, USER_ID, "top", blend(0.95))
        mid = await seed_memory(session_factory, USER_ID, "mid", blend(0.85))
        search = SimilaritySearch(session_factory, top_k=2, min_similarity=0.7)

        results = await search.search(basis(0), USER_ID)

        assert [r.memory.id for r in results] == [top, mid]
        assert low not in [r.memory.id for r in results]
        assert results[0].similarity > results[1].similarity

    async def test_ties_break_by_id(self, session_factory):
        first = await seed_memory(session_factory, USER_ID, "User likes tea", basis(0))
        second = await seed_memory(session_factory, USER_ID, "User drinks tea", basis(0))
        search = SimilaritySearch(session_factory)

        results = await search.search(basis(0), USER_ID)

        assert [r.memory.id for r in results] == [first, second]

    async def test_call_arguments_override_defaults(self, session_factory):
        for idx in range(4):
            await seed_memory(session_factory, USER_ID, f"memory {idx}", blend(0.8 + idx * 0.05))
        search = SimilaritySearch(session_factory, top_k=1, min_similarity=0.9)

        results = await search.search(basis(0), USER_ID, top_k=3, min_similarity=0.0)

        assert len(results) == 3

    async def test_bulk_search_one_list_per_query(self, session_factory):
        coffee = await seed_memory(session_factory, USER_ID, "User likes coffee", basis(0))
        oslo = await seed_memory(session_factory, USER_ID, "User lives in Oslo", basis(1))
        search = SimilaritySearch(session_factory, top_k=3, min_similarity=0.7)

        results = await search.bulk_search([basis(1), basis(2), basis(0)], USER_ID)

        assert [[r.memory.id for r in matches] for matches in results] == [[oslo], [], [coffee]]

    async def test_bulk_search_without_memories(self, session_factory):
        search = SimilaritySearch(session_factory)

        assert await search.bulk_search([basis(0), basis(1)], USER_ID) == [[], []]
        assert await search.bulk_search([], USER_ID) == []


@pytest.mark.asyncio
class TestSearchFunctions:
    """Tests for the module-level search helpers."""

    async def test_defaults_keep_any_positive_match(self, session_factory):
        weak = await seed_memory(session_factory, USER_ID, "User likes mornings", blend(0.3))
        strong = await seed_memory(session_factory, USER_ID, "User likes coffee", blend(0.9))
        await seed_memory(session_factory, USER_ID, "User owns a bike", basis(5))

        results = await search_similar_memories(session_factory, basis(0), USER_ID)

        assert [r.memory.id for r in results] == [strong, weak]

    async def test_bulk_with_explicit_limits(self, session_factory):
        coffee = await seed_memory(session_factory, USER_ID, "User likes coffee", blend(0.9))
        await seed_memory(session_factory, USER_ID, "User likes mornings", blend(0.6))
        oslo = await seed_memory(session_factory, USER_ID, "User lives in Oslo", basis(2))

        results = await bulk_search_similar_memories(
            session_factory, [basis(0), basis(2)], USER_ID, top_k=1, min_similarity=0.7
        )

        assert [[r.memory.id for r in matches] for matches in results] == [[coffee], [oslo]]


class TestSimilarityQuery:
    """Tests for the pgvector statement."""

    def test_compiles_cosine_distance_query(self):
        stmt = build_similarity_query([1.0, 0.0, 0.0], USER_ID, top_k=3, min_similarity=0.7)

        sql = str(stmt.compile(dialect=postgresql.dialect()))

        assert "<=>" in sql
        assert "memory.user_id =" in sql
        assert "DESC, memory.id ASC" in sql
        assert "LIMIT" in sql


class TestCollectExistingMemories:
    """Tests for unified numbering of matched memories."""

    def test_first_seen_order_without_duplicates(self):
        coffee = Memory(id=10, content="User likes coffee")
        oslo = Memory(id=4, content="User lives in Oslo")
        tea = Memory(id=7, content="User likes tea")
        results = [
            [SimilarMemory(coffee, 0.9), SimilarMemory(tea, 0.8)],
            [],
            [SimilarMemory(oslo, 0.95), SimilarMemory(coffee, 0.75)],
        ]

        existing = collect_existing_memories(results)

        assert [(m.unified_id, m.memory_id) for m in existing] == [(1, 10), (2, 7), (3, 4)]
        assert existing[0].content == "User likes coffee"

    def test_empty(self):
        assert collect_existing_memories([[], []]) == []
