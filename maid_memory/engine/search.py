"""Per-user vector similarity search over stored memories.

On PostgreSQL the ranking runs in the database through pgvector's cosine
distance operator, one query per embedding, issued concurrently on
separate sessions. Other dialects (SQLite in tests and local runs) load the
user's embedded memories once and rank them with numpy.

Both paths apply the same contract: only the requested user's rows,
`similarity > min_similarity`, highest similarity first (ties by id), at
most `top_k` rows.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import structlog
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models import Memory
from .embeddings import cosine_similarity

logger = structlog.get_logger()


@dataclass
class SimilarMemory:
    """A stored memory matched against a query embedding."""
    memory: Memory
    similarity: float


@dataclass
class ExistingMemory:
    """A matched memory labelled with its unified number for one run."""
    unified_id: int
    memory_id: int
    content: str


def build_similarity_query(
    query_embedding: Sequence[float],
    user_id: str,
    top_k: int,
    min_similarity: float,
) -> Select:
    """pgvector statement returning (Memory, similarity) rows."""
    similarity = 1 - Memory.embedding.cosine_distance(list(query_embedding))
    return (
        select(Memory, similarity.label("similarity"))
        .where(Memory.user_id == user_id, similarity > min_similarity)
        .order_by(similarity.desc(), Memory.id.asc())
        .limit(top_k)
    )


class SimilaritySearch:
    """Finds the memories of one user closest to query embeddings.

    Attributes:
        session_factory: Opens read sessions; one per concurrent query.
        top_k: Default cap on results per query.
        min_similarity: Default exclusive similarity threshold.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        top_k: int = 5,
        min_similarity: float = 0.0,
    ):
        self.session_factory = session_factory
        self.top_k = top_k
        self.min_similarity = min_similarity
        self._dialect: Optional[str] = None

    async def _dialect_name(self) -> str:
        if self._dialect is None:
            async with self.session_factory() as session:
                self._dialect = session.get_bind().dialect.name
        return self._dialect

    async def search(
        self,
        query_embedding: Sequence[float],
        user_id: str,
        top_k: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> List[SimilarMemory]:
        """Search with a single query embedding."""
        results = await self.bulk_search([query_embedding], user_id, top_k, min_similarity)
        return results[0]

    async def bulk_search(
        self,
        query_embeddings: Sequence[Sequence[float]],
        user_id: str,
        top_k: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> List[List[SimilarMemory]]:
        """Search with several embeddings; one result list per embedding."""
        if not query_embeddings:
            return []

        top_k = self.top_k if top_k is None else top_k
        min_similarity = self.min_similarity if min_similarity is None else min_similarity

        if await self._dialect_name() == "postgresql":
            return list(
                await asyncio.gather(
                    *[
                        self._search_pgvector(query, user_id, top_k, min_similarity)
                        for query in query_embeddings
                    ]
                )
            )
        return await self._search_in_process(query_embeddings, user_id, top_k, min_similarity)

    async def _search_pgvector(
        self,
        query_embedding: Sequence[float],
        user_id: str,
        top_k: int,
        min_similarity: float,
    ) -> List[SimilarMemory]:
        async with self.session_factory() as session:
            result = await session.execute(
                build_similarity_query(query_embedding, user_id, top_k, min_similarity)
            )
            return [
                SimilarMemory(memory=memory, similarity=float(similarity))
                for memory, similarity in result.all()
            ]

    async def _search_in_process(
        self,
        query_embeddings: Sequence[Sequence[float]],
        user_id: str,
        top_k: int,
        min_similarity: float,
    ) -> List[List[SimilarMemory]]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Memory)
                .where(Memory.user_id == user_id, Memory.embedding.is_not(None))
                .order_by(Memory.id.asc())
            )
            memories = list(result.scalars().all())

        if not memories:
            return [[] for _ in query_embeddings]

        matrix = np.vstack([np.asarray(m.embedding, dtype=np.float64) for m in memories])
        results = []
        for query in query_embeddings:
            similarities = cosine_similarity(query, matrix)
            # stable sort keeps id order among equal scores
            order = np.argsort(-similarities, kind="stable")
            matches = [
                SimilarMemory(memory=memories[idx], similarity=float(similarities[idx]))
                for idx in order
                if similarities[idx] > min_similarity
            ]
            results.append(matches[:top_k])
        return results


async def search_similar_memories(
    session_factory: async_sessionmaker[AsyncSession],
    query_embedding: Sequence[float],
    user_id: str,
    top_k: int = 5,
    min_similarity: float = 0.0,
) -> List[SimilarMemory]:
    """Memories of `user_id` closest to one query embedding."""
    return await SimilaritySearch(session_factory, top_k, min_similarity).search(query_embedding, user_id)


async def bulk_search_similar_memories(
    session_factory: async_sessionmaker[AsyncSession],
    query_embeddings: Sequence[Sequence[float]],
    user_id: str,
    top_k: int = 5,
    min_similarity: float = 0.0,
) -> List[List[SimilarMemory]]:
    """One result list per query embedding, in query order."""
    return await SimilaritySearch(session_factory, top_k, min_similarity).bulk_search(query_embeddings, user_id)


def collect_existing_memories(results: Sequence[Sequence[SimilarMemory]]) -> List[ExistingMemory]:
    """Number the distinct matched memories 1..E.

    Memories are taken in first-seen order, scanning the per-fact result
    lists in fact order and each list in rank order.
    """
    seen: dict[int, ExistingMemory] = {}
    for matches in results:
        for match in matches:
            memory = match.memory
            if memory.id not in seen:
                seen[memory.id] = ExistingMemory(
                    unified_id=len(seen) + 1,
                    memory_id=memory.id,
                    content=memory.content or "",
                )
    return list(seen.values())
