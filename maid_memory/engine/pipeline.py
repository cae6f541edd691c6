"""End-to-end memory extraction for one user.

extract -> embed -> search -> decide -> plan -> commit

Every read and every model/embedding call finishes before the single write
transaction opens. Runs for the same user are serialized within this
process.
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import date
from functools import lru_cache
from typing import Optional
from weakref import WeakValueDictionary

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config.settings import settings
from ..db.messages import get_pending_messages
from .applier import DecisionApplier
from .embeddings import EmbeddingClient
from .extractor import FactExtractor, StructuredCaller
from .llm import StructuredModelClient
from .merge import MergeDecider, UnifiedNumbering
from .planner import DecisionPlanner, Embedder
from .search import SimilaritySearch, collect_existing_memories

logger = structlog.get_logger()


@dataclass
class ExtractionStats:
    """Counts reported by one extraction run."""
    facts_extracted: int = 0
    memories_added: int = 0
    memories_updated: int = 0
    messages_extracted: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class MemoryExtractor:
    """Extracts facts from a user's pending messages and merges them into memory.

    Example:
        >>> extractor = MemoryExtractor(AsyncSessionLocal)
        >>> stats = await extractor.extract_memory("user_123")
        >>> stats.memories_added
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        llm: Optional[StructuredCaller] = None,
        embedder: Optional[Embedder] = None,
        top_k: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.llm = llm or StructuredModelClient()
        self.embedder = embedder or EmbeddingClient()

        self.extractor = FactExtractor(self.llm)
        self.search = SimilaritySearch(
            session_factory,
            top_k=settings.memory_top_k if top_k is None else top_k,
            min_similarity=settings.memory_min_similarity if min_similarity is None else min_similarity,
        )
        self.decider = MergeDecider(self.llm)
        self.planner = DecisionPlanner(self.embedder)
        self.applier = DecisionApplier(session_factory)

        # entries disappear once no run holds or waits on the lock
        self._user_locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    async def extract_memory(self, user_id: str, today: Optional[date] = None) -> ExtractionStats:
        """Process every pending message of `user_id`.

        Returns counts for the run. Raises UpstreamModelError, EmbeddingError
        or TransactionError; in each case no memory is written and no
        message is marked.
        """
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = self._user_locks[user_id] = asyncio.Lock()
        async with lock:
            return await self._run(user_id, today)

    async def _run(self, user_id: str, today: Optional[date]) -> ExtractionStats:
        log = logger.bind(user_id=user_id)

        async with self.session_factory() as session:
            pending = await get_pending_messages(session, user_id)
        if not pending:
            log.debug("no_pending_messages")
            return ExtractionStats()

        message_ids = [msg.id for msg in pending]

        facts = await self.extractor.extract(pending, today=today)
        if not facts:
            await self.applier.mark_only(message_ids)
            log.info("no_facts_extracted", messages_extracted=len(message_ids))
            return ExtractionStats(messages_extracted=len(message_ids))

        # fact embeddings double as search queries and as ADD vectors
        fact_embeddings = await self.embedder.embed([fact.text for fact in facts])

        matches = await self.search.bulk_search(fact_embeddings, user_id)
        numbering = UnifiedNumbering(existing=collect_existing_memories(matches), facts=facts)

        decisions = await self.decider.decide(numbering)
        plan = await self.planner.plan(numbering, fact_embeddings, decisions)

        result = await self.applier.apply(user_id, plan, message_ids)

        stats = ExtractionStats(
            facts_extracted=len(facts),
            memories_added=result.memories_added,
            memories_updated=result.memories_updated,
            messages_extracted=len(message_ids),
        )
        log.info(
            "memory_extraction_complete",
            matched_memories=len(numbering.existing),
            decisions=len(decisions),
            extra_embeddings=plan.embedded_texts,
            **stats.to_dict(),
        )
        return stats


@lru_cache
def get_memory_extractor() -> MemoryExtractor:
    """Process-wide extractor bound to the application database."""
    from ..db.database import AsyncSessionLocal

    return MemoryExtractor(AsyncSessionLocal)


async def extract_memory(user_id: str) -> ExtractionStats:
    """Run extraction for `user_id` with the default wiring."""
    return await get_memory_extractor().extract_memory(user_id)
