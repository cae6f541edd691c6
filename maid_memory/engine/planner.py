"""Turns merge decisions into concrete writes.

All embeddings the writes need are resolved here, before any transaction
opens. Fact embeddings computed for the search are reused; every other text
is embedded once in a single batch, keyed by exact string.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Union

import structlog

from .errors import InvalidDecisionReference
from .merge import UnifiedNumbering
from .schemas import MemoryDecision
from .search import ExistingMemory

logger = structlog.get_logger()


class Embedder(Protocol):
    async def embed(
        self, texts: Union[str, Sequence[str]]
    ) -> Union[List[float], List[List[float]]]: ...


@dataclass
class PlannedAdd:
    """Insert a new memory."""
    text: str
    category: str
    importance: float
    confidence: float


@dataclass
class PlannedUpdate:
    """Overwrite a matched memory, keeping its old content as history."""
    target: ExistingMemory
    text: str

    @property
    def prev_content(self) -> str:
        return self.target.content


PlannedWrite = Union[PlannedAdd, PlannedUpdate]


@dataclass
class DecisionPlan:
    """Ordered writes plus the embedding for every text they store."""
    writes: List[PlannedWrite] = field(default_factory=list)
    embeddings: dict[str, List[float]] = field(default_factory=dict)
    embedded_texts: int = 0  # texts embedded while planning

    @property
    def adds(self) -> int:
        return sum(1 for write in self.writes if isinstance(write, PlannedAdd))

    @property
    def updates(self) -> int:
        return sum(1 for write in self.writes if isinstance(write, PlannedUpdate))

    def embedding_for(self, write: PlannedWrite) -> List[float]:
        return self.embeddings[write.text]


class DecisionPlanner:
    """Resolves decisions against a numbering and batches missing embeddings."""

    def __init__(self, embedder: Embedder):
        self.embedder = embedder

    async def plan(
        self,
        numbering: UnifiedNumbering,
        fact_embeddings: Sequence[List[float]],
        decisions: Sequence[MemoryDecision],
    ) -> DecisionPlan:
        embeddings: dict[str, List[float]] = {}
        for fact, vector in zip(numbering.facts, fact_embeddings):
            embeddings.setdefault(fact.text, vector)

        to_embed: list[str] = []
        writes: list[PlannedWrite] = []
        for decision in decisions:
            try:
                write = self._resolve(numbering, decision)
            except InvalidDecisionReference as e:
                logger.warning(
                    "decision_dropped",
                    decision_id=e.decision_id,
                    decision_event=e.event,
                    reason=str(e),
                )
                continue
            if write is None:
                continue

            if write.text not in embeddings and write.text not in to_embed:
                to_embed.append(write.text)
            writes.append(write)

        if to_embed:
            vectors = await self.embedder.embed(to_embed)
            embeddings.update(zip(to_embed, vectors))

        return DecisionPlan(writes=writes, embeddings=embeddings, embedded_texts=len(to_embed))

    def _resolve(
        self, numbering: UnifiedNumbering, decision: MemoryDecision
    ) -> Optional[PlannedWrite]:
        if decision.event == "ADD":
            fact = numbering.resolve_fact(decision)
            return PlannedAdd(
                text=decision.text or fact.text,
                category=fact.category,
                importance=fact.importance,
                confidence=fact.confidence,
            )

        target = numbering.resolve_existing(decision)
        if not decision.text:
            logger.warning("empty_update_dropped", decision_id=decision.id)
            return None
        return PlannedUpdate(target=target, text=decision.text)
