"""Merge decisions: ask the model how new facts relate to matched memories.

Existing memories and new facts are shown to the model under one run-local
numbering: memories 1..E, facts E+1..E+F. The numbering is rebuilt on every
run and never stored.
"""

from dataclasses import dataclass
from typing import List

import structlog

from .errors import InvalidDecisionReference
from .extractor import StructuredCaller
from .prompts import get_memory_update_prompt
from .schemas import Fact, MemoryDecision, MemoryUpdate
from .search import ExistingMemory

logger = structlog.get_logger()


@dataclass
class UnifiedNumbering:
    """Run-local labels for matched memories and new facts."""
    existing: List[ExistingMemory]
    facts: List[Fact]

    @property
    def first_fact_id(self) -> int:
        return len(self.existing) + 1

    @property
    def last_id(self) -> int:
        return len(self.existing) + len(self.facts)

    def existing_items(self) -> list[tuple[int, str]]:
        return [(mem.unified_id, mem.content) for mem in self.existing]

    def fact_items(self) -> list[tuple[int, str]]:
        return [(self.first_fact_id + idx, fact.text) for idx, fact in enumerate(self.facts)]

    def resolve_fact(self, decision: MemoryDecision) -> Fact:
        """The fact an ADD decision points at."""
        number = self._parse(decision, (self.first_fact_id, self.last_id))
        if not self.first_fact_id <= number <= self.last_id:
            raise InvalidDecisionReference(decision.id, decision.event, (self.first_fact_id, self.last_id))
        return self.facts[number - self.first_fact_id]

    def resolve_existing(self, decision: MemoryDecision) -> ExistingMemory:
        """The matched memory an UPDATE decision points at."""
        valid_range = (1, len(self.existing))
        number = self._parse(decision, valid_range)
        if not 1 <= number <= len(self.existing):
            raise InvalidDecisionReference(decision.id, decision.event, valid_range)
        return self.existing[number - 1]

    @staticmethod
    def _parse(decision: MemoryDecision, valid_range: tuple[int, int]) -> int:
        try:
            return int(decision.id.strip())
        except ValueError:
            raise InvalidDecisionReference(decision.id, decision.event, valid_range) from None


class MergeDecider:
    """Runs the merge decision call for one numbered view."""

    def __init__(self, llm: StructuredCaller):
        self.llm = llm

    async def decide(self, numbering: UnifiedNumbering) -> List[MemoryDecision]:
        """Return the model's ADD/UPDATE decisions in output order.

        Facts the model leaves out are skipped. Id validation happens in the
        planner.
        """
        prompt = get_memory_update_prompt(numbering.existing_items(), numbering.fact_items())
        result = await self.llm.parse(prompt, MemoryUpdate)

        logger.debug(
            "merge_decisions_received",
            existing=len(numbering.existing),
            facts=len(numbering.facts),
            decisions=len(result.memory),
        )
        return list(result.memory)

