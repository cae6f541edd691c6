"""Fact extraction from pending conversation messages."""

from datetime import date
from typing import Optional, Protocol, Sequence, Type, TypeVar

import structlog
from pydantic import BaseModel

from ..db.models import Message
from .prompts import get_fact_retrieval_prompt
from .schemas import Fact, FactRetrieval

logger = structlog.get_logger()

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class StructuredCaller(Protocol):
    async def parse(self, prompt: str, schema: Type[SchemaT]) -> SchemaT: ...


def format_messages(messages: Sequence[Message]) -> str:
    """Render messages as "<role>: <content>" blocks separated by a blank line."""
    return "\n\n".join(f"{msg.role}: {msg.content}" for msg in messages)


class FactExtractor:
    """Turns a batch of messages into candidate facts with one model call."""

    def __init__(self, llm: StructuredCaller):
        self.llm = llm

    async def extract(
        self,
        messages: Sequence[Message],
        today: Optional[date] = None,
    ) -> list[Fact]:
        """Extract facts from messages in chronological order.

        An empty list is a valid answer. Model failures propagate as
        UpstreamModelError.
        """
        if not messages:
            return []

        prompt = get_fact_retrieval_prompt(format_messages(messages), today=today)
        result = await self.llm.parse(prompt, FactRetrieval)

        logger.debug("facts_extracted", messages=len(messages), facts=len(result.facts))
        return list(result.facts)
