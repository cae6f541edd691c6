"""Output contracts for the two structured model calls."""

from typing import Literal

from pydantic import BaseModel, Field

MEMORY_CATEGORIES = ("USER_INFO", "USER_PREFERENCE", "USER_GOAL", "OTHER")

MemoryCategory = Literal["USER_INFO", "USER_PREFERENCE", "USER_GOAL", "OTHER"]


class Fact(BaseModel):
    """A statement about the user extracted from one batch of messages."""
    text: str = Field(..., description="The fact about the user")
    category: MemoryCategory = Field(..., description="The category of the fact")
    importance: float = Field(..., ge=0, le=1, description="How important this fact is (0-1 scale)")
    confidence: float = Field(..., ge=0, le=1, description="How confident you are about this fact (0-1 scale)")


class FactRetrieval(BaseModel):
    facts: list[Fact] = Field(
        ...,
        description="An array of distinct facts extracted from the conversation.",
    )


class MemoryDecision(BaseModel):
    """One ADD or UPDATE decision; omitted ids are skipped."""
    id: str = Field(..., description="The unique identifier of the memory/fact item.")
    text: str = Field(..., description="The content of the memory/fact item.")
    event: Literal["ADD", "UPDATE"] = Field(
        ...,
        description="The action taken for this memory item (ADD, UPDATE).",
    )


class MemoryUpdate(BaseModel):
    memory: list[MemoryDecision] = Field(
        ...,
        description="An array representing the state of memory items after processing new facts.",
    )
