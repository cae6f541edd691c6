"""Prompt templates for fact extraction and merge decisions."""

from datetime import date
from typing import Optional, Sequence

FACT_RETRIEVAL_PROMPT = """Extract important facts about the user from the conversation below.

CATEGORIES (with importance range):
- USER_INFO: name, age, identity, location | importance 0.9-1.0
- USER_PREFERENCE: likes, dislikes, favorites | importance 0.5-0.8
- USER_GOAL: plans, aspirations, objectives | importance 0.7-0.9
- OTHER: anything else worth remembering | importance 0.3-0.6

IGNORE:
Greetings, jokes, passing moods, assistant messages, cancelled plans, information about third parties

CONFIDENCE (0-1):
1.0 = stated explicitly | 0.8 = strongly implied | 0.5 = moderately implied | 0.3 = weakly implied

FORMAT:
{{"facts": [{{"text": "User ...", "category": "CATEGORY", "importance": 0.0, "confidence": 0.0}}]}}
- Every fact starts with "User"; never "I", "They", "He" or "She"
- One fact per item, specific and concise
- No facts found: {{"facts": []}}
- Today is {today}; convert relative dates to YYYY-MM-DD

EXAMPLES:
"I prefer coffee" -> {{"text": "User prefers coffee", "category": "USER_PREFERENCE", "importance": 0.5, "confidence": 1.0}}
"My name is Jack" -> {{"text": "User's name is Jack", "category": "USER_INFO", "importance": 1.0, "confidence": 1.0}}
"I run on weekends" -> {{"text": "User runs on weekends", "category": "OTHER", "importance": 0.6, "confidence": 0.9}}

RULES:
1. Use the user's messages only
2. When the user corrects something, keep the latest version
3. Never invent facts
4. Score importance and confidence carefully

Conversation:

{conversation}"""


MEMORY_UPDATE_PROMPT = """Compare the new facts with the existing memories and decide for each fact: ADD, UPDATE or SKIP.

EXISTING MEMORIES:
{existing}

NEW FACTS:
{facts}

ADD - the fact is new information:
- No existing memory covers it
- Format: {{"id":"{example_fact_id}","text":"","event":"ADD"}}
- Leave "text" empty to store the fact as written
- The fact's category, importance and confidence are kept

UPDATE - the fact refines, corrects or conflicts with an existing memory:
- Format: {{"id":"{example_memory_id}","text":"Combined statement","event":"UPDATE"}}
- "text" is the complete replacement: old memory and new fact merged into one clear statement
- Example: memory "User likes coffee" + fact "User prefers dark roast" -> "User likes dark roast coffee"

SKIP - the fact adds nothing to an existing memory:
- Leave its id out of the output

CONSOLIDATION:
- Several facts about the same memory: UPDATE that memory once with everything combined
- Unrelated facts: ADD each one separately

FORMAT:
{{"memory":[{{"id":"X","text":"...","event":"ADD|UPDATE"}}]}}
- Always use "User" as the subject
- Keep text short and factual
- Reference items by number: {memory_range} for memories, {fact_range} for facts"""


def _numbered(items: Sequence[tuple[int, str]]) -> str:
    if not items:
        return "(none)"
    return "\n".join(f"{item_id}. {text}" for item_id, text in items)


def get_fact_retrieval_prompt(conversation: str, today: Optional[date] = None) -> str:
    """Build the fact extraction prompt for a rendered conversation."""
    today = today or date.today()
    return FACT_RETRIEVAL_PROMPT.format(
        today=today.isoformat(),
        conversation=conversation,
    )


def get_memory_update_prompt(
    existing: Sequence[tuple[int, str]],
    facts: Sequence[tuple[int, str]],
) -> str:
    """Build the merge decision prompt.

    Args:
        existing: (unified id, content) for matched memories, ids 1..E.
        facts: (unified id, text) for new facts, ids E+1..E+F.
    """
    memory_count = len(existing)
    first_fact_id = memory_count + 1
    last_fact_id = memory_count + len(facts)

    return MEMORY_UPDATE_PROMPT.format(
        existing=_numbered(existing),
        facts=_numbered(facts),
        example_fact_id=first_fact_id,
        example_memory_id=1 if memory_count else "(none)",
        memory_range=f"1-{memory_count}" if memory_count else "none",
        fact_range=f"{first_fact_id}-{last_fact_id}",
    )
