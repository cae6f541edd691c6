from .models import (
    Base,
    Story,
    Message,
    Memory,
    EMBEDDING_DIMENSIONS,
)

__all__ = [
    # Models
    "Base",
    "Story",
    "Message",
    "Memory",
    "EMBEDDING_DIMENSIONS",
]
