from .errors import (
    MemoryEngineError,
    UpstreamModelError,
    EmbeddingError,
    InvalidDecisionReference,
    TransactionError,
)
from .pipeline import ExtractionStats, MemoryExtractor, extract_memory, get_memory_extractor
from .search import (
    SimilaritySearch,
    SimilarMemory,
    bulk_search_similar_memories,
    search_similar_memories,
)

__all__ = [
    # Errors
    "MemoryEngineError",
    "UpstreamModelError",
    "EmbeddingError",
    "InvalidDecisionReference",
    "TransactionError",
    # Pipeline
    "ExtractionStats",
    "MemoryExtractor",
    "extract_memory",
    "get_memory_extractor",
    # Search
    "SimilaritySearch",
    "SimilarMemory",
    "search_similar_memories",
    "bulk_search_similar_memories",
]
