"""Embedding generation and cosine similarity helpers."""

from typing import List, Optional, Sequence, Union

import numpy as np
from openai import AsyncOpenAI

from ..config.settings import settings
from .errors import EmbeddingError
from .llm import call_with_retry, create_openai_client


class EmbeddingClient:
    """Batch text embedding through the OpenAI embeddings endpoint.

    Output order always matches input order. A single string returns a
    single vector; a list returns a list.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.client = client or create_openai_client()
        self.model = model or settings.openai_embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions
        self.retry_attempts = retry_attempts or settings.llm_retry_attempts
        self.retry_delay = settings.llm_retry_delay if retry_delay is None else retry_delay

    async def embed(
        self, texts: Union[str, Sequence[str]]
    ) -> Union[List[float], List[List[float]]]:
        """Embed one text or a batch of texts.

        Raises:
            EmbeddingError: The service failed on every attempt or returned
                the wrong number of vectors.
        """
        if isinstance(texts, str):
            vectors = await self._embed_batch([texts])
            return vectors[0]
        return await self._embed_batch(list(texts))

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        async def _call() -> List[List[float]]:
            response = await self.client.embeddings.create(
                model=self.model,
                input=texts,
                dimensions=self.dimensions,
            )
            data = sorted(response.data, key=lambda item: item.index)
            if len(data) != len(texts):
                raise ValueError(f"expected {len(texts)} embeddings, got {len(data)}")
            return [item.embedding for item in data]

        try:
            return await call_with_retry(
                _call,
                operation="embeddings",
                retry_attempts=self.retry_attempts,
                retry_delay=self.retry_delay,
            )
        except Exception as e:
            raise EmbeddingError(f"Embedding {len(texts)} text(s) failed: {e}") from e


def cosine_similarity(
    query_embedding: Union[List[float], np.ndarray],
    memory_embeddings: Union[List[List[float]], np.ndarray],
) -> np.ndarray:
    """Cosine similarity between one query and each row of a matrix.

    Args:
        query_embedding: The query embedding vector.
        memory_embeddings: Matrix of memory embeddings (N x D).

    Returns:
        Array of similarity scores (N,).
    """
    query = np.asarray(query_embedding, dtype=np.float64)
    memories = np.asarray(memory_embeddings, dtype=np.float64)

    query_norm = query / (np.linalg.norm(query) + 1e-10)
    memories_norm = memories / (np.linalg.norm(memories, axis=1, keepdims=True) + 1e-10)

    return np.dot(memories_norm, query_norm)
