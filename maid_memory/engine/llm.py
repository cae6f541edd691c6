"""Structured model calls against the OpenAI Responses API.

Every call goes through `call_with_retry`, which retries with exponential
backoff and re-raises the last error once attempts are exhausted.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Type, TypeVar

import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel

from ..config.settings import settings
from .errors import UpstreamModelError

logger = structlog.get_logger()

T = TypeVar("T")
SchemaT = TypeVar("SchemaT", bound=BaseModel)


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    operation: str,
    retry_attempts: int = 3,
    retry_delay: float = 1.0,
) -> T:
    """Await `fn()` up to `retry_attempts` times.

    The delay before retry n (0-based) is `retry_delay * 2 ** n`.
    """
    for attempt in range(retry_attempts):
        try:
            return await fn()
        except Exception as e:
            if attempt < retry_attempts - 1:
                delay = retry_delay * (2 ** attempt)
                logger.warning(
                    "external_call_retry",
                    operation=operation,
                    attempt=attempt + 1,
                    delay_seconds=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    "external_call_failed",
                    operation=operation,
                    attempts=retry_attempts,
                    error=str(e),
                )
                raise
    raise RuntimeError("retry_attempts must be at least 1")


def create_openai_client(
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
) -> AsyncOpenAI:
    """OpenAI client with SDK retries disabled; retries happen here instead."""
    return AsyncOpenAI(
        api_key=api_key or settings.openai_api_key.get_secret_value(),
        timeout=timeout or settings.openai_timeout_seconds,
        max_retries=0,
    )


class StructuredModelClient:
    """Calls a model and returns its output parsed into a pydantic schema.

    Example:
        >>> llm = StructuredModelClient()
        >>> result = await llm.parse(prompt, FactRetrieval)
        >>> result.facts
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.client = client or create_openai_client()
        self.model = model or settings.openai_model
        self.retry_attempts = retry_attempts or settings.llm_retry_attempts
        self.retry_delay = settings.llm_retry_delay if retry_delay is None else retry_delay

    async def parse(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        """Run `prompt` and parse the answer into `schema`.

        Raises:
            UpstreamModelError: The call failed, was refused, or did not
                match the schema on every attempt.
        """

        async def _call() -> SchemaT:
            response = await self.client.responses.parse(
                model=self.model,
                input=prompt,
                text_format=schema,
            )
            if response.output_parsed is None:
                raise ValueError("model returned no parsed output")
            return schema.model_validate(response.output_parsed)

        try:
            return await call_with_retry(
                _call,
                operation=f"structured_call:{schema.__name__}",
                retry_attempts=self.retry_attempts,
                retry_delay=self.retry_delay,
            )
        except Exception as e:
            raise UpstreamModelError(f"{schema.__name__} call failed: {e}") from e
