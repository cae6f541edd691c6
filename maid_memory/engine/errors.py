"""Exceptions raised by the memory extraction engine."""


class MemoryEngineError(Exception):
    """Base class for engine failures."""


class UpstreamModelError(MemoryEngineError):
    """A structured model call failed, timed out or returned invalid output."""


class EmbeddingError(MemoryEngineError):
    """The embedding service failed or returned an unusable response."""


class InvalidDecisionReference(MemoryEngineError):
    """A merge decision pointed at an id outside the run's numbering.

    Recovered locally: the decision is dropped and the run continues.
    """

    def __init__(self, decision_id: str, event: str, valid_range: tuple[int, int]):
        self.decision_id = decision_id
        self.event = event
        self.valid_range = valid_range
        low, high = valid_range
        super().__init__(
            f"{event} decision references id {decision_id!r}, valid range is {low}-{high}"
        )


class TransactionError(MemoryEngineError):
    """Persisting the plan failed; the transaction was rolled back."""
