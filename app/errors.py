from __future__ import annotations

from app.models import ErrorKind


class PipelineError(Exception):
    """Base class for failures raised by the search pipeline and its providers."""

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(PipelineError):
    kind = ErrorKind.INVALID_INPUT


class NotFound(PipelineError):
    kind = ErrorKind.NOT_FOUND


class ProviderError(PipelineError):
    kind = ErrorKind.PROVIDER_ERROR

    def __init__(self, message: str, *, provider: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderOverloaded(ProviderError):
    """Rate limited (HTTP 429) or upstream 5xx. Retryable by the user, never retried here."""

    kind = ErrorKind.PROVIDER_OVERLOADED


class StaleResult(PipelineError):
    """A completed operation belongs to a superseded search generation."""

    kind = ErrorKind.STALE_RESULT

    def __init__(self, generation: int, current: int) -> None:
        super().__init__(f"generation {generation} superseded by {current}")
        self.generation = generation
        self.current = current
