"""
Error taxonomy shared by the retrieval and extraction pipelines.

Provider SDK exceptions are translated into these at the client boundary so
callers can decide between degrading, retrying once, or surfacing the error.
"""

from typing import Optional


class CortezaError(Exception):
    """Base class for Corteza errors."""
    pass


class ConfigurationError(CortezaError):
    """A capability is missing credentials or is misconfigured.

    Raised once when the capability is constructed; the feature degrades
    instead of failing the process.
    """
    pass


class ProviderUnavailable(CortezaError):
    """Timeout, 5xx, connection failure, or malformed provider response."""

    def __init__(self, message: str, provider: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class RateLimited(ProviderUnavailable):
    """Provider answered HTTP 429."""
    pass


class IndexUnavailable(CortezaError):
    """The vector index is missing or misconfigured.

    Recovery is provisioning, not retrying, so it is kept apart from
    ProviderUnavailable.
    """

    def __init__(self, index_name: str, detail: str = ""):
        message = (
            f"Vector search index '{index_name}' not found. "
            f"Create it with EmbeddingIndexer.ensure_index() or "
            f"scripts/backfill_embeddings.py --create-index."
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.index_name = index_name


class ValidationError(CortezaError):
    """An LLM extraction item failed validation on a specific field."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


def status_code_of(exc: BaseException) -> Optional[int]:
    """Best-effort HTTP status from a provider SDK exception.

    anthropic/openai expose ``status_code``; google api_core exposes ``code``.
    """
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None
