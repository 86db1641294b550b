"""
Embedding Service

Generates OpenAI embeddings for search queries and decision records.

Queries are embedded as-is. Records are embedded from a weighted text built by
``build_record_text`` so that the decision text and its tags dominate the
vector, while epic and transcript context only nudge it.
"""

import logging
from typing import Iterable, List, Optional

import numpy as np

from .config import EmbeddingConfig
from .errors import ConfigurationError, ProviderUnavailable, status_code_of
from .schemas.decision_record import DecisionRecord

logger = logging.getLogger("corteza.common.embedding_service")

EPIC_SUMMARY_MAX_CHARS = 500
CONTEXT_MAX_CHARS = 300
DEFAULT_BATCH_SIZE = 100


def build_record_text(record: DecisionRecord) -> str:
    """
    Build the weighted text that represents a record in embedding space.

    Order: text x3, kind, tags x2, epic ref, epic summary (500 chars),
    notes, creator, context (300 chars); empty parts are skipped.
    """
    parts = [record.text, record.text, record.text]

    parts.append(f"Type: {record.kind.value}")

    if record.tags:
        tag_line = f"Tags: {', '.join(record.tags)}"
        parts.append(tag_line)
        parts.append(tag_line)

    if record.epic_ref:
        parts.append(f"Epic: {record.epic_ref}")

    if record.epic_summary:
        parts.append(record.epic_summary[:EPIC_SUMMARY_MAX_CHARS])

    if record.notes:
        parts.append(record.notes)

    if record.creator:
        parts.append(f"Creator: {record.creator}")

    if record.context:
        parts.append(record.context[:CONTEXT_MAX_CHARS])

    return "\n".join(parts)


class EmbeddingService:
    """
    OpenAI embedding client.

    Construction fails with ConfigurationError when no API key is configured;
    use ``create_embedding_service`` to get ``None`` instead when embeddings
    are simply turned off.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        timeout: float = 30.0,
        client=None,
    ):
        self.model = model
        self.dimension = dimension
        self.timeout = timeout

        if client is not None:
            self._client = client
            return

        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for embeddings")

        from openai import OpenAI

        self._client = OpenAI(api_key=api_key)
        logger.info("Embedding service initialized with model=%s", model)

    def embed(self, text: str) -> List[float]:
        """Embed a single (query) string."""
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")
        return self._request([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed many strings with a single provider call."""
        if not texts:
            return []
        return self._request(list(texts))

    def embed_records(
        self,
        records: Iterable[DecisionRecord],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> List[DecisionRecord]:
        """
        Embed records in sequential chunks.

        A chunk whose provider call fails is logged and skipped; the rest
        continue. Returns copies of the successfully embedded records with
        ``embedding`` set.
        """
        records = list(records)
        embedded: List[DecisionRecord] = []

        for start in range(0, len(records), batch_size):
            chunk = records[start:start + batch_size]
            try:
                vectors = self.embed_batch([build_record_text(r) for r in chunk])
            except ProviderUnavailable as e:
                logger.error(
                    "Embedding batch %d-%d failed, skipping: %s",
                    start, start + len(chunk) - 1, e,
                )
                continue

            for record, vector in zip(chunk, vectors):
                embedded.append(record.model_copy(update={"embedding": vector}))

        logger.info("Embedded %d/%d records", len(embedded), len(records))
        return embedded

    def _request(self, texts: List[str]) -> List[List[float]]:
        try:
            response = self._client.embeddings.create(
                model=self.model,
                input=texts,
                timeout=self.timeout,
            )
        except Exception as e:
            raise ProviderUnavailable(
                f"Embedding request failed: {e}", provider="openai", status_code=status_code_of(e)
            ) from e

        data = sorted(response.data, key=lambda item: item.index)
        return self._validate([item.embedding for item in data], expected=len(texts))

    def _validate(self, vectors: List[List[float]], expected: int) -> List[List[float]]:
        if len(vectors) != expected:
            raise ProviderUnavailable(
                f"Embedding response has {len(vectors)} vectors, expected {expected}",
                provider="openai",
            )

        matrix = np.asarray(vectors, dtype=np.float64)
        if matrix.ndim != 2 or matrix.shape[1] != self.dimension:
            raise ProviderUnavailable(
                f"Embedding dimension mismatch: got {matrix.shape}, expected (*, {self.dimension})",
                provider="openai",
            )
        if not np.all(np.isfinite(matrix)):
            raise ProviderUnavailable("Embedding response contains non-finite values", provider="openai")

        return matrix.tolist()


def create_embedding_service(config: EmbeddingConfig) -> Optional[EmbeddingService]:
    """
    Build the embedding service from config.

    Returns None when embeddings are disabled or no key is configured, which
    puts hybrid search into keyword-only mode.
    """
    if not config.enabled:
        logger.info("Embeddings disabled by configuration")
        return None

    try:
        return EmbeddingService(
            api_key=config.api_key,
            model=config.model,
            dimension=config.dimension,
            timeout=config.timeout,
        )
    except ConfigurationError as e:
        logger.warning("Embeddings unavailable: %s", e)
        return None
