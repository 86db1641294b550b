"""
Searcher

Semantic search stage: embed the query, run a pre-filtered similarity query
against the vector index, then hydrate hits from the record store.
"""

import asyncio
import logging
from typing import List

from ..common.embedding_service import EmbeddingService
from ..common.record_store import RecordStore
from ..common.vector_index import VectorIndexClient, num_candidates_for
from ..common.schemas.decision_record import ScoredCandidate, SearchFilter

logger = logging.getLogger("corteza.retriever.searcher")


class Searcher:
    """
    Vector similarity search over decision records.

    Errors from the embedding provider or the index (ConfigurationError,
    ProviderUnavailable, IndexUnavailable) propagate; deciding whether to fall
    back is the orchestrator's job.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        index: VectorIndexClient,
        store: RecordStore,
    ):
        self._embedding = embedding_service
        self._index = index
        self._store = store

    async def search(
        self,
        query: str,
        search_filter: SearchFilter,
        limit: int = 10,
        min_score: float = 0.5,
    ) -> List[ScoredCandidate]:
        """
        Return up to ``limit`` candidates scoring at least ``min_score``,
        in descending score order.
        """
        # Provider and index clients are synchronous; keep them off the event loop
        query_vector = await asyncio.to_thread(self._embedding.embed, query)

        hits = await asyncio.to_thread(
            self._index.search,
            query_vector,
            search_filter,
            limit=limit,
            num_candidates=num_candidates_for(limit),
        )

        passing = [h for h in hits if h.score >= min_score]
        records = self._store.get_many(search_filter.workspace_id, [h.record_id for h in passing])

        candidates = []
        for hit in passing:
            record = records.get(hit.record_id)
            if record is None:
                # Index is eventually consistent with the store
                logger.debug("Dropping hit for unknown decision #%d", hit.record_id)
                continue
            candidates.append(ScoredCandidate(record=record, score=hit.score))

        candidates.sort(key=lambda c: c.score, reverse=True)
        candidates = candidates[:limit]

        logger.info(
            "Semantic search for %r: %d raw hit(s), %d above %.2f",
            query, len(hits), len(candidates), min_score,
        )
        if candidates:
            logger.debug(
                "Top score %.1f%%, lowest %.1f%%",
                candidates[0].score * 100, candidates[-1].score * 100,
            )
        return candidates
