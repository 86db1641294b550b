"""
Hybrid Search

Orchestrates semantic search with a lexical fallback:

    semantic ──(>=1 result)──────────────▶ done (semantic)
        │
        └─(0 results or any failure)──▶ keyword ──▶ done (keyword_fallback)

    embeddings disabled ─────────────────▶ keyword ──▶ done (keyword)

Each external step runs as a stage that returns a StageResult instead of
raising, and stages are composed in order. Lexical (record store) failures
are the only errors that escape.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from ..common.config import CortezaConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import CortezaError
from ..common.record_store import RecordStore
from ..common.vector_index import VectorIndexClient
from ..common.schemas.decision_record import ScoredCandidate, SearchFilter
from .categorizer import (
    CategorizedResults,
    RelevanceThresholds,
    DEFAULT_THRESHOLDS,
    categorize,
)
from .keyword_search import KeywordSearcher
from .searcher import Searcher

logger = logging.getLogger("corteza.retriever.hybrid_search")

T = TypeVar("T")


class SearchMethod(str, Enum):
    """Which path produced the results"""
    SEMANTIC = "semantic"
    KEYWORD_FALLBACK = "keyword_fallback"
    KEYWORD = "keyword"


@dataclass
class StageResult(Generic[T]):
    """Outcome of one pipeline stage"""
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "StageResult[T]":
        return cls(ok=False, error=error)


@dataclass
class HybridSearchResult:
    """Categorized results plus the method that produced them"""
    query: str
    results: CategorizedResults
    search_method: SearchMethod
    semantic_error: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.results.all)


class HybridSearcher:
    """
    Semantic-first search with lexical fallback.

    Holds no per-request state, so one instance can serve concurrent
    requests. Pass ``semantic=None`` to run in keyword-only mode.
    """

    def __init__(
        self,
        keyword: KeywordSearcher,
        semantic: Optional[Searcher] = None,
        thresholds: RelevanceThresholds = DEFAULT_THRESHOLDS,
    ):
        self._semantic = semantic
        self._keyword = keyword
        self._thresholds = thresholds

    @property
    def semantic_enabled(self) -> bool:
        return self._semantic is not None

    async def search(
        self,
        query: str,
        search_filter: SearchFilter,
        limit: int = 10,
        min_score: float = 0.5,
    ) -> HybridSearchResult:
        """Run the hybrid search state machine for one query."""
        logger.info(
            "Hybrid search %r (workspace=%s, embeddings=%s)",
            query, search_filter.workspace_id, self.semantic_enabled,
        )

        if not self.semantic_enabled:
            candidates = self._keyword_stage(query, search_filter, limit)
            return self._finish(query, candidates, SearchMethod.KEYWORD)

        semantic = await self._semantic_stage(query, search_filter, limit, min_score)
        if semantic.ok and semantic.value:
            return self._finish(query, semantic.value, SearchMethod.SEMANTIC)

        if semantic.ok:
            logger.info("No semantic results, falling back to keyword search")
        else:
            logger.warning(
                "Semantic search failed (%s), falling back to keyword search: %s",
                semantic.error_kind, semantic.error,
            )

        candidates = self._keyword_stage(query, search_filter, limit)
        result = self._finish(query, candidates, SearchMethod.KEYWORD_FALLBACK)
        if not semantic.ok:
            result.semantic_error = f"{semantic.error_kind}: {semantic.error}"
        return result

    async def _semantic_stage(
        self,
        query: str,
        search_filter: SearchFilter,
        limit: int,
        min_score: float,
    ) -> StageResult[List[ScoredCandidate]]:
        try:
            candidates = await self._semantic.search(query, search_filter, limit=limit, min_score=min_score)
        except CortezaError as e:
            return StageResult.failure(e)
        except Exception as e:
            logger.error("Unexpected semantic search error: %s", e, exc_info=True)
            return StageResult.failure(e)
        return StageResult.success(candidates)

    def _keyword_stage(self, query: str, search_filter: SearchFilter, limit: int) -> List[ScoredCandidate]:
        # Store failures are fatal for the request
        return self._keyword.search(query, search_filter, limit=limit)

    def _finish(
        self,
        query: str,
        candidates: List[ScoredCandidate],
        method: SearchMethod,
    ) -> HybridSearchResult:
        results = categorize(candidates, self._thresholds)
        logger.info(
            "Search %r via %s: %d highly relevant, %d relevant, %d somewhat relevant (%d total)",
            query, method.value,
            len(results.highly_relevant), len(results.relevant),
            len(results.somewhat_relevant), len(results.all),
        )
        return HybridSearchResult(query=query, results=results, search_method=method)


def build_hybrid_searcher(
    cfg: CortezaConfig,
    store: RecordStore,
    embedding: Optional[EmbeddingService] = None,
    index: Optional[VectorIndexClient] = None,
) -> HybridSearcher:
    """Wire the search pipeline from config. Keyword-only without both an embedding service and an index."""
    keyword = KeywordSearcher(store, match_score=cfg.search.keyword_match_score)
    semantic = None
    if embedding is not None and index is not None:
        semantic = Searcher(embedding, index, store)

    thresholds = RelevanceThresholds(
        highly_relevant=cfg.search.highly_relevant,
        relevant=cfg.search.relevant,
        somewhat_relevant=cfg.search.somewhat_relevant,
    )
    return HybridSearcher(keyword=keyword, semantic=semantic, thresholds=thresholds)
