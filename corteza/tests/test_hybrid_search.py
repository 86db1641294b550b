"""Tests for the hybrid search state machine."""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from corteza.common.config import CortezaConfig, SearchConfig
from corteza.common.errors import (
    ConfigurationError,
    IndexUnavailable,
    ProviderUnavailable,
    RateLimited,
)
from corteza.common.record_store import RecordStore
from corteza.common.schemas.decision_record import ScoredCandidate, SearchFilter
from corteza.retriever.hybrid_search import HybridSearcher, SearchMethod, StageResult, build_hybrid_searcher
from corteza.retriever.keyword_search import KeywordSearcher
from conftest import make_record


@pytest.fixture
def store():
    s = RecordStore()
    s.add(make_record(text="Adopt Kafka for order events", tags=["kafka"], days_ago=2))
    s.add(make_record(text="Kafka retention is seven days", days_ago=1))
    s.add(make_record(text="Use Redis for sessions"))
    return s


@pytest.fixture
def keyword(store):
    return KeywordSearcher(store)


def _semantic(result=None, error=None):
    semantic = Mock()
    semantic.search = AsyncMock(return_value=result or [], side_effect=error)
    return semantic


FILTER = SearchFilter(workspace_id="T1")


class TestSemanticPath:
    @pytest.mark.asyncio
    async def test_semantic_results_win(self, keyword, store):
        candidates = [ScoredCandidate(record=store.get("T1", 3), score=0.9)]
        hybrid = HybridSearcher(keyword, _semantic(candidates))

        result = await hybrid.search("session storage", FILTER)

        assert result.search_method == SearchMethod.SEMANTIC
        assert result.results.ids() == [3]
        assert [c.id for c in result.results.highly_relevant] == [3]
        assert result.semantic_error is None

    @pytest.mark.asyncio
    async def test_passes_limit_and_min_score(self, keyword):
        semantic = _semantic()
        await HybridSearcher(keyword, semantic).search("kafka", FILTER, limit=3, min_score=0.65)
        semantic.search.assert_awaited_once_with("kafka", FILTER, limit=3, min_score=0.65)


class TestFallback:
    @pytest.mark.asyncio
    async def test_zero_semantic_results_falls_back(self, keyword):
        result = await HybridSearcher(keyword, _semantic([])).search("kafka", FILTER)

        assert result.search_method == SearchMethod.KEYWORD_FALLBACK
        assert result.results.ids() == [2, 1]
        assert all(c.score == 0.75 for c in result.results.all)
        assert result.semantic_error is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        ProviderUnavailable("embedding timeout", provider="openai"),
        RateLimited("slow down", provider="openai", status_code=429),
        IndexUnavailable("decision_records"),
        ConfigurationError("no key"),
    ])
    async def test_semantic_errors_fall_back(self, keyword, error):
        result = await HybridSearcher(keyword, _semantic(error=error)).search("kafka", FILTER)

        assert result.search_method == SearchMethod.KEYWORD_FALLBACK
        assert result.results.ids() == [2, 1]
        assert result.semantic_error.startswith(type(error).__name__)

    @pytest.mark.asyncio
    async def test_unexpected_error_logged_and_falls_back(self, keyword, caplog):
        with caplog.at_level(logging.ERROR, logger="corteza.retriever.hybrid_search"):
            result = await HybridSearcher(keyword, _semantic(error=KeyError("boom"))).search("kafka", FILTER)

        assert result.search_method == SearchMethod.KEYWORD_FALLBACK
        assert "Unexpected semantic search error" in caplog.text

    @pytest.mark.asyncio
    async def test_lexical_failure_propagates(self):
        broken = Mock()
        broken.search_text.side_effect = OSError("records unreadable")
        hybrid = HybridSearcher(KeywordSearcher(broken), _semantic([]))

        with pytest.raises(OSError):
            await hybrid.search("kafka", FILTER)


class TestKeywordOnly:
    @pytest.mark.asyncio
    async def test_disabled_embeddings_use_keyword(self, keyword):
        hybrid = HybridSearcher(keyword, semantic=None)
        assert not hybrid.semantic_enabled

        result = await hybrid.search("kafka", FILTER)

        assert result.search_method == SearchMethod.KEYWORD
        assert result.count == 2
        for candidate in result.results.all:
            assert "kafka" in " ".join(candidate.record.searchable_fields()).lower()

    @pytest.mark.asyncio
    async def test_no_matches_is_empty_not_error(self, keyword):
        result = await HybridSearcher(keyword).search("graphql", FILTER)
        assert result.results.is_empty


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_searches_are_independent(self, keyword):
        hybrid = HybridSearcher(keyword)
        kafka, redis = await asyncio.gather(
            hybrid.search("kafka", FILTER),
            hybrid.search("redis", FILTER),
        )
        assert kafka.results.ids() == [2, 1]
        assert redis.results.ids() == [3]


class TestStageResult:
    def test_success_and_failure(self):
        ok = StageResult.success([1])
        assert ok.ok and ok.value == [1] and ok.error_kind is None

        failed = StageResult.failure(IndexUnavailable("x"))
        assert not failed.ok
        assert failed.error_kind == "IndexUnavailable"


class TestBuildHybridSearcher:
    def test_keyword_only_without_embeddings(self, store):
        cfg = CortezaConfig(search=SearchConfig(keyword_match_score=0.8))

        hybrid = build_hybrid_searcher(cfg, store)

        assert not hybrid.semantic_enabled
        assert hybrid._keyword.match_score == 0.8

    def test_index_alone_is_not_enough(self, store):
        assert not build_hybrid_searcher(CortezaConfig(), store, index=Mock()).semantic_enabled

    @pytest.mark.asyncio
    async def test_semantic_with_config_thresholds(self, store):
        embedding, index = Mock(), Mock()
        embedding.embed.return_value = [0.1, 0.2]
        index.search.return_value = []
        cfg = CortezaConfig(search=SearchConfig(highly_relevant=0.95, relevant=0.9, somewhat_relevant=0.8))

        hybrid = build_hybrid_searcher(cfg, store, embedding, index)
        result = await hybrid.search("kafka", SearchFilter(workspace_id="T1"))

        assert hybrid.semantic_enabled
        assert result.search_method == SearchMethod.KEYWORD_FALLBACK
        embedding.embed.assert_called_once_with("kafka")
        # Keyword hits score 0.75, below every configured tier
        assert sorted(result.results.ids()) == [1, 2]
        assert len(result.results.marginal) == 2
        assert result.results.somewhat_relevant == []
