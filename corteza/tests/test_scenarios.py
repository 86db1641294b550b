"""End-to-end scenarios across search, indexing and extraction."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from qdrant_client import QdrantClient

from corteza.common.embedding_service import EmbeddingService
from corteza.common.feedback_store import FeedbackStore
from corteza.common.record_store import RecordStore
from corteza.common.schemas.decision_record import SearchFilter
from corteza.common.schemas.feedback import FeedbackAction
from corteza.common.vector_index import VectorIndexClient
from corteza.retriever.evaluation import max_watched_confidence
from corteza.retriever.hybrid_search import HybridSearcher, SearchMethod
from corteza.retriever.indexer import EmbeddingIndexer
from corteza.retriever.keyword_search import KeywordSearcher
from corteza.retriever.searcher import Searcher
from corteza.retriever.synthesizer import Synthesizer
from corteza.scribe.review_queue import ReviewQueue
from corteza.scribe.transcript_extractor import TranscriptExtractor
from conftest import FakeEmbeddingsAPI, make_record

FILTER = SearchFilter(workspace_id="T1")


@pytest.fixture
def workspace():
    """Twelve records; #12 is the AEM connector decision"""
    store = RecordStore()
    for i in range(1, 12):
        store.add(make_record(text=f"Routine decision number {i}", days_ago=30 - i))
    store.add(make_record(text="Build an AEM connector for content sync", tags=["aem", "cms"]))
    return store


class TestAemScenario:
    @pytest.mark.asyncio
    async def test_keyword_only_finds_record_12(self, workspace):
        result = await HybridSearcher(KeywordSearcher(workspace)).search("AEM integration", FILTER)

        assert result.search_method == SearchMethod.KEYWORD
        assert 12 in result.results.ids()

    @pytest.mark.asyncio
    async def test_semantic_miss_falls_back_to_record_12(self, workspace):
        semantic = Mock()
        semantic.search = AsyncMock(return_value=[])

        result = await HybridSearcher(KeywordSearcher(workspace), semantic).search("AEM integration", FILTER)

        assert result.search_method == SearchMethod.KEYWORD_FALLBACK
        assert result.results.ids() == [12]

        answer = Synthesizer().synthesize("AEM integration", result.results)
        assert "**Decision #12**: Build an AEM connector for content sync" in answer.answer


class TestSemanticPipeline:
    @pytest.fixture
    def pipeline(self):
        store = RecordStore()
        store.add(make_record(text="Use postgres for the orders service", days_ago=2))
        store.add(make_record(text="AEM connector owns content sync", days_ago=1))
        store.add(make_record(text="Mobile app ships monthly"))

        embedding = EmbeddingService(dimension=4, client=SimpleNamespace(embeddings=FakeEmbeddingsAPI()))
        index = VectorIndexClient(QdrantClient(":memory:"), index_name="scenario")
        indexer = EmbeddingIndexer(embedding, index, store)
        indexer.ensure_index()
        indexer.backfill()

        hybrid = HybridSearcher(KeywordSearcher(store), Searcher(embedding, index, store))
        return store, hybrid

    @pytest.mark.asyncio
    async def test_semantic_hit_ranked_first(self, pipeline):
        _, hybrid = pipeline

        result = await hybrid.search("postgres", FILTER)

        assert result.search_method == SearchMethod.SEMANTIC
        assert result.results.ids() == [1]
        assert result.results.highly_relevant[0].score > 0.95

    @pytest.mark.asyncio
    async def test_unindexed_topic_falls_back(self, pipeline):
        store, hybrid = pipeline
        store.add(make_record(text="Pricing page copy owned by marketing"))

        result = await hybrid.search("pricing", FILTER)

        assert result.search_method == SearchMethod.KEYWORD_FALLBACK
        assert result.results.ids() == [4]


class TestExtractionScenario:
    def test_postgres_decision_extracted_confidently(self, mock_llm):
        mock_llm.generate.return_value = (
            "```json\n"
            + json.dumps([{
                "text": "We decided to use PostgreSQL for the main database",
                "kind": "decision",
                "confidence": 0.93,
                "tags": ["database", "postgresql"],
            }])
            + "\n```"
        )
        transcript = "Alice: After the benchmarks, we decided to use PostgreSQL for the main database.\nBob: Agreed."

        outcome = TranscriptExtractor(mock_llm, feedback=FeedbackStore(), sleep=Mock()).extract(transcript, "T1")

        assert len(outcome.candidates) >= 1
        assert max_watched_confidence(outcome.candidates, "PostgreSQL") >= 0.6

    def test_rejection_shapes_next_prompt(self, mock_llm):
        records, feedback = RecordStore(), FeedbackStore()
        queue = ReviewQueue(records, feedback)
        extractor = TranscriptExtractor(mock_llm, feedback=feedback, sleep=Mock())

        mock_llm.generate.return_value = json.dumps([
            {"text": "Lunch is at noon", "kind": "context", "confidence": 0.6},
        ])
        outcome = extractor.extract("Alice: lunch is at noon", "T1")
        [item] = queue.add_suggestions("T1", outcome.candidates)
        queue.submit_review(item.item_id, FeedbackAction.REJECTED, rejection_reason="scheduling chatter")

        mock_llm.generate.return_value = "[]"
        second = extractor.extract("Alice: lunch moved to one", "T1")

        prompt = mock_llm.generate.call_args.args[0]
        assert second.used_few_shot
        assert '- "Lunch is at noon" [context] (reason: scheduling chatter)' in prompt
