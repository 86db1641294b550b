"""Tests for the semantic search stage."""

import threading
from unittest.mock import DEFAULT, Mock

import pytest

from corteza.common.errors import IndexUnavailable, ProviderUnavailable
from corteza.common.record_store import RecordStore
from corteza.common.schemas.decision_record import SearchFilter
from corteza.common.vector_index import IndexHit
from corteza.retriever.searcher import Searcher
from conftest import make_record


@pytest.fixture
def store():
    s = RecordStore()
    for i in range(1, 6):
        s.add(make_record(text=f"decision {i}"))
    return s


@pytest.fixture
def embedding():
    service = Mock()
    service.embed.return_value = [0.1, 0.2, 0.3, 0.4]
    return service


def _index(*hits):
    index = Mock()
    index.search.return_value = [IndexHit(record_id=rid, score=score) for rid, score in hits]
    return index


class TestSearcher:
    @pytest.mark.asyncio
    async def test_filters_by_min_score_and_sorts(self, embedding, store):
        index = _index((2, 0.72), (1, 0.91), (3, 0.49), (4, 0.5))
        searcher = Searcher(embedding, index, store)

        results = await searcher.search("q", SearchFilter(workspace_id="T1"), limit=10, min_score=0.5)

        assert [(c.id, c.score) for c in results] == [(1, 0.91), (2, 0.72), (4, 0.5)]

    @pytest.mark.asyncio
    async def test_caps_at_limit(self, embedding, store):
        index = _index((1, 0.9), (2, 0.8), (3, 0.7), (4, 0.6))
        results = await Searcher(embedding, index, store).search("q", SearchFilter(workspace_id="T1"), limit=2)
        assert [c.id for c in results] == [1, 2]

    @pytest.mark.asyncio
    async def test_candidate_width_passed_to_index(self, embedding, store):
        index = _index()
        f = SearchFilter(workspace_id="T1")
        await Searcher(embedding, index, store).search("q", f, limit=25)

        args, kwargs = index.search.call_args
        assert args == ([0.1, 0.2, 0.3, 0.4], f)
        assert kwargs == {"limit": 25, "num_candidates": 250}

    @pytest.mark.asyncio
    async def test_drops_hits_missing_from_store(self, embedding, store):
        index = _index((1, 0.9), (99, 0.95))
        results = await Searcher(embedding, index, store).search("q", SearchFilter(workspace_id="T1"))
        assert [c.id for c in results] == [1]

    @pytest.mark.asyncio
    async def test_embedding_errors_propagate(self, embedding, store):
        embedding.embed.side_effect = ProviderUnavailable("timeout", provider="openai")
        with pytest.raises(ProviderUnavailable):
            await Searcher(embedding, _index(), store).search("q", SearchFilter(workspace_id="T1"))

    @pytest.mark.asyncio
    async def test_index_errors_propagate(self, embedding, store):
        index = Mock()
        index.search.side_effect = IndexUnavailable("decision_records")
        with pytest.raises(IndexUnavailable):
            await Searcher(embedding, index, store).search("q", SearchFilter(workspace_id="T1"))


@pytest.mark.asyncio
async def test_provider_calls_run_off_event_loop(embedding, store):
    loop_thread = threading.get_ident()
    seen = []
    index = _index((1, 0.9))

    def record_thread(*args, **kwargs):
        seen.append(threading.get_ident())
        return DEFAULT

    embedding.embed.side_effect = record_thread
    index.search.side_effect = record_thread

    results = await Searcher(embedding, index, store).search("q", SearchFilter(workspace_id="T1"))

    assert [c.id for c in results] == [1]
    assert len(seen) == 2
    assert loop_thread not in seen
