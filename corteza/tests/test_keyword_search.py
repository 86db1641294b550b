"""Tests for the lexical fallback searcher."""

from unittest.mock import Mock

import pytest

from corteza.common.record_store import RecordStore
from corteza.common.schemas.decision_record import Category, RecordKind, SearchFilter
from corteza.retriever.keyword_search import KeywordSearcher, query_terms
from conftest import make_record


@pytest.fixture
def store():
    s = RecordStore()
    s.add(make_record(text="Adopt the AEM connector for content sync", tags=["aem"], days_ago=9))
    s.add(make_record(text="Move CMS integration to the platform team", category=Category.PRODUCT, days_ago=3))
    s.add(make_record(text="Checkout uses Stripe", epic_ref="PAY-12", days_ago=1))
    s.add(make_record(text="Integration tests run nightly", kind=RecordKind.EXPLANATION))
    return s


class TestQueryTerms:
    def test_whole_query_first_then_content_words(self):
        assert query_terms("Show me AEM integration decisions") == [
            "show me aem integration decisions", "aem", "integration",
        ]

    def test_blank_query(self):
        assert query_terms("   ") == []

    def test_keeps_ticket_refs(self):
        assert "pay-12" in query_terms("what about PAY-12?")


class TestKeywordSearcher:
    def test_matches_any_content_word_newest_first(self, store):
        results = KeywordSearcher(store).search("AEM integration", SearchFilter(workspace_id="T1"))
        assert [c.id for c in results] == [4, 2, 1]

    def test_fixed_synthetic_score(self, store):
        results = KeywordSearcher(store).search("stripe", SearchFilter(workspace_id="T1"))
        assert [c.score for c in results] == [0.75]

    def test_every_result_contains_a_term(self, store):
        terms = query_terms("AEM integration")
        for candidate in KeywordSearcher(store).search("AEM integration", SearchFilter(workspace_id="T1")):
            fields = " ".join(candidate.record.searchable_fields()).lower()
            assert any(t in fields for t in terms)

    def test_epic_ref_match(self, store):
        results = KeywordSearcher(store).search("PAY-12", SearchFilter(workspace_id="T1"))
        assert [c.id for c in results] == [3]

    def test_kind_filter_applies(self, store):
        f = SearchFilter(workspace_id="T1", kind=RecordKind.EXPLANATION)
        assert [c.id for c in KeywordSearcher(store).search("integration", f)] == [4]

    def test_category_filter_is_ignored(self, store):
        f = SearchFilter(workspace_id="T1", category=Category.UX)
        assert [c.id for c in KeywordSearcher(store).search("integration", f)] == [4, 2]

    def test_limit(self, store):
        results = KeywordSearcher(store).search("integration aem", SearchFilter(workspace_id="T1"), limit=1)
        assert len(results) == 1

    def test_store_failure_propagates(self):
        broken = Mock()
        broken.search_text.side_effect = RuntimeError("disk gone")
        with pytest.raises(RuntimeError):
            KeywordSearcher(broken).search("aem", SearchFilter(workspace_id="T1"))
