"""
Keyword Searcher

Lexical fallback used when semantic search is disabled, fails, or finds
nothing. Matches are case-insensitive substrings over text, tags, and epic
ref. Every match gets the same synthetic score, so results are ordered by
recency rather than relevance.
"""

import logging
import re
from typing import List

from ..common.record_store import RecordStore
from ..common.schemas.decision_record import ScoredCandidate, SearchFilter

logger = logging.getLogger("corteza.retriever.keyword_search")

KEYWORD_MATCH_SCORE = 0.75

STOPWORDS = frozenset({
    "a", "an", "and", "are", "about", "all", "any", "by", "did", "do", "does",
    "for", "from", "how", "i", "in", "is", "it", "me", "my", "of", "on", "or",
    "our", "show", "tell", "that", "the", "this", "to", "us", "was", "we",
    "were", "what", "when", "which", "who", "why", "with",
    "decision", "decisions",
})

_TOKEN_RE = re.compile(r"[\w#.+-]+", re.UNICODE)


def query_terms(query: str) -> List[str]:
    """
    Terms a record may contain to match ``query``.

    The whole (lowercased) query always comes first; content words follow.
    Stopwords and one-character tokens are dropped.
    """
    normalized = query.strip().lower()
    if not normalized:
        return []

    terms = [normalized]
    for token in _TOKEN_RE.findall(normalized):
        token = token.strip(".-")
        if len(token) < 2 or token in STOPWORDS or token in terms:
            continue
        terms.append(token)
    return terms


class KeywordSearcher:
    """Substring search over the record store"""

    def __init__(self, store: RecordStore, match_score: float = KEYWORD_MATCH_SCORE):
        self._store = store
        self.match_score = match_score

    def search(self, query: str, search_filter: SearchFilter, limit: int = 10) -> List[ScoredCandidate]:
        """
        Newest-first matches scoped by workspace, kind, and date range.

        The category constraint is not applied on this path. Store failures
        propagate to the caller.
        """
        terms = query_terms(query)
        if not terms:
            return []

        lexical_filter = search_filter.model_copy(update={"category": None})
        records = self._store.search_text(lexical_filter, terms)[:limit]

        logger.info(
            "Keyword search for %r in %s: %d match(es)",
            query, search_filter.workspace_id, len(records),
        )
        return [ScoredCandidate(record=r, score=self.match_score) for r in records]
