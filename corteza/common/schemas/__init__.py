"""
Corteza Schemas

Decision records, reviewer feedback, and the search API contract.
"""

from .decision_record import (
    DecisionRecord,
    ScoredCandidate,
    SearchFilter,
    RecordKind,
    Category,
)
from .feedback import FeedbackAction, FeedbackExample, SuggestionSnapshot
from .search import SearchRequest, SearchResponse, CategorizedPayload

__all__ = [
    "DecisionRecord",
    "ScoredCandidate",
    "SearchFilter",
    "RecordKind",
    "Category",
    "FeedbackAction",
    "FeedbackExample",
    "SuggestionSnapshot",
    "SearchRequest",
    "SearchResponse",
    "CategorizedPayload",
]
