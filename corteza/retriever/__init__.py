"""
Retriever - Decision Search

Answers natural-language questions over a workspace's decision records.

Key Components:
- Searcher: Embeds the query and runs a pre-filtered vector search
- KeywordSearcher: Substring fallback over text, tags, and epic refs
- HybridSearcher: Semantic first, keyword when that fails or finds nothing
- Synthesizer: Conversational summary with a deterministic fallback
- EmbeddingIndexer: Out-of-band embedding and index backfill

Pipeline:
1. Embed the query and search the vector index (workspace pre-filter)
2. Fall back to keyword search on error or no results
3. Bucket results into relevance tiers
4. Summarize with the LLM, or render the fallback template
"""

from .categorizer import CategorizedResults, RelevanceThresholds, categorize
from .hybrid_search import HybridSearcher, HybridSearchResult, SearchMethod, StageResult
from .indexer import EmbeddingIndexer, IndexingReport
from .keyword_search import KeywordSearcher, KEYWORD_MATCH_SCORE
from .searcher import Searcher
from .synthesizer import Synthesizer, SynthesizedAnswer

__all__ = [
    "CategorizedResults",
    "RelevanceThresholds",
    "categorize",
    "HybridSearcher",
    "HybridSearchResult",
    "SearchMethod",
    "StageResult",
    "EmbeddingIndexer",
    "IndexingReport",
    "KeywordSearcher",
    "KEYWORD_MATCH_SCORE",
    "Searcher",
    "Synthesizer",
    "SynthesizedAnswer",
]
