"""
Corteza

Decision search and capture for teams.

- Retriever: hybrid semantic/keyword search over logged decisions, with a
  conversational summary
- Scribe: feedback-conditioned extraction of decisions from meeting
  transcripts, plus the human review queue that feeds it

Usage:
    from corteza.common import load_config, RecordStore, EmbeddingService
    from corteza.common.schemas import DecisionRecord, SearchFilter
    from corteza.retriever import HybridSearcher, KeywordSearcher, Synthesizer
    from corteza.scribe import TranscriptExtractor, ReviewQueue
"""

__version__ = "0.1.0"
