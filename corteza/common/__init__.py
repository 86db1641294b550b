"""
Corteza Common Module

Shared infrastructure for the retriever and scribe pipelines.
"""

from .config import CortezaConfig, load_config
from .embedding_service import EmbeddingService, build_record_text, create_embedding_service
from .feedback_store import FeedbackRepository, FeedbackStore
from .llm_client import LLMClient
from .record_store import RecordStore
from .vector_index import VectorIndexClient, IndexHit

__all__ = [
    "CortezaConfig",
    "load_config",
    "EmbeddingService",
    "build_record_text",
    "create_embedding_service",
    "FeedbackRepository",
    "FeedbackStore",
    "LLMClient",
    "RecordStore",
    "VectorIndexClient",
    "IndexHit",
]
