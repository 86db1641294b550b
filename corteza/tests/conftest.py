"""Shared fixtures for Corteza tests."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import List
from unittest.mock import Mock

import pytest

from corteza.common.schemas.decision_record import DecisionRecord, RecordKind


BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

# Tiny vocabulary for the fake embedding provider: one dimension per topic
VOCAB = ["postgres", "aem", "pricing", "mobile"]


def make_record(
    record_id: int = 1,
    text: str = "We decided to use PostgreSQL for the orders service",
    workspace_id: str = "T1",
    kind: RecordKind = RecordKind.DECISION,
    days_ago: int = 0,
    **kwargs,
) -> DecisionRecord:
    return DecisionRecord(
        id=record_id,
        workspace_id=workspace_id,
        text=text,
        kind=kind,
        created_at=BASE_TIME - timedelta(days=days_ago),
        **kwargs,
    )


def topic_vector(text: str) -> List[float]:
    """Deterministic 4-d 'embedding': keyword counts per topic plus a small floor"""
    lowered = text.lower()
    return [lowered.count(word) + 0.01 for word in VOCAB]


class FakeEmbeddingsAPI:
    """Stands in for ``OpenAI().embeddings``"""

    def __init__(self):
        self.calls = []

    def create(self, model, input, timeout=None):
        self.calls.append(list(input))
        return SimpleNamespace(data=[
            SimpleNamespace(index=i, embedding=topic_vector(text))
            for i, text in enumerate(input)
        ])


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def fake_openai():
    return SimpleNamespace(embeddings=FakeEmbeddingsAPI())


@pytest.fixture
def mock_llm():
    llm = Mock()
    llm.is_available = True
    llm.provider = "anthropic"
    llm.model = "claude-test"
    return llm
