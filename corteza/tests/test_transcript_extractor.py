"""Tests for feedback-conditioned transcript extraction."""

import json
import logging
from datetime import timedelta
from unittest.mock import Mock

import pytest

from corteza.common.errors import ProviderUnavailable, RateLimited
from corteza.common.feedback_store import FeedbackStore
from corteza.common.schemas.decision_record import RecordKind
from corteza.common.schemas.feedback import FeedbackAction, FeedbackExample, SuggestionSnapshot
from corteza.scribe.transcript_extractor import (
    EXTRACTION_SYSTEM_PROMPT,
    TranscriptExtractor,
    build_extraction_prompt,
)
from conftest import BASE_TIME

TRANSCRIPT = "Alice: We decided to use PostgreSQL for the orders service.\nBob: Agreed."

LLM_ITEMS = [
    {"text": "Use PostgreSQL for the orders service", "kind": "decision", "confidence": 0.92, "tags": ["database"]},
    {"text": "Orders service owns payment retries", "kind": "context", "confidence": 0.7},
    {"text": "Maybe GraphQL?", "kind": "speculation", "confidence": 0.3},
]


def _feedback(action, text, minutes=0, reason=None, workspace_id="T1"):
    return FeedbackExample(
        suggestion=SuggestionSnapshot(text=text, kind=RecordKind.DECISION),
        action=action,
        rejection_reason=reason,
        workspace_id=workspace_id,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def extractor(mock_llm, sleep):
    mock_llm.generate.return_value = json.dumps(LLM_ITEMS)
    return TranscriptExtractor(mock_llm, feedback=FeedbackStore(), sleep=sleep)


class TestExtraction:
    def test_valid_items_kept_invalid_dropped(self, extractor):
        outcome = extractor.extract(TRANSCRIPT, "T1")

        assert [c.text for c in outcome.candidates] == [
            "Use PostgreSQL for the orders service",
            "Orders service owns payment retries",
        ]
        assert outcome.rejected_fields == ["kind"]
        assert outcome.model == "claude-test"
        assert not outcome.used_few_shot

    def test_malformed_kind_does_not_abort_batch(self, extractor, mock_llm):
        mock_llm.generate.return_value = json.dumps([
            LLM_ITEMS[0],
            {"text": "bad", "kind": ["decision"], "confidence": 0.5},
        ])

        outcome = extractor.extract(TRANSCRIPT, "T1")

        assert [c.text for c in outcome.candidates] == ["Use PostgreSQL for the orders service"]
        assert outcome.rejected_fields == ["kind"]

    def test_fenced_response(self, extractor, mock_llm):
        mock_llm.generate.return_value = "```json\n" + json.dumps(LLM_ITEMS[:1]) + "\n```"
        assert len(extractor.extract(TRANSCRIPT, "T1").candidates) == 1

    def test_unparseable_response_is_empty(self, extractor, mock_llm, caplog):
        mock_llm.generate.return_value = "I could not find any decisions."
        with caplog.at_level(logging.ERROR, logger="corteza.scribe.transcript_extractor"):
            outcome = extractor.extract(TRANSCRIPT, "T1")
        assert outcome.candidates == []
        assert "Failed to parse extraction response" in caplog.text

    def test_call_parameters(self, extractor, mock_llm):
        extractor.extract("Alice:\x00  we   decided", "T1")

        args, kwargs = mock_llm.generate.call_args
        assert args[0] == "TRANSCRIPT:\nAlice: we decided"
        assert kwargs["system"] == EXTRACTION_SYSTEM_PROMPT
        assert kwargs["temperature"] == 0.2


class TestRateLimitRetry:
    def test_retries_once_after_delay(self, extractor, mock_llm, sleep):
        mock_llm.generate.side_effect = [RateLimited("429", status_code=429), json.dumps(LLM_ITEMS)]

        outcome = extractor.extract(TRANSCRIPT, "T1")

        sleep.assert_called_once_with(5.0)
        assert mock_llm.generate.call_count == 2
        assert len(outcome.candidates) == 2

    def test_second_rate_limit_propagates(self, extractor, mock_llm, sleep):
        mock_llm.generate.side_effect = RateLimited("429", status_code=429)

        with pytest.raises(RateLimited):
            extractor.extract(TRANSCRIPT, "T1")
        assert mock_llm.generate.call_count == 2
        sleep.assert_called_once()

    def test_other_provider_errors_not_retried(self, extractor, mock_llm, sleep):
        mock_llm.generate.side_effect = ProviderUnavailable("500", status_code=500)

        with pytest.raises(ProviderUnavailable):
            extractor.extract(TRANSCRIPT, "T1")
        assert mock_llm.generate.call_count == 1
        sleep.assert_not_called()


class TestFewShot:
    def test_prompt_includes_approved_and_rejected(self, mock_llm, sleep):
        store = FeedbackStore()
        store.append(_feedback(FeedbackAction.APPROVED, "Ship the beta on Friday"))
        store.append(_feedback(FeedbackAction.REJECTED, "Someone mentioned lunch", reason="small talk"))
        mock_llm.generate.return_value = "[]"

        outcome = TranscriptExtractor(mock_llm, feedback=store, sleep=sleep).extract(TRANSCRIPT, "T1")

        prompt = mock_llm.generate.call_args.args[0]
        assert outcome.used_few_shot
        assert "correctly identified" in prompt
        assert '- "Ship the beta on Friday" [decision]' in prompt
        assert "incorrectly identified" in prompt
        assert '- "Someone mentioned lunch" [decision] (reason: small talk)' in prompt
        assert prompt.endswith("TRANSCRIPT:\n" + TRANSCRIPT)

    def test_at_most_five_most_recent_examples(self, mock_llm, sleep):
        store = FeedbackStore()
        for i in range(8):
            store.append(_feedback(FeedbackAction.APPROVED, f"approved item {i}", minutes=i))
        mock_llm.generate.return_value = "[]"

        TranscriptExtractor(mock_llm, feedback=store, sleep=sleep).extract(TRANSCRIPT, "T1")

        prompt = mock_llm.generate.call_args.args[0]
        assert all(f"approved item {i}" in prompt for i in range(3, 8))
        assert all(f"approved item {i}" not in prompt for i in range(3))

    def test_other_workspace_feedback_ignored(self, mock_llm, sleep):
        store = FeedbackStore()
        store.append(_feedback(FeedbackAction.APPROVED, "elsewhere", workspace_id="T2"))
        mock_llm.generate.return_value = "[]"

        outcome = TranscriptExtractor(mock_llm, feedback=store, sleep=sleep).extract(TRANSCRIPT, "T1")
        assert not outcome.used_few_shot

    def test_feedback_failure_degrades(self, mock_llm, sleep, caplog):
        broken = Mock()
        broken.recent.side_effect = OSError("feedback db down")
        mock_llm.generate.return_value = json.dumps(LLM_ITEMS[:1])

        with caplog.at_level(logging.WARNING, logger="corteza.scribe.transcript_extractor"):
            outcome = TranscriptExtractor(mock_llm, feedback=broken, sleep=sleep).extract(TRANSCRIPT, "T1")

        assert len(outcome.candidates) == 1
        assert not outcome.used_few_shot
        assert "proceeding without few-shot" in caplog.text


def test_prompt_without_examples_is_just_transcript():
    assert build_extraction_prompt("hello", [], []) == "TRANSCRIPT:\nhello"


def test_unavailable_llm(mock_llm):
    mock_llm.is_available = False
    assert not TranscriptExtractor(mock_llm).is_available
