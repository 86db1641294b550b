"""
Scribe - Decision Capture from Transcripts

Turns meeting transcripts into candidate decision records and learns from
reviewer feedback.

Key Components:
- TranscriptExtractor: Feedback-conditioned LLM extraction
- validate_suggestion / sanitize_transcript: Input and output hygiene
- ReviewQueue: Human review; verdicts feed back into extraction prompts
"""

from .review_queue import ReviewQueue, ReviewItem
from .transcript_extractor import ExtractionOutcome, TranscriptExtractor, build_extraction_prompt
from .validation import (
    SuggestionCandidate,
    ValidationOutcome,
    sanitize_transcript,
    validate_suggestion,
    validate_transcript_content,
)

__all__ = [
    "ReviewQueue",
    "ReviewItem",
    "ExtractionOutcome",
    "TranscriptExtractor",
    "build_extraction_prompt",
    "SuggestionCandidate",
    "ValidationOutcome",
    "sanitize_transcript",
    "validate_suggestion",
    "validate_transcript_content",
]
