"""
Transcript Extractor

Mines meeting transcripts for candidate decision records with an LLM.

The prompt is conditioned on the workspace's recent review history: up to
five suggestions reviewers approved and up to five they rejected (with the
reason) are shown as examples, so extraction drifts toward what the team
actually keeps.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..common.errors import RateLimited
from ..common.feedback_store import FeedbackRepository
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_llm_json_array
from ..common.schemas.feedback import FeedbackAction, FeedbackExample
from .validation import (
    SuggestionCandidate,
    ValidationOutcome,
    sanitize_transcript,
    validate_suggestion,
)

logger = logging.getLogger("corteza.scribe.transcript_extractor")

FEW_SHOT_LIMIT = 5
RATE_LIMIT_DELAY_SECONDS = 5.0
EXTRACTION_TEMPERATURE = 0.2

EXTRACTION_SYSTEM_PROMPT = """You extract decisions, explanations, and context from meeting transcripts.

Extract three kinds of items:

- decision: an explicit commitment the team made.
  Extract: "We decided to use PostgreSQL for the main database." / "We'll ship the beta on Friday." / "Agreed to drop IE11 support."
  Skip: "Maybe we should look at PostgreSQL?" / "Let's think about the release date."
- explanation: how something works or why it is built the way it is.
  Extract: "The sync job runs every hour and only copies changed rows." / "Auth works by exchanging the Slack token for a session cookie."
  Skip: "It's kind of complicated." / "I'm not sure how that part works."
- context: background facts and constraints that shape decisions.
  Extract: "Budget for Q2 was approved at $50k." / "We can't use AWS because of the client contract."
  Skip: "Someone mentioned budget at some point." / small talk and scheduling chatter.

Skip vague discussion, unanswered questions, and speculation nobody committed to.

Respond with a JSON array only, no other text:
[{"text": "concise 1-2 sentence statement", "kind": "decision|explanation|context", "tags": ["2-5 lowercase keywords"], "confidence": 0.0-1.0, "epic_ref": "ABC-123 or null", "context": "surrounding transcript text, about 200 chars"}]

Return [] if nothing qualifies. Be conservative with confidence: use 0.9+ only when the transcript is unambiguous."""


@dataclass
class ExtractionOutcome:
    """Validated candidates from one transcript"""
    candidates: List[SuggestionCandidate] = field(default_factory=list)
    used_few_shot: bool = False
    rejections: List[ValidationOutcome] = field(default_factory=list)
    model: str = ""
    processing_ms: int = 0

    @property
    def rejected_fields(self) -> List[str]:
        return [r.field for r in self.rejections]


def build_extraction_prompt(
    transcript: str,
    approved: List[FeedbackExample],
    rejected: List[FeedbackExample],
) -> str:
    """User prompt: optional feedback examples followed by the transcript"""
    sections = []

    if approved:
        lines = ["Examples of items this team correctly identified:"]
        for ex in approved:
            s = ex.effective
            lines.append(f'- "{s.text}" [{s.kind.value}]')
        sections.append("\n".join(lines))

    if rejected:
        lines = ["Examples of items this team marked as incorrectly identified (do not extract similar items):"]
        for ex in rejected:
            line = f'- "{ex.suggestion.text}" [{ex.suggestion.kind.value}]'
            if ex.rejection_reason:
                line += f" (reason: {ex.rejection_reason})"
            lines.append(line)
        sections.append("\n".join(lines))

    sections.append(f"TRANSCRIPT:\n{transcript}")
    return "\n\n".join(sections)


class TranscriptExtractor:
    """
    Feedback-conditioned LLM extraction.

    Only a 429 from the provider is retried, once, after a fixed delay.
    Every other provider error propagates to the caller.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        feedback: Optional[FeedbackRepository] = None,
        few_shot_limit: int = FEW_SHOT_LIMIT,
        rate_limit_delay: float = RATE_LIMIT_DELAY_SECONDS,
        temperature: float = EXTRACTION_TEMPERATURE,
        max_tokens: int = 2048,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._llm = llm_client
        self._feedback = feedback
        self.few_shot_limit = few_shot_limit
        self.rate_limit_delay = rate_limit_delay
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sleep = sleep

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def extract(self, transcript: str, workspace_id: str) -> ExtractionOutcome:
        start = time.monotonic()
        sanitized = sanitize_transcript(transcript)

        approved, rejected = self._load_examples(workspace_id)
        if approved or rejected:
            logger.info(
                "Using %d approved + %d rejected examples for few-shot extraction",
                len(approved), len(rejected),
            )

        prompt = build_extraction_prompt(sanitized, approved, rejected)
        raw = self._generate(prompt)

        candidates, rejections = self._parse(raw)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        logger.info(
            "Extracted %d candidate(s), dropped %d invalid item(s) in %dms",
            len(candidates), len(rejections), elapsed_ms,
        )
        return ExtractionOutcome(
            candidates=candidates,
            used_few_shot=bool(approved or rejected),
            rejections=rejections,
            model=self._llm.model,
            processing_ms=elapsed_ms,
        )

    def _load_examples(self, workspace_id: str):
        if self._feedback is None or not workspace_id:
            return [], []
        try:
            approved = self._feedback.recent(
                workspace_id,
                (FeedbackAction.APPROVED, FeedbackAction.EDITED_APPROVED),
                limit=self.few_shot_limit,
            )
            rejected = self._feedback.recent(
                workspace_id,
                (FeedbackAction.REJECTED,),
                limit=self.few_shot_limit,
            )
        except Exception as e:
            logger.warning("Could not load feedback examples, proceeding without few-shot: %s", e)
            return [], []
        return approved, rejected

    def _generate(self, prompt: str) -> str:
        try:
            return self._call(prompt)
        except RateLimited:
            logger.warning("LLM rate limited, retrying in %.0fs", self.rate_limit_delay)
            self._sleep(self.rate_limit_delay)
            return self._call(prompt)

    def _call(self, prompt: str) -> str:
        return self._llm.generate(
            prompt,
            system=EXTRACTION_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout=60.0,
        )

    def _parse(self, raw: str):
        items = parse_llm_json_array(raw)
        if items is None:
            logger.error("Failed to parse extraction response: %r", (raw or "")[:500])
            return [], []

        candidates = []
        rejections = []
        for item in items:
            outcome = validate_suggestion(item)
            if outcome.ok:
                candidates.append(outcome.candidate)
            else:
                logger.warning("Skipping invalid suggestion (%s): %s", outcome.field, outcome.error)
                rejections.append(outcome)
        return candidates, rejections
