"""
Validation helpers for the extraction pipeline.

Transcripts are sanitized before prompting; every item the LLM returns is
validated on its own into a ValidationOutcome so one bad item never sinks
the batch.
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from ..common.errors import ValidationError
from ..common.schemas.decision_record import RecordKind

MIN_TRANSCRIPT_WORDS = 100
MAX_TRANSCRIPT_WORDS = 50_000

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_INLINE_WHITESPACE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES = re.compile(r"\n{3,}")

VALID_KINDS = {k.value for k in RecordKind}


def sanitize_transcript(text: Optional[str]) -> str:
    """
    Normalize transcript text for prompting.

    Control characters are removed and runs of spaces/tabs collapse to one
    space. Line breaks are kept (speaker turns matter) but trimmed, and runs
    of blank lines collapse to a single blank line.
    """
    if not text:
        return ""

    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    cleaned = "\n".join(_INLINE_WHITESPACE.sub(" ", line).strip() for line in cleaned.split("\n"))
    cleaned = _BLANK_LINES.sub("\n\n", cleaned)
    return cleaned.strip()


def validate_transcript_content(text: Optional[str]) -> Optional[str]:
    """Return an error message if the transcript is empty, too short, or too long"""
    if not text or not text.strip():
        return "Transcript contains no text content"

    word_count = len(text.split())
    if word_count < MIN_TRANSCRIPT_WORDS:
        return f"Transcript too short ({word_count} words). Minimum: {MIN_TRANSCRIPT_WORDS} words"
    if word_count > MAX_TRANSCRIPT_WORDS:
        return f"Transcript too long ({word_count} words). Maximum: {MAX_TRANSCRIPT_WORDS:,} words"
    return None


@dataclass
class SuggestionCandidate:
    """A validated AI suggestion, not yet reviewed"""
    text: str
    kind: RecordKind
    confidence: float
    tags: List[str] = field(default_factory=list)
    epic_ref: Optional[str] = None
    context: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "kind": self.kind.value,
            "confidence": self.confidence,
            "tags": list(self.tags),
            "epic_ref": self.epic_ref,
            "context": self.context,
        }


@dataclass
class ValidationOutcome:
    """Tagged result of validating one LLM item"""
    ok: bool
    candidate: Optional[SuggestionCandidate] = None
    error: Optional[ValidationError] = None
    raw: Any = None

    @property
    def field(self) -> Optional[str]:
        return self.error.field if self.error else None


def _first(item: dict, *keys: str) -> Any:
    for key in keys:
        if key in item:
            return item[key]
    return None


def _parse_suggestion(item: Any) -> SuggestionCandidate:
    if not isinstance(item, dict):
        raise ValidationError("item", f"expected an object, got {type(item).__name__}")

    # Older prompts used decision_text / decision_type / epic_key
    text = _first(item, "text", "decision_text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("text", "must be a non-empty string")

    kind = _first(item, "kind", "decision_type")
    if not isinstance(kind, str) or kind not in VALID_KINDS:
        raise ValidationError("kind", f"must be one of {sorted(VALID_KINDS)}, got {kind!r}")

    confidence = item.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise ValidationError("confidence", f"must be a number, got {confidence!r}")
    if not 0.0 <= confidence <= 1.0:
        raise ValidationError("confidence", f"must be within [0, 1], got {confidence}")

    tags = item.get("tags")
    if tags is None:
        tags = []
    if not isinstance(tags, list):
        raise ValidationError("tags", f"must be an array, got {type(tags).__name__}")

    epic_ref = _first(item, "epic_ref", "epic_key")
    context = item.get("context")

    return SuggestionCandidate(
        text=text.strip(),
        kind=RecordKind(kind),
        confidence=float(confidence),
        tags=[str(t).strip().lower() for t in tags if str(t).strip()],
        epic_ref=str(epic_ref) if epic_ref else None,
        context=str(context) if context else None,
    )


def validate_suggestion(item: Any) -> ValidationOutcome:
    """Validate one LLM item without raising"""
    try:
        return ValidationOutcome(ok=True, candidate=_parse_suggestion(item), raw=item)
    except ValidationError as e:
        return ValidationOutcome(ok=False, error=e, raw=item)
