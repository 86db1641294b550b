"""
Decision Record Schema

A decision record is a short, workspace-scoped text logged by a team member
(or approved from an AI suggestion). Records carry an optional embedding that
is computed out-of-band and mirrored into the vector index.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Enums
# ============================================================================

class RecordKind(str, Enum):
    """What the record captures"""
    DECISION = "decision"
    EXPLANATION = "explanation"
    CONTEXT = "context"


class Category(str, Enum):
    """Product area of a record"""
    PRODUCT = "product"
    UX = "ux"
    TECHNICAL = "technical"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ============================================================================
# Models
# ============================================================================

class DecisionRecord(BaseModel):
    """
    A logged decision, explanation, or piece of context.

    (workspace_id, id) is unique. The embedding, once present, belongs to
    whichever embedding model produced it; the model version is not tracked.
    """
    id: int = Field(default=0, ge=0, description="Per-workspace id, assigned by the record store")
    workspace_id: str
    text: str = Field(..., min_length=1)
    kind: RecordKind = RecordKind.DECISION
    category: Optional[Category] = None
    tags: List[str] = Field(default_factory=list)
    epic_ref: Optional[str] = None
    creator: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    embedding: Optional[List[float]] = None

    # Secondary text, only used to enrich the embedding text
    epic_summary: Optional[str] = None
    notes: Optional[str] = None
    context: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: List[str]) -> List[str]:
        seen = []
        for tag in tags:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def searchable_fields(self) -> List[str]:
        """Fields the lexical fallback matches against"""
        fields = [self.text, *self.tags]
        if self.epic_ref:
            fields.append(self.epic_ref)
        return fields


class ScoredCandidate(BaseModel):
    """A record paired with a similarity (or synthetic) score. Query-time only."""
    record: DecisionRecord
    score: float = Field(ge=0.0, le=1.0)

    @property
    def id(self) -> int:
        return self.record.id

    def to_dict(self) -> Dict[str, Any]:
        """Flat JSON shape used in search responses (no embedding)."""
        data = self.record.model_dump(mode="json", exclude={"embedding"})
        data["score"] = self.score
        return data


class SearchFilter(BaseModel):
    """Metadata constraints applied before similarity ranking."""
    workspace_id: str = Field(..., min_length=1)
    kind: Optional[RecordKind] = None
    category: Optional[Category] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    def matches(self, record: DecisionRecord) -> bool:
        """Whether a record satisfies every constraint of this filter"""
        if record.workspace_id != self.workspace_id:
            return False
        if self.kind is not None and record.kind != self.kind:
            return False
        if self.category is not None and record.category != self.category:
            return False
        if self.date_from is not None and record.created_at < self.date_from:
            return False
        if self.date_to is not None and record.created_at > self.date_to:
            return False
        return True
