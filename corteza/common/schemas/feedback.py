"""
Feedback Schema

A FeedbackExample is written exactly once, when a human reviews an AI
suggestion. The extraction pipeline reads them back as few-shot examples.
"""

from datetime import datetime
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .decision_record import RecordKind, utcnow


class FeedbackAction(str, Enum):
    """Reviewer verdict on a suggestion"""
    APPROVED = "approved"
    EDITED_APPROVED = "edited_approved"
    REJECTED = "rejected"

    @property
    def is_approval(self) -> bool:
        return self in (FeedbackAction.APPROVED, FeedbackAction.EDITED_APPROVED)


class SuggestionSnapshot(BaseModel):
    """The parts of a suggestion worth remembering for few-shot prompts"""
    model_config = ConfigDict(frozen=True)

    text: str
    kind: RecordKind
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0, default=0.5)


class FeedbackExample(BaseModel):
    """Immutable review outcome for one AI suggestion"""
    model_config = ConfigDict(frozen=True)

    suggestion: SuggestionSnapshot
    final_version: Optional[SuggestionSnapshot] = None
    action: FeedbackAction
    rejection_reason: Optional[str] = None
    workspace_id: str
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def effective(self) -> SuggestionSnapshot:
        """What the reviewer accepted: the edit if any, else the original"""
        return self.final_version or self.suggestion
