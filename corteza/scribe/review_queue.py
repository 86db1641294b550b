"""
Review Queue

Holds AI suggestions from transcript extraction until a human reviews them.

Every review is recorded as a FeedbackExample, which later conditions the
extraction prompt. Approved (or edited and approved) suggestions become
decision records.
"""

import json
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from ..common.feedback_store import FeedbackStore
from ..common.record_store import RecordStore
from ..common.schemas.decision_record import DecisionRecord, RecordKind
from ..common.schemas.feedback import FeedbackAction, FeedbackExample, SuggestionSnapshot
from .validation import SuggestionCandidate

EDITABLE_FIELDS = ("text", "kind", "tags")


@dataclass
class ReviewItem:
    """Item in the review queue"""
    item_id: str
    workspace_id: str
    suggestion: Dict[str, Any]
    created_at: str
    source: str = ""
    creator: str = ""
    status: str = "pending"  # pending, approved, rejected
    record_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "workspace_id": self.workspace_id,
            "suggestion": self.suggestion,
            "created_at": self.created_at,
            "source": self.source,
            "creator": self.creator,
            "status": self.status,
            "record_id": self.record_id,
        }


def _snapshot(data: Dict[str, Any]) -> SuggestionSnapshot:
    return SuggestionSnapshot(
        text=str(data["text"]).strip(),
        kind=RecordKind(data["kind"]),
        tags=list(data.get("tags") or []),
        confidence=data.get("confidence", 0.5),
    )


class ReviewQueue:
    """
    Manages the queue of AI suggestions awaiting review.

    The queue is persisted to ``queue_path`` when given (default location is
    ~/.corteza/data/review_queue.json); with None it is in-memory only.

    Workflow:
    1. Transcript extraction adds candidates to the queue
    2. A human approves, edits and approves, or rejects each one
    3. Each verdict is appended to the feedback store
    4. Approved items are stored as decision records
    """

    def __init__(
        self,
        records: RecordStore,
        feedback: FeedbackStore,
        queue_path: Optional[Path] = None,
    ):
        self._records = records
        self._feedback = feedback
        self._queue_path = queue_path
        self._lock = threading.Lock()
        self._queue: List[ReviewItem] = []
        self._load_queue()

    def _load_queue(self) -> None:
        """Load queue from disk"""
        if self._queue_path is None or not self._queue_path.exists():
            self._queue = []
            return

        try:
            with open(self._queue_path) as f:
                data = json.load(f)
            self._queue = [ReviewItem(**item) for item in data]
        except (json.JSONDecodeError, IOError, TypeError) as e:
            print(f"[ReviewQueue] Warning: Failed to load queue: {e}")
            self._queue = []

    def _save_queue(self) -> None:
        """Save queue to disk (caller holds the lock)"""
        if self._queue_path is None:
            return

        self._queue_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._queue_path, "w") as f:
            json.dump([item.to_dict() for item in self._queue], f, indent=2, default=str)

    def add_suggestions(
        self,
        workspace_id: str,
        candidates: List[SuggestionCandidate],
        source: str = "",
        creator: str = "",
    ) -> List[ReviewItem]:
        """Queue extraction candidates for review"""
        now = datetime.now(timezone.utc).isoformat()
        items = [
            ReviewItem(
                item_id=uuid.uuid4().hex[:12],
                workspace_id=workspace_id,
                suggestion=c.to_dict(),
                created_at=now,
                source=source,
                creator=creator,
            )
            for c in candidates
        ]
        with self._lock:
            self._queue.extend(items)
            self._save_queue()

        if items:
            print(f"[ReviewQueue] Added {len(items)} suggestion(s) for review in {workspace_id}")
        return items

    def get_pending(self, workspace_id: Optional[str] = None) -> List[ReviewItem]:
        """Get pending review items, optionally for one workspace"""
        return [
            item for item in self._queue
            if item.status == "pending" and (workspace_id is None or item.workspace_id == workspace_id)
        ]

    def get_item(self, item_id: str) -> Optional[ReviewItem]:
        """Get a specific review item by ID"""
        for item in self._queue:
            if item.item_id == item_id:
                return item
        return None

    def submit_review(
        self,
        item_id: str,
        action: FeedbackAction,
        edits: Optional[Dict[str, Any]] = None,
        rejection_reason: Optional[str] = None,
        reviewer: Optional[str] = None,
    ) -> Optional[DecisionRecord]:
        """
        Submit a review verdict.

        Returns:
            The stored DecisionRecord if approved, None if rejected

        Raises:
            KeyError: unknown item id
            ValueError: the item was already reviewed, or the edited record is invalid
        """
        with self._lock:
            item = self.get_item(item_id)
            if item is None:
                raise KeyError(f"Review item not found: {item_id}")
            if item.status != "pending":
                raise ValueError(f"Review item {item_id} was already {item.status}")

            original = _snapshot(item.suggestion)
            final_version = None
            if action == FeedbackAction.EDITED_APPROVED and edits:
                merged = dict(item.suggestion)
                merged.update({k: v for k, v in edits.items() if k in EDITABLE_FIELDS and v is not None})
                final_version = _snapshot(merged)

            # Build the record first so an invalid edit leaves no feedback behind
            draft = None
            if action != FeedbackAction.REJECTED:
                accepted = final_version or original
                draft = DecisionRecord(
                    workspace_id=item.workspace_id,
                    text=accepted.text,
                    kind=accepted.kind,
                    tags=accepted.tags,
                    epic_ref=item.suggestion.get("epic_ref"),
                    context=item.suggestion.get("context"),
                    creator=reviewer or item.creator,
                )

            self._feedback.append(FeedbackExample(
                suggestion=original,
                final_version=final_version,
                action=action,
                rejection_reason=rejection_reason if action == FeedbackAction.REJECTED else None,
                workspace_id=item.workspace_id,
            ))

            if draft is None:
                item.status = "rejected"
                self._save_queue()
                print(f"[ReviewQueue] Item {item_id} rejected by {reviewer or 'unknown'}")
                return None

            record = self._records.add(draft)

            item.status = "approved"
            item.record_id = record.id
            self._save_queue()

        print(f"[ReviewQueue] Item {item_id} approved by {reviewer or 'unknown'} as decision #{record.id}")
        return record

    def get_stats(self) -> Dict[str, int]:
        """Get queue statistics"""
        stats = {
            "total": len(self._queue),
            "pending": 0,
            "approved": 0,
            "rejected": 0,
        }
        for item in self._queue:
            if item.status in stats:
                stats[item.status] += 1
        return stats
