"""
Feedback Store

Append-only log of reviewer verdicts on AI suggestions. The extraction
pipeline only ever reads it, through the FeedbackRepository interface.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional

from .schemas.feedback import FeedbackAction, FeedbackExample

logger = logging.getLogger("corteza.common.feedback_store")


class FeedbackRepository:
    """Read-only view of feedback history"""

    def recent(
        self,
        workspace_id: str,
        actions: Iterable[FeedbackAction],
        limit: int = 5,
    ) -> List[FeedbackExample]:
        """Most recent examples with one of ``actions``, newest first"""
        raise NotImplementedError


class FeedbackStore(FeedbackRepository):
    """
    Thread-safe, optionally JSON-persisted feedback log.

    With ``path=None`` the log lives only in memory.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = path
        self._lock = threading.Lock()
        self._examples: List[FeedbackExample] = []
        self._load()

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return

        try:
            with open(self._path) as f:
                data = json.load(f)
            self._examples = [FeedbackExample.model_validate(item) for item in data]
        except (json.JSONDecodeError, IOError, ValueError) as e:
            print(f"[FeedbackStore] Warning: Failed to load feedback: {e}")
            self._examples = []

    def _save(self) -> None:
        if self._path is None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w") as f:
            json.dump([e.model_dump(mode="json") for e in self._examples], f, indent=2)

    def append(self, example: FeedbackExample) -> None:
        with self._lock:
            self._examples.append(example)
            self._save()
        logger.info(
            "Recorded %s feedback in workspace %s", example.action.value, example.workspace_id
        )

    def recent(
        self,
        workspace_id: str,
        actions: Iterable[FeedbackAction],
        limit: int = 5,
    ) -> List[FeedbackExample]:
        wanted = set(actions)
        with self._lock:
            matching = [
                e for e in self._examples
                if e.workspace_id == workspace_id and e.action in wanted
            ]
        matching.sort(key=lambda e: e.created_at, reverse=True)
        return matching[:limit]

    def __len__(self) -> int:
        return len(self._examples)
