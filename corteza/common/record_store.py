"""
Record Store

Workspace-scoped store of decision records, optionally persisted to a JSON
file (default: ~/.corteza/data/records.json). Ids are assigned per workspace
in increasing order starting at 1.

The file may be shared with another process (the server and the embedding
backfill job). Every write re-reads the file under the lock before applying
its change, and reads pick up the file again once it has been replaced.
Writes go through a temp file and an atomic rename.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .schemas.decision_record import DecisionRecord, SearchFilter

logger = logging.getLogger("corteza.common.record_store")


class RecordStore:
    """
    Thread-safe store of DecisionRecords keyed by (workspace_id, id).

    With ``path=None`` the store lives only in memory.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = path
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, int], DecisionRecord] = {}
        self._stamp: Optional[Tuple[int, int, int]] = None
        self._load()

    def _file_stamp(self) -> Optional[Tuple[int, int, int]]:
        try:
            st = os.stat(self._path)
        except FileNotFoundError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _load(self) -> None:
        """Load records from disk. On failure the records already in memory are kept."""
        if self._path is None or not self._path.exists():
            return

        stamp = self._file_stamp()
        try:
            with open(self._path) as f:
                data = json.load(f)
            loaded = {}
            for item in data:
                record = DecisionRecord.model_validate(item)
                loaded[(record.workspace_id, record.id)] = record
        except (json.JSONDecodeError, IOError, ValueError) as e:
            print(f"[RecordStore] Warning: Failed to load records: {e}")
            self._stamp = stamp
            return

        self._records = loaded
        self._stamp = stamp

    def _refresh(self, force: bool = False) -> None:
        """Pick up another process's writes (caller holds the lock)"""
        if self._path is None:
            return
        if force or self._file_stamp() != self._stamp:
            self._load()

    def _save(self) -> None:
        """Save records to disk atomically (caller holds the lock)"""
        if self._path is None:
            return

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = [r.model_dump(mode="json") for r in self._records.values()]

        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".records_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self._path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        self._stamp = self._file_stamp()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def add(self, record: DecisionRecord) -> DecisionRecord:
        """Store a record under the next id of its workspace. Returns the stored copy."""
        with self._lock:
            self._refresh(force=True)
            next_id = 1 + max(
                (rid for (ws, rid) in self._records if ws == record.workspace_id),
                default=0,
            )
            stored = record.model_copy(update={"id": next_id})
            self._records[(stored.workspace_id, next_id)] = stored
            self._save()

        logger.info("Stored decision #%d in workspace %s", next_id, stored.workspace_id)
        return stored

    def get(self, workspace_id: str, record_id: int) -> Optional[DecisionRecord]:
        with self._lock:
            self._refresh()
            return self._records.get((workspace_id, record_id))

    def get_many(self, workspace_id: str, record_ids: Iterable[int]) -> Dict[int, DecisionRecord]:
        """Look up several records at once; unknown ids are simply absent from the result."""
        with self._lock:
            self._refresh()
            found = {}
            for rid in record_ids:
                record = self._records.get((workspace_id, rid))
                if record is not None:
                    found[rid] = record
            return found

    def update(self, record: DecisionRecord) -> DecisionRecord:
        key = (record.workspace_id, record.id)
        with self._lock:
            self._refresh(force=True)
            if key not in self._records:
                raise KeyError(f"Decision #{record.id} not found in workspace {record.workspace_id}")
            self._records[key] = record
            self._save()
        return record

    def update_many(self, records: Iterable[DecisionRecord]) -> int:
        """Replace existing records in one write. Records not in the store are skipped."""
        count = 0
        with self._lock:
            self._refresh(force=True)
            for record in records:
                key = (record.workspace_id, record.id)
                if key in self._records:
                    self._records[key] = record
                    count += 1
            if count:
                self._save()
        return count

    def list_records(self, workspace_id: Optional[str] = None) -> List[DecisionRecord]:
        """All records (of one workspace, if given), newest first"""
        with self._lock:
            self._refresh()
            records = [
                r for r in self._records.values()
                if workspace_id is None or r.workspace_id == workspace_id
            ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def missing_embeddings(self, workspace_id: Optional[str] = None) -> List[DecisionRecord]:
        return [r for r in self.list_records(workspace_id) if not r.has_embedding]

    # ------------------------------------------------------------------
    # Lexical queries
    # ------------------------------------------------------------------

    def search_text(self, search_filter: SearchFilter, terms: List[str]) -> List[DecisionRecord]:
        """
        Records matching the filter where any term is a case-insensitive
        substring of the text, a tag, or the epic ref. Newest first.
        """
        needles = [t.lower() for t in terms if t]
        if not needles:
            return []

        matches = []
        for record in self.list_records(search_filter.workspace_id):
            if not search_filter.matches(record):
                continue
            haystacks = [field.lower() for field in record.searchable_fields()]
            if any(needle in hay for needle in needles for hay in haystacks):
                matches.append(record)
        return matches

    def suggest(self, workspace_id: str, partial: str, limit: int = 5) -> List[Dict[str, str]]:
        """Distinct tags, then epic refs, containing ``partial`` (case-insensitive)"""
        needle = partial.lower()
        tags: List[str] = []
        epics: List[str] = []

        for record in self.list_records(workspace_id):
            for tag in record.tags:
                if needle in tag.lower() and tag not in tags:
                    tags.append(tag)
            if record.epic_ref and needle in record.epic_ref.lower() and record.epic_ref not in epics:
                epics.append(record.epic_ref)

        suggestions = [{"type": "tag", "value": t} for t in sorted(tags)]
        suggestions += [{"type": "epic", "value": e} for e in sorted(epics)]
        return suggestions[:limit]

    def count(self, workspace_id: Optional[str] = None) -> int:
        return len(self.list_records(workspace_id))
