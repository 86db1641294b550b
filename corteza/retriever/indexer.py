"""
Embedding Indexer

Out-of-band job that embeds decision records and mirrors them into the vector
index. Runs after a record is approved and periodically as a backfill; never
on the query path.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..common.embedding_service import DEFAULT_BATCH_SIZE, EmbeddingService
from ..common.record_store import RecordStore
from ..common.vector_index import VectorIndexClient
from ..common.schemas.decision_record import DecisionRecord

logger = logging.getLogger("corteza.retriever.indexer")


@dataclass
class IndexingReport:
    requested: int = 0
    embedded: int = 0
    indexed: int = 0
    failed_ids: List[int] = field(default_factory=list)


class EmbeddingIndexer:
    """Embeds records, writes vectors back to the store, and upserts them into the index"""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        index: VectorIndexClient,
        store: RecordStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self._embedding = embedding_service
        self._index = index
        self._store = store
        self.batch_size = batch_size

    def ensure_index(self) -> bool:
        """Create the collection if missing. Returns True if it was created."""
        return self._index.create_index(self._embedding.dimension)

    def index_records(self, records: Iterable[DecisionRecord]) -> IndexingReport:
        records = list(records)
        report = IndexingReport(requested=len(records))
        if not records:
            return report

        embedded = self._embedding.embed_records(records, batch_size=self.batch_size)
        report.embedded = len(embedded)

        embedded_keys = {(r.workspace_id, r.id) for r in embedded}
        report.failed_ids = [r.id for r in records if (r.workspace_id, r.id) not in embedded_keys]

        if embedded:
            self._store.update_many(embedded)
            report.indexed = self._index.upsert(embedded)

        logger.info(
            "Indexed %d/%d record(s), %d failed",
            report.indexed, report.requested, len(report.failed_ids),
        )
        return report

    def backfill(self, workspace_id: Optional[str] = None) -> IndexingReport:
        """Embed and index every record that has no embedding yet"""
        missing = self._store.missing_embeddings(workspace_id)
        logger.info(
            "Backfilling %d record(s) without embeddings%s",
            len(missing), f" in workspace {workspace_id}" if workspace_id else "",
        )
        return self.index_records(missing)
