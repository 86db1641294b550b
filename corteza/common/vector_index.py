"""
Vector Index Client

Qdrant-backed similarity search over decision record embeddings.

Every query is pre-filtered on payload metadata (workspace, kind, category,
creation time) so the ANN search only ever ranks records the caller is allowed
to see. The client returns raw hits; thresholding and hydration happen in the
semantic search stage.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.http import models as rest_models
from qdrant_client.http.exceptions import UnexpectedResponse

from .config import StorageConfig, VectorIndexConfig
from .errors import IndexUnavailable, ProviderUnavailable
from .schemas.decision_record import DecisionRecord, SearchFilter

logger = logging.getLogger("corteza.common.vector_index")

MIN_NUM_CANDIDATES = 100
CANDIDATE_MULTIPLIER = 10

# Payload keys
WORKSPACE_KEY = "workspace_id"
RECORD_KEY = "record_id"
KIND_KEY = "kind"
CATEGORY_KEY = "category"
CREATED_KEY = "created_ts"


@dataclass
class IndexHit:
    """A single similarity hit, before hydration from the record store"""
    record_id: int
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)


def num_candidates_for(limit: int) -> int:
    """ANN exploration width for a requested result count"""
    return max(limit * CANDIDATE_MULTIPLIER, MIN_NUM_CANDIDATES)


def point_id(workspace_id: str, record_id: int) -> str:
    """Deterministic Qdrant point id for a record"""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{workspace_id}:{record_id}"))


def build_filter(search_filter: SearchFilter) -> rest_models.Filter:
    """
    Translate a SearchFilter into a Qdrant pre-filter.

    workspace_id is always present; kind, category and the created_at range
    are added only when set.
    """
    must = [
        rest_models.FieldCondition(
            key=WORKSPACE_KEY,
            match=rest_models.MatchValue(value=search_filter.workspace_id),
        )
    ]

    if search_filter.kind is not None:
        must.append(rest_models.FieldCondition(
            key=KIND_KEY,
            match=rest_models.MatchValue(value=search_filter.kind.value),
        ))

    if search_filter.category is not None:
        must.append(rest_models.FieldCondition(
            key=CATEGORY_KEY,
            match=rest_models.MatchValue(value=search_filter.category.value),
        ))

    if search_filter.date_from is not None or search_filter.date_to is not None:
        must.append(rest_models.FieldCondition(
            key=CREATED_KEY,
            range=rest_models.Range(
                gte=search_filter.date_from.timestamp() if search_filter.date_from else None,
                lte=search_filter.date_to.timestamp() if search_filter.date_to else None,
            ),
        ))

    return rest_models.Filter(must=must)


def record_payload(record: DecisionRecord) -> Dict[str, Any]:
    """Filterable metadata stored alongside each vector"""
    return {
        WORKSPACE_KEY: record.workspace_id,
        RECORD_KEY: record.id,
        KIND_KEY: record.kind.value,
        CATEGORY_KEY: record.category.value if record.category else None,
        CREATED_KEY: record.created_at.timestamp(),
    }


class VectorIndexClient:
    """
    Thin wrapper around QdrantClient for one collection.

    Use ``from_config`` for a remote or on-disk index, or pass a client
    (e.g. ``QdrantClient(":memory:")``) directly.
    """

    def __init__(self, client: QdrantClient, index_name: str = "decision_records"):
        self._client = client
        self.index_name = index_name

    @classmethod
    def from_config(cls, index: VectorIndexConfig, storage: StorageConfig) -> "VectorIndexClient":
        if index.url:
            client = QdrantClient(url=index.url, api_key=index.api_key or None)
            logger.info("Using Qdrant at %s (collection=%s)", index.url, index.index_name)
        else:
            client = QdrantClient(path=str(storage.index_path))
            logger.info("Using local Qdrant index at %s (collection=%s)", storage.index_path, index.index_name)
        return cls(client, index.index_name)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def search(
        self,
        query_vector: List[float],
        search_filter: SearchFilter,
        limit: int,
        num_candidates: Optional[int] = None,
    ) -> List[IndexHit]:
        """
        Run a pre-filtered similarity query.

        Requests up to ``limit * 2`` hits with an exploration width of
        ``num_candidates`` (default ``max(limit * 10, 100)``). Hits are returned
        in descending score order with scores clamped to [0, 1]; no threshold
        is applied here.

        Raises:
            IndexUnavailable: the collection does not exist
            ProviderUnavailable: any other index failure
        """
        if num_candidates is None:
            num_candidates = num_candidates_for(limit)

        self._ensure_exists()

        try:
            response = self._client.query_points(
                collection_name=self.index_name,
                query=query_vector,
                query_filter=build_filter(search_filter),
                limit=limit * 2,
                search_params=rest_models.SearchParams(hnsw_ef=num_candidates),
                with_payload=True,
            )
        except UnexpectedResponse as e:
            if e.status_code == 404:
                raise IndexUnavailable(self.index_name, str(e)) from e
            raise ProviderUnavailable(f"Vector search failed: {e}", provider="qdrant", status_code=e.status_code) from e
        except Exception as e:
            raise ProviderUnavailable(f"Vector search failed: {e}", provider="qdrant") from e

        hits = []
        for point in response.points:
            payload = point.payload or {}
            if RECORD_KEY not in payload:
                logger.debug("Skipping point %s without %s payload", point.id, RECORD_KEY)
                continue
            hits.append(IndexHit(
                record_id=int(payload[RECORD_KEY]),
                score=max(0.0, min(1.0, float(point.score))),
                payload=payload,
            ))
        return hits

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        try:
            return self._client.collection_exists(self.index_name)
        except Exception as e:
            raise ProviderUnavailable(f"Vector index check failed: {e}", provider="qdrant") from e

    def create_index(self, dim: int) -> bool:
        """Create the collection and its payload indexes. Returns False if it already existed."""
        if self.exists():
            logger.info("Collection %s already exists", self.index_name)
            return False

        self._client.create_collection(
            collection_name=self.index_name,
            vectors_config=rest_models.VectorParams(
                size=dim,
                distance=rest_models.Distance.COSINE,
            ),
        )
        for key, schema in (
            (WORKSPACE_KEY, rest_models.PayloadSchemaType.KEYWORD),
            (KIND_KEY, rest_models.PayloadSchemaType.KEYWORD),
            (CATEGORY_KEY, rest_models.PayloadSchemaType.KEYWORD),
            (CREATED_KEY, rest_models.PayloadSchemaType.FLOAT),
        ):
            self._client.create_payload_index(
                collection_name=self.index_name,
                field_name=key,
                field_schema=schema,
            )
        logger.info("Created collection %s (dim=%d)", self.index_name, dim)
        return True

    def upsert(self, records: Iterable[DecisionRecord]) -> int:
        """Write embedded records into the index. Records without an embedding are skipped."""
        points = [
            rest_models.PointStruct(
                id=point_id(r.workspace_id, r.id),
                vector=r.embedding,
                payload=record_payload(r),
            )
            for r in records
            if r.has_embedding
        ]
        if not points:
            return 0

        self._ensure_exists()
        try:
            self._client.upsert(collection_name=self.index_name, points=points)
        except Exception as e:
            raise ProviderUnavailable(f"Vector upsert failed: {e}", provider="qdrant") from e
        return len(points)

    def delete(self, workspace_id: str, record_id: int) -> None:
        self._ensure_exists()
        self._client.delete(
            collection_name=self.index_name,
            points_selector=rest_models.PointIdsList(points=[point_id(workspace_id, record_id)]),
        )

    def _ensure_exists(self) -> None:
        if not self.exists():
            raise IndexUnavailable(self.index_name)
