"""
Corteza Server

FastAPI server for decision search and transcript capture.

Endpoints:
- GET /health: Health check
- POST /api/semantic-search: Hybrid search with conversational summary
- GET /api/search-suggestions: Tag / epic autocomplete
- POST /api/transcripts/extract: Extract candidate decisions from a transcript
- GET /review: Get pending suggestions
- GET /review/{item_id}: Get one suggestion
- POST /review/{item_id}: Approve, edit and approve, or reject a suggestion

Search pipeline:
1. Semantic search (embed query, pre-filtered vector search)
2. Keyword fallback on error or no results
3. Relevance tiers
4. Conversational summary (LLM, or deterministic template)
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, BackgroundTasks, Query
from pydantic import BaseModel, Field

from .common.config import LOGS_DIR, CortezaConfig, load_config, ensure_directories
from .common.embedding_service import create_embedding_service
from .common.errors import ConfigurationError, CortezaError, ProviderUnavailable
from .common.feedback_store import FeedbackStore
from .common.llm_client import LLMClient
from .common.record_store import RecordStore
from .common.vector_index import VectorIndexClient
from .common.schemas.decision_record import DecisionRecord, RecordKind, SearchFilter
from .common.schemas.feedback import FeedbackAction
from .common.schemas.search import CategorizedPayload, SearchRequest, SearchResponse
from .retriever.hybrid_search import HybridSearcher, build_hybrid_searcher
from .retriever.indexer import EmbeddingIndexer
from .retriever.synthesizer import Synthesizer
from .scribe.review_queue import ReviewQueue
from .scribe.transcript_extractor import TranscriptExtractor
from .scribe.validation import validate_transcript_content

logger = logging.getLogger("corteza.server")


# Global state
config: Optional[CortezaConfig] = None
records: Optional[RecordStore] = None
feedback: Optional[FeedbackStore] = None
hybrid_searcher: Optional[HybridSearcher] = None
synthesizer: Optional[Synthesizer] = None
extractor: Optional[TranscriptExtractor] = None
review_queue: Optional[ReviewQueue] = None
indexer: Optional[EmbeddingIndexer] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, records, feedback, hybrid_searcher, synthesizer, extractor, review_queue, indexer

    print("[Corteza] Starting up...")

    load_dotenv()
    config = load_config()
    ensure_directories(config)
    print(f"[Corteza] Loaded config (state: {config.state})")

    records = RecordStore(config.storage.records_path)
    feedback = FeedbackStore(config.storage.feedback_path)
    print(f"[Corteza] Record store: {records.count()} decision(s)")

    embedding = create_embedding_service(config.embedding)
    index = None
    if embedding is not None:
        index = VectorIndexClient.from_config(config.vector_index, config.storage)
        indexer = EmbeddingIndexer(embedding, index, records, batch_size=config.embedding.batch_size)
        try:
            indexer.ensure_index()
        except CortezaError as e:
            print(f"[Corteza] Warning: vector index unavailable: {e}")
        print(f"[Corteza] Semantic search ready ({config.embedding.model})")
    else:
        print("[Corteza] Embeddings disabled, keyword search only")

    hybrid_searcher = build_hybrid_searcher(config, records, embedding, index)

    llm = LLMClient.from_config(config.llm)
    synthesizer = Synthesizer(
        llm,
        temperature=config.search.summary_temperature,
        max_tokens=config.search.summary_max_tokens,
    )
    extractor = TranscriptExtractor(
        llm,
        feedback=feedback,
        few_shot_limit=config.extraction.few_shot_limit,
        rate_limit_delay=config.extraction.rate_limit_delay,
        temperature=config.extraction.temperature,
        max_tokens=config.extraction.max_tokens,
    )
    if llm.is_available:
        print(f"[Corteza] LLM ready ({llm.provider}/{llm.model})")
    else:
        print("[Corteza] LLM not available (template summaries, no transcript extraction)")

    review_queue = ReviewQueue(records, feedback, config.storage.review_queue_path)
    print(f"[Corteza] Review queue: {review_queue.get_stats()['pending']} pending")

    print("[Corteza] Ready")

    yield

    print("[Corteza] Shutting down...")


app = FastAPI(
    title="Corteza",
    description="Decision search and transcript capture",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class TranscriptRequest(BaseModel):
    """Transcript extraction request"""
    transcript: str
    workspace_id: str = Field(..., min_length=1)
    source: str = ""
    creator: str = ""


class ReviewSubmission(BaseModel):
    """Review submission request"""
    action: FeedbackAction
    text: Optional[str] = Field(None, min_length=1)  # edits, for edited_approved
    kind: Optional[RecordKind] = None
    tags: Optional[list] = None
    rejection_reason: Optional[str] = None
    reviewer: Optional[str] = None


# =============================================================================
# Background Tasks
# =============================================================================

def index_record(record: DecisionRecord):
    """Embed and index a newly approved record"""
    if indexer is None:
        print(f"[Corteza] Cannot index decision #{record.id} (embeddings disabled)")
        return

    try:
        report = indexer.index_records([record])
        if report.indexed:
            print(f"[Corteza] Indexed decision #{record.id}")
        else:
            print(f"[Corteza] Decision #{record.id} not indexed; backfill will retry")
    except CortezaError as e:
        print(f"[Corteza] Error indexing decision #{record.id}: {e}")


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "corteza",
        "state": config.state if config else "active",
        "initialized": hybrid_searcher is not None,
        "semantic_search": hybrid_searcher.semantic_enabled if hybrid_searcher else False,
        "llm_available": synthesizer.has_llm if synthesizer else False,
        "decisions": records.count() if records else 0,
        "pending_reviews": review_queue.get_stats()["pending"] if review_queue else 0,
    }


@app.post("/api/semantic-search")
async def semantic_search(request: SearchRequest):
    """Hybrid search with an optional conversational summary"""
    if hybrid_searcher is None or synthesizer is None:
        raise HTTPException(status_code=503, detail="Search not initialized")

    logger.info(
        "Search request %r (workspace=%s, conversational=%s)",
        request.query, request.workspace_id, request.conversational,
    )

    search_filter = SearchFilter(
        workspace_id=request.workspace_id,
        kind=request.kind,
        category=request.category,
        date_from=request.date_from,
        date_to=request.date_to,
    )

    try:
        result = await hybrid_searcher.search(
            request.query,
            search_filter,
            limit=request.limit,
            min_score=request.min_score,
        )
    except Exception as e:
        logger.error("Search failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Search failed: {e}")

    answer = None
    if request.conversational:
        summary = await asyncio.to_thread(synthesizer.synthesize, request.query, result.results)
        answer = summary.answer

    response = SearchResponse(
        query=request.query,
        response=answer,
        decisions=[c.to_dict() for c in result.results.all],
        categorized=CategorizedPayload(
            highly_relevant=[c.to_dict() for c in result.results.highly_relevant],
            relevant=[c.to_dict() for c in result.results.relevant],
            somewhat_relevant=[c.to_dict() for c in result.results.somewhat_relevant],
        ),
        search_method=result.search_method.value,
        results_count=result.count,
    )
    return response.model_dump(by_alias=True)


@app.get("/api/search-suggestions")
async def search_suggestions(
    q: str = Query(..., min_length=1),
    workspace_id: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=50),
):
    """Autocomplete from existing tags and epic refs"""
    if records is None:
        raise HTTPException(status_code=503, detail="Record store not initialized")

    return {
        "success": True,
        "suggestions": records.suggest(workspace_id, q, limit=limit),
    }


@app.post("/api/transcripts/extract")
def extract_transcript(request: TranscriptRequest):
    """Extract candidate decisions and queue them for review"""
    if extractor is None or review_queue is None:
        raise HTTPException(status_code=503, detail="Extraction not initialized")
    if config is not None and config.state == "dormant":
        raise HTTPException(status_code=503, detail="Transcript capture is paused (state: dormant)")
    if not extractor.is_available:
        raise HTTPException(status_code=503, detail="LLM not configured")

    error = validate_transcript_content(request.transcript)
    if error:
        raise HTTPException(status_code=400, detail=error)

    try:
        outcome = extractor.extract(request.transcript, request.workspace_id)
    except (ConfigurationError, ProviderUnavailable) as e:
        logger.error("Transcript extraction failed: %s", e)
        raise HTTPException(status_code=503, detail=f"Extraction failed: {e}")

    items = review_queue.add_suggestions(
        request.workspace_id,
        outcome.candidates,
        source=request.source,
        creator=request.creator,
    )

    return {
        "success": True,
        "suggestions": [
            {"item_id": item.item_id, **item.suggestion}
            for item in items
        ],
        "rejected": len(outcome.rejections),
        "usedExamples": outcome.used_few_shot,
        "model": outcome.model,
        "processingTime": outcome.processing_ms,
    }


@app.get("/review")
async def get_reviews(workspace_id: Optional[str] = None):
    """Get pending reviews"""
    if not review_queue:
        raise HTTPException(status_code=503, detail="Review queue not initialized")

    pending = review_queue.get_pending(workspace_id)

    return {
        "pending_count": len(pending),
        "items": [
            {
                "item_id": item.item_id,
                "workspace_id": item.workspace_id,
                "created_at": item.created_at,
                "text": item.suggestion.get("text"),
                "kind": item.suggestion.get("kind"),
                "confidence": item.suggestion.get("confidence"),
            }
            for item in pending
        ]
    }


@app.get("/review/{item_id}")
async def get_review_item(item_id: str):
    """Get a specific review item"""
    if not review_queue:
        raise HTTPException(status_code=503, detail="Review queue not initialized")

    item = review_queue.get_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")

    return item.to_dict()


@app.post("/review/{item_id}")
async def submit_review(item_id: str, submission: ReviewSubmission, background_tasks: BackgroundTasks):
    """Submit review for an item"""
    if not review_queue:
        raise HTTPException(status_code=503, detail="Review queue not initialized")

    edits: Dict[str, Any] = {
        "text": submission.text,
        "kind": submission.kind,
        "tags": submission.tags,
    }

    try:
        record = review_queue.submit_review(
            item_id,
            submission.action,
            edits=edits,
            rejection_reason=submission.rejection_reason,
            reviewer=submission.reviewer,
        )
    except KeyError:
        raise HTTPException(status_code=404, detail="Item not found")
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if record is None:
        return {"status": "rejected", "item_id": item_id}

    background_tasks.add_task(index_record, record)

    return {
        "status": "approved",
        "item_id": item_id,
        "decision_id": record.id,
        "reviewed_at": datetime.now(timezone.utc).isoformat(),
    }


# =============================================================================
# CLI Entry Point
# =============================================================================

def configure_logging(log_dir: Optional[Path] = None) -> Path:
    """Log to stderr and append to <log_dir>/corteza.log (default ~/.corteza/logs)"""
    log_dir = log_dir or LOGS_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "corteza.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8", mode="a"),
            logging.StreamHandler(),
        ],
    )
    return log_file


def run_server():
    """Run the Corteza server"""
    import uvicorn

    load_dotenv()
    log_file = configure_logging()
    print(f"[Corteza] Logging to {log_file}")

    config = load_config()
    port = config.server.port

    print(f"[Corteza] Starting server on port {port}")
    uvicorn.run(
        "corteza.server:app",
        host=config.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
