"""
Search Evaluation Harness

Scores hybrid search against labelled cases:

- contains_expected: fraction of expected decision ids present in the output
  (for negative cases with no expected ids, 1.0 only if the output is empty)
- no_false_positives: 0.0 if any excluded id is present
- top_result_correct: 1.0 if the expected top id ranks first

Also carries an extraction regression check: for a transcript and a watched
phrase, the highest confidence among decision suggestions mentioning it.

Usage:
    python -m corteza.retriever.evaluation evals/search-accuracy.json --workspace T123
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..common.schemas.decision_record import RecordKind, SearchFilter
from .hybrid_search import HybridSearcher, build_hybrid_searcher

logger = logging.getLogger("corteza.retriever.evaluation")


# ============================================================================
# Cases
# ============================================================================

@dataclass
class SearchEvalCase:
    id: str
    query: str
    expected_ids: List[int] = field(default_factory=list)
    exclude_ids: List[int] = field(default_factory=list)
    top_result_id: Optional[int] = None
    limit: int = 10
    rationale: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchEvalCase":
        expected = data.get("expected", {})
        return cls(
            id=str(data.get("id", data["query"])),
            query=data["query"],
            expected_ids=list(expected.get("decision_ids", [])),
            exclude_ids=list(expected.get("exclude_ids", [])),
            top_result_id=expected.get("top_result_id"),
            limit=data.get("limit", 10),
            rationale=data.get("rationale", ""),
        )


@dataclass
class ExtractionEvalCase:
    id: str
    transcript: str
    watch_phrase: str
    min_confidence: float = 0.6

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionEvalCase":
        return cls(
            id=str(data.get("id", data["watch_phrase"])),
            transcript=data["transcript"],
            watch_phrase=data["watch_phrase"],
            min_confidence=data.get("min_confidence", 0.6),
        )


def load_cases(path: Path) -> List[Dict[str, Any]]:
    """Read ``{"test_cases": [...]}`` (or a bare list) from a JSON file"""
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        return list(data.get("test_cases", []))
    return list(data)


# ============================================================================
# Scorers
# ============================================================================

def contains_expected(output_ids: Sequence[int], expected_ids: Sequence[int]) -> float:
    if not expected_ids:
        return 1.0 if not output_ids else 0.0
    found = [i for i in expected_ids if i in output_ids]
    return len(found) / len(expected_ids)


def no_false_positives(output_ids: Sequence[int], exclude_ids: Sequence[int]) -> float:
    if not exclude_ids:
        return 1.0
    return 0.0 if any(i in exclude_ids for i in output_ids) else 1.0


def top_result_correct(output_ids: Sequence[int], top_result_id: Optional[int]) -> float:
    if top_result_id is None:
        return 1.0
    if not output_ids:
        return 0.0
    return 1.0 if output_ids[0] == top_result_id else 0.0


SCORERS = ("contains_expected", "no_false_positives", "top_result_correct")


@dataclass
class CaseResult:
    case_id: str
    output_ids: List[int]
    search_method: str
    scores: Dict[str, float]

    @property
    def passed(self) -> bool:
        return all(s == 1.0 for s in self.scores.values())


@dataclass
class EvalSummary:
    results: List[CaseResult] = field(default_factory=list)

    @property
    def averages(self) -> Dict[str, float]:
        if not self.results:
            return {name: 0.0 for name in SCORERS}
        return {
            name: sum(r.scores[name] for r in self.results) / len(self.results)
            for name in SCORERS
        }

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)


def score_case(case: SearchEvalCase, output_ids: List[int], search_method: str) -> CaseResult:
    return CaseResult(
        case_id=case.id,
        output_ids=output_ids,
        search_method=search_method,
        scores={
            "contains_expected": contains_expected(output_ids, case.expected_ids),
            "no_false_positives": no_false_positives(output_ids, case.exclude_ids),
            "top_result_correct": top_result_correct(output_ids, case.top_result_id),
        },
    )


# ============================================================================
# Runners
# ============================================================================

async def run_search_eval(
    searcher: HybridSearcher,
    cases: Sequence[SearchEvalCase],
    workspace_id: str,
) -> EvalSummary:
    summary = EvalSummary()
    for case in cases:
        result = await searcher.search(
            case.query,
            SearchFilter(workspace_id=workspace_id),
            limit=case.limit,
        )
        case_result = score_case(case, result.results.ids(), result.search_method.value)
        summary.results.append(case_result)
        logger.info(
            "[%s] %s via %s: %s",
            "PASS" if case_result.passed else "FAIL",
            case.id, case_result.search_method, case_result.scores,
        )
    return summary


def max_watched_confidence(candidates, watch_phrase: str) -> float:
    """Highest confidence among decision candidates whose text mentions ``watch_phrase``"""
    needle = watch_phrase.lower()
    confidences = [
        c.confidence for c in candidates
        if c.kind == RecordKind.DECISION and needle in c.text.lower()
    ]
    return max(confidences, default=0.0)


def run_extraction_eval(extractor, cases: Sequence[ExtractionEvalCase], workspace_id: str) -> Dict[str, float]:
    """Per-case max watched confidence. ``extractor`` is a TranscriptExtractor."""
    scores = {}
    for case in cases:
        outcome = extractor.extract(case.transcript, workspace_id)
        scores[case.id] = max_watched_confidence(outcome.candidates, case.watch_phrase)
        logger.info(
            "[%s] %s: max confidence %.2f (threshold %.2f)",
            "PASS" if scores[case.id] >= case.min_confidence else "FAIL",
            case.id, scores[case.id], case.min_confidence,
        )
    return scores


# ============================================================================
# CLI
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run search accuracy evaluations")
    parser.add_argument(
        "cases", type=Path, nargs="?", default=None,
        help="JSON file with search test cases (default: evals/search-accuracy.json)",
    )
    parser.add_argument("--workspace", required=True, help="Workspace to search in")
    args = parser.parse_args(argv)

    from dotenv import load_dotenv
    from ..common.config import EVALS_DIR, load_config
    from ..common.embedding_service import create_embedding_service
    from ..common.record_store import RecordStore
    from ..common.vector_index import VectorIndexClient

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = load_config()
    embedding = create_embedding_service(config.embedding)
    index = VectorIndexClient.from_config(config.vector_index, config.storage) if embedding is not None else None
    searcher = build_hybrid_searcher(config, RecordStore(config.storage.records_path), embedding, index)
    cases_path = args.cases or EVALS_DIR / "search-accuracy.json"
    cases = [SearchEvalCase.from_dict(c) for c in load_cases(cases_path)]

    print(f"[Eval] Running {len(cases)} search case(s) in workspace {args.workspace}")
    summary = asyncio.run(run_search_eval(searcher, cases, args.workspace))

    for name, value in summary.averages.items():
        print(f"[Eval] {name}: {value:.2f}")
    print(f"[Eval] {summary.passed}/{len(summary.results)} case(s) passed")
    return 0 if summary.passed == len(summary.results) else 1


if __name__ == "__main__":
    sys.exit(main())
