"""
Relevance Categorizer

Buckets scored candidates into relevance tiers. Tiers are computed on
demand and never stored.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

from ..common.schemas.decision_record import ScoredCandidate


@dataclass(frozen=True)
class RelevanceThresholds:
    """Lower bounds (inclusive) of each tier"""
    highly_relevant: float = 0.85
    relevant: float = 0.70
    somewhat_relevant: float = 0.60


DEFAULT_THRESHOLDS = RelevanceThresholds()


@dataclass
class CategorizedResults:
    """
    Candidates partitioned by score.

    ``marginal`` holds candidates that passed min_score but sit below the
    lowest tier, so every candidate in ``all`` lands in exactly one bucket.
    """
    highly_relevant: List[ScoredCandidate] = field(default_factory=list)
    relevant: List[ScoredCandidate] = field(default_factory=list)
    somewhat_relevant: List[ScoredCandidate] = field(default_factory=list)
    marginal: List[ScoredCandidate] = field(default_factory=list)
    all: List[ScoredCandidate] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.all)

    @property
    def is_empty(self) -> bool:
        return not self.all

    def ids(self) -> List[int]:
        return [c.id for c in self.all]


def categorize(
    candidates: Sequence[ScoredCandidate],
    thresholds: RelevanceThresholds = DEFAULT_THRESHOLDS,
) -> CategorizedResults:
    """Partition candidates into tiers, keeping input order within each tier"""
    results = CategorizedResults(all=list(candidates))

    for candidate in candidates:
        if candidate.score >= thresholds.highly_relevant:
            results.highly_relevant.append(candidate)
        elif candidate.score >= thresholds.relevant:
            results.relevant.append(candidate)
        elif candidate.score >= thresholds.somewhat_relevant:
            results.somewhat_relevant.append(candidate)
        else:
            results.marginal.append(candidate)

    return results
