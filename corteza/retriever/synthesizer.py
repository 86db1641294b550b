"""
Synthesizer

Turns categorized search results into a short conversational markdown answer.

The LLM path is best-effort: when no LLM is configured or the call fails for
any reason, a deterministic template is rendered instead, so the same query
and results always produce the same fallback text.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..common.errors import CortezaError
from ..common.llm_client import LLMClient
from ..common.schemas.decision_record import ScoredCandidate
from .categorizer import CategorizedResults

logger = logging.getLogger("corteza.retriever.synthesizer")


@dataclass
class SynthesizedAnswer:
    """Answer text and whether an LLM wrote it"""
    answer: str
    used_llm: bool = False


SYNTHESIS_SYSTEM = (
    "You are a helpful assistant that answers questions about a team's logged "
    "decisions. Only use the decision records you are given. Do not make up "
    "decisions, people, or dates."
)

SYNTHESIS_PROMPT = """User Question: "{query}"

Matching decision records ({count} total), grouped by relevance:

{records}

Write a conversational answer in markdown, at most 400 words:
- Start by stating how many matching decisions were found
- Group them by relevance, starting with the most relevant tier
- Refer to each decision by its number, like "Decision #12"
- End by offering more details about any of the decisions

Your Answer:"""

NO_RESULTS_TEMPLATE = (
    'I couldn\'t find any decisions matching "{query}". '
    "Try different keywords or check the decision type filter."
)

CLOSING_LINE = "Would you like more details about any of these decisions?"

TIER_HEADINGS = (
    ("highly_relevant", "**Highly Relevant** (85%+ match):"),
    ("relevant", "**Relevant** (70-84% match):"),
    ("somewhat_relevant", "**Somewhat Relevant** (60-69% match):"),
    ("marginal", "**Other Matches** (below 60% match):"),
)

PROMPT_TIER_LABELS = {
    "highly_relevant": "Highly relevant (85%+)",
    "relevant": "Relevant (70-84%)",
    "somewhat_relevant": "Somewhat relevant (60-69%)",
    "marginal": "Other matches (below 60%)",
}


def _plural(count: int) -> str:
    return "decision" if count == 1 else "decisions"


def _format_bullet(candidate: ScoredCandidate) -> str:
    record = candidate.record
    creator = record.creator or "unknown"
    return (
        f"- **Decision #{record.id}**: {record.text}\n"
        f"  _{record.kind.value} • {creator} • {record.created_at.date().isoformat()}_"
    )


def format_results_simple(query: str, results: CategorizedResults) -> str:
    """Deterministic markdown summary used when the LLM is unavailable"""
    if results.is_empty:
        return NO_RESULTS_TEMPLATE.format(query=query)

    count = len(results.all)
    sections = [f'Found **{count} {_plural(count)}** matching "{query}":']

    for attr, heading in TIER_HEADINGS:
        tier: List[ScoredCandidate] = getattr(results, attr)
        if not tier:
            continue
        bullets = "\n".join(_format_bullet(c) for c in tier)
        sections.append(f"{heading}\n\n{bullets}")

    sections.append(CLOSING_LINE)
    return "\n\n".join(sections)


def format_records_for_prompt(results: CategorizedResults) -> str:
    blocks = []
    for attr, label in PROMPT_TIER_LABELS.items():
        tier: List[ScoredCandidate] = getattr(results, attr)
        if not tier:
            continue
        lines = [f"{label}:"]
        for c in tier:
            r = c.record
            line = (
                f"#{r.id} [{c.score * 100:.0f}%] {r.kind.value} by {r.creator or 'unknown'} "
                f"on {r.created_at.date().isoformat()}: \"{r.text}\""
            )
            if r.tags:
                line += f" (tags: {', '.join(r.tags)})"
            if r.epic_ref:
                line += f" (epic: {r.epic_ref})"
            lines.append(line)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


class Synthesizer:
    """
    Conversational summaries of search results.

    Falls back to simple formatting if the LLM is not available.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        temperature: float = 0.3,
        max_tokens: int = 1024,
    ):
        self._llm = llm_client
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def synthesize(self, query: str, results: CategorizedResults) -> SynthesizedAnswer:
        if results.is_empty:
            return SynthesizedAnswer(answer=NO_RESULTS_TEMPLATE.format(query=query))

        if self.has_llm:
            try:
                return SynthesizedAnswer(answer=self._synthesize_with_llm(query, results), used_llm=True)
            except CortezaError as e:
                logger.warning("LLM synthesis failed: %s", e)
            except Exception as e:
                logger.warning("LLM synthesis failed unexpectedly: %s", e, exc_info=True)

        return SynthesizedAnswer(answer=format_results_simple(query, results))

    def _synthesize_with_llm(self, query: str, results: CategorizedResults) -> str:
        prompt = SYNTHESIS_PROMPT.format(
            query=query,
            count=len(results.all),
            records=format_records_for_prompt(results),
        )
        answer = self._llm.generate(
            prompt,
            system=SYNTHESIS_SYSTEM,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if not answer:
            raise CortezaError("LLM returned an empty answer")
        return answer
