"""
Critic: scores candidates on four dimensions worth 100 points in total.

market_potential (35), strategic_fit (35), competitive_advantage (15) and
profitability (15). A service answer is clamped per dimension; without a
usable answer the heuristic scorer below is used instead.
"""

from __future__ import annotations
from typing import Any, Dict, Mapping
import logging

from ideation_system.config.settings import CRITIC_DIMENSIONS
from ideation_system.exceptions import ServiceDataError, ServiceError
from ideation_system.execution.retry import NO_RETRY, RetryPolicy, with_retry
from ideation_system.llm.parsing import Fallback, ParseResult, parse_or_fallback
from ideation_system.models import Candidate, EvaluationRecord
from ideation_system.monitoring_metrics import GENERATION_FALLBACKS
from ideation_system.scoring import MultiCriteriaScorer, competitive_advantage_score, clamp, market_value_score

logger = logging.getLogger(__name__)

DEFAULT_PASSING_SCORE = 70.0


def _market_potential(c: Candidate) -> float:
    target = str(c.attributes.get("target_market", "") or "")
    reach = 10.0 if len(target) > 20 else 5.0
    return (market_value_score(c.estimated_value) + reach) / 2


def _profitability(c: Candidate) -> float:
    return (market_value_score(c.estimated_value) + c.feasibility) / 2


# Sub-scores are 0-10; weights turn them into dimension points
heuristic_scorer = MultiCriteriaScorer(
    {dim: max_points / 10.0 for dim, max_points in CRITIC_DIMENSIONS.items()},
    {
        "market_potential": _market_potential,
        "strategic_fit": lambda c: c.synergy_score,
        "competitive_advantage": competitive_advantage_score,
        "profitability": _profitability,
    },
)


def heuristic_points(candidate: Candidate) -> Dict[str, float]:
    breakdown = heuristic_scorer(candidate)
    return {dim: breakdown.sub_scores[dim] * w for dim, w in heuristic_scorer.weights.items()}


def points_from_payload(payload: Any, dimensions: Mapping[str, float] = CRITIC_DIMENSIONS) -> Dict[str, float]:
    """Per-dimension points from {"scores": {...}}, each clamped to [0, max]."""
    scores = payload.get("scores") if isinstance(payload, dict) else None
    if not isinstance(scores, dict):
        raise ServiceDataError("answer has no scores object")
    points = {}
    for dim, max_points in dimensions.items():
        value = scores.get(dim)
        if value is None:
            raise ServiceDataError(f"missing score for {dim}")
        points[dim] = clamp(float(value), 0.0, max_points)
    return points


class Critic:
    def __init__(self, llm=None, retry_policy: RetryPolicy = NO_RETRY, passing_score: float = DEFAULT_PASSING_SCORE):
        self.llm = llm
        self.retry_policy = retry_policy
        self.passing_score = passing_score

    def build_prompt(self, candidate: Candidate) -> str:
        dims = "\n".join(f"- {d}: 0-{m:g}" for d, m in CRITIC_DIMENSIONS.items())
        return (
            "Evaluate this business idea.\n"
            f"Title: {candidate.title}\n"
            f"Description: {candidate.description}\n"
            f"Risk tier: {candidate.risk_tier}; scale: {candidate.scale_tier}; "
            f"estimated value: {candidate.estimated_value:,.0f}; time to market: {candidate.time_to_market}\n"
            f"Score each dimension:\n{dims}\n"
            "Return JSON: {\"scores\": {<dimension>: <points>}, \"reasons\": [<short strings>]}"
        )

    async def _points(self, candidate: Candidate) -> ParseResult:
        fallback = lambda: (heuristic_points(candidate), [])
        if self.llm is None:
            return Fallback(fallback(), reason="no text-generation service configured")
        try:
            raw, _ = await with_retry(lambda: self.llm.generate(self.build_prompt(candidate)), self.retry_policy)
        except ServiceError as e:
            logger.warning(f"Critic call failed for {candidate.id}: {e}")
            GENERATION_FALLBACKS.labels(stage="critic").inc()
            return Fallback(fallback(), reason=str(e))

        def parse(payload):
            reasons = payload.get("reasons") if isinstance(payload, dict) else None
            if not isinstance(reasons, list):
                reasons = []
            return points_from_payload(payload), [str(r) for r in reasons if r][:5]

        return parse_or_fallback(raw, parse, fallback, stage="critic")

    async def evaluate(self, candidate: Candidate, round_number: int) -> EvaluationRecord:
        result = await self._points(candidate)
        points, reasons = result.value
        reasons = list(reasons)
        if result.is_fallback:
            reasons.append(f"heuristic evaluation ({result.reason})")
        total = sum(points.values())
        passed = total >= self.passing_score
        if not passed:
            reasons.append(f"total {total:.1f} below passing score {self.passing_score:g}")
        return EvaluationRecord(
            subject_id=candidate.id,
            round_number=round_number,
            sub_scores=points,
            composite_score=total,
            passed=passed,
            reasons=tuple(reasons),
        )
