"""
Multi-criteria scoring for research records and generated candidates.

Every sub-score is clamped to 0-10 before weighting and the composite is the
weighted sum. Scoring functions read only their inputs (no clock, no
randomness), so the same subject always gets the same score.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
import math

from ideation_system.config.settings import (
    DEFAULT_SOURCE_QUALITY,
    EVIDENCE_WEIGHTS,
    QUALITY_WEIGHTS,
    RISK_TIERS,
    SOURCE_QUALITY,
    validate_weights,
)
from ideation_system.models import Candidate, RawResult, ScoredRecord, Task
from ideation_system.text.similarity import keyword_coverage

SubScoreFn = Callable[[Any], float]


def clamp(value: float, lo: float = 0.0, hi: float = 10.0) -> float:
    """Clamp to [lo, hi]; NaN counts as lo."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return lo
    return max(lo, min(hi, float(value)))


@dataclass(frozen=True)
class ScoreBreakdown:
    sub_scores: Dict[str, float]
    composite: float

    def normalized(self, weights: Mapping[str, float]) -> float:
        """Composite rescaled to 0-10 by the total weight."""
        total = sum(weights.values())
        if total <= 0:
            return 0.0
        return clamp(self.composite / total)


def score(subject: Any, weights: Mapping[str, float], sub_score_fns: Mapping[str, SubScoreFn]) -> ScoreBreakdown:
    """Weighted sum of clamped sub-scores. Weights need not sum to 1."""
    validate_weights(dict(weights), names=sub_score_fns.keys())
    sub_scores = {name: clamp(fn(subject)) for name, fn in sub_score_fns.items()}
    composite = sum(sub_scores[name] * w for name, w in weights.items())
    return ScoreBreakdown(sub_scores=sub_scores, composite=composite)


class MultiCriteriaScorer:
    """Weights and sub-score functions validated once, applied many times."""

    def __init__(self, weights: Mapping[str, float], sub_score_fns: Mapping[str, SubScoreFn]):
        validate_weights(dict(weights), names=sub_score_fns.keys())
        self.weights = dict(weights)
        self.sub_score_fns = dict(sub_score_fns)

    def __call__(self, subject: Any) -> ScoreBreakdown:
        return score(subject, self.weights, self.sub_score_fns)

    def normalized(self, subject: Any) -> float:
        return self(subject).normalized(self.weights)


# Evidence scoring

def relevance_score(text: str, keywords) -> float:
    """Share of task keywords found in the text, on a 0-10 scale."""
    return clamp(keyword_coverage(text, keywords) * 10)


def source_quality_score(source_name: str) -> float:
    return clamp(SOURCE_QUALITY.get((source_name or "").lower(), DEFAULT_SOURCE_QUALITY) * 10)


def depth_score(content: str) -> float:
    """Roughly 10 at 300 words of content."""
    words = len((content or "").split())
    return clamp(words / 30.0)


def recency_score(record: RawResult) -> float:
    """Age of the record relative to when it was extracted."""
    if record.published_at is None:
        return 5.0
    published = record.published_at
    extracted = record.extracted_at
    if (published.tzinfo is None) != (extracted.tzinfo is None):
        published = published.replace(tzinfo=extracted.tzinfo)
    days = (extracted - published).days
    if days <= 30:
        return 10.0
    elif days <= 90:
        return 8.0
    elif days <= 180:
        return 6.0
    elif days <= 365:
        return 4.0
    return 2.0


def confidence_tier(normalized_score: float) -> str:
    if normalized_score >= 7.0:
        return "high"
    if normalized_score >= 4.0:
        return "medium"
    return "low"


def evidence_scorer(task: Task, weights: Optional[Mapping[str, float]] = None) -> MultiCriteriaScorer:
    keywords = list(task.keywords) or task.topic.split()
    return MultiCriteriaScorer(weights or EVIDENCE_WEIGHTS, {
        "relevance": lambda r: relevance_score(f"{r.title} {r.content}", keywords),
        "source_quality": lambda r: source_quality_score(r.source_name),
        "depth": lambda r: depth_score(r.content),
        "recency": recency_score,
    })


def score_record(raw: RawResult, task: Task, weights: Optional[Mapping[str, float]] = None) -> ScoredRecord:
    """Score a raw result against the task that produced it."""
    scorer = evidence_scorer(task, weights)
    breakdown = scorer(raw)
    quality = breakdown.normalized(scorer.weights)
    return ScoredRecord(
        **raw.model_dump(include=set(RawResult.model_fields)),
        relevance=breakdown.sub_scores["relevance"],
        quality=quality,
        composite_score=breakdown.composite,
        confidence_tier=confidence_tier(quality),
        sub_scores=breakdown.sub_scores,
    )


# Candidate scoring

_ORIGINALITY_BY_TIER = {"conservative": 4.0, "balanced": 6.0, "challenging": 8.0, "disruptive": 9.0}
_RISK_BALANCE_BY_TIER = {"conservative": 8.0, "balanced": 10.0, "challenging": 6.0, "disruptive": 4.0}
_CONFIDENCE_POINTS = {"high": 8.0, "medium": 6.0, "low": 4.0}


def market_value_score(value: float) -> float:
    """Log scale: 1e8 -> 1, 1e10 -> 5, 1e12 -> 9."""
    if not value or value <= 0:
        return 0.0
    return clamp(2.0 * (math.log10(value) - 7.5))


_MARKET_FIT_POINTS = {"excellent": 2.0, "good": 1.0}


def estimate_feasibility(confidence: str, market_fit: str = "") -> float:
    """Base 5, +2/+1 for high/medium confidence, +2/+1 for excellent/good market fit, capped at 10."""
    base = 5.0
    if confidence == "high":
        base += 2.0
    elif confidence == "medium":
        base += 1.0
    return clamp(base + _MARKET_FIT_POINTS.get((market_fit or "").lower(), 0.0))


def competitive_advantage_score(c: Candidate) -> float:
    explicit = c.attributes.get("competitive_advantage_score")
    if isinstance(explicit, (int, float)):
        return float(explicit)
    return _CONFIDENCE_POINTS.get(c.confidence, 5.0)


CANDIDATE_SUB_SCORES: Dict[str, SubScoreFn] = {
    "originality": lambda c: _ORIGINALITY_BY_TIER.get(c.risk_tier, 5.0),
    "feasibility": lambda c: c.feasibility,
    "market_viability": lambda c: market_value_score(c.estimated_value),
    "synergy_alignment": lambda c: c.synergy_score,
    "competitive_advantage": competitive_advantage_score,
    "risk_balance": lambda c: _RISK_BALANCE_BY_TIER.get(c.risk_tier, 5.0),
}

candidate_scorer = MultiCriteriaScorer(QUALITY_WEIGHTS, CANDIDATE_SUB_SCORES)


def candidate_quality(candidate: Candidate) -> ScoreBreakdown:
    return candidate_scorer(candidate)


def risk_rank(tier: str) -> int:
    """Position in the risk order; unknown tiers rank past the boldest."""
    try:
        return RISK_TIERS.index(tier)
    except ValueError:
        return len(RISK_TIERS)
