"""
Idea generation per risk tier.

With a text-generation service configured, each tier is one prompt asking
for JSON ideas grounded in the research records. Without one, or when the
answer cannot be used, ideas are derived from the best research records.
"""

from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

from pydantic import ValidationError as PydanticValidationError

from ideation_system.config.settings import RISK_TIERS, SCALE_TIERS
from ideation_system.exceptions import ServiceDataError, ServiceError
from ideation_system.execution.retry import NO_RETRY, RetryPolicy, with_retry
from ideation_system.llm.parsing import Fallback, ParseResult, parse_or_fallback
from ideation_system.models import Candidate, ScoredRecord
from ideation_system.monitoring_metrics import GENERATION_FALLBACKS
from ideation_system.scoring import clamp, estimate_feasibility
from ideation_system.selection.tier_balance import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_IDEA_COUNT = 6
MIN_IDEA_COUNT = 4
MAX_IDEA_COUNT = 8
RESEARCH_CONTEXT_LIMIT = 12

_SCALE_VALUE = {
    "startup": 8e9,
    "mid_market": 1.5e10,
    "enterprise": 3e10,
    "mega_corp": 8e10,
}
# Roughly follows SCALE_TIER_DISTRIBUTION
_SCALE_ROTATION = ("enterprise", "mid_market", "enterprise", "mega_corp", "enterprise", "mid_market", "startup")
_RISK_MULTIPLIER = {"conservative": 0.8, "balanced": 1.0, "challenging": 1.5, "disruptive": 2.5}
_TIME_TO_MARKET = {
    "conservative": "12 months",
    "balanced": "18 months",
    "challenging": "2 years",
    "disruptive": "3 years",
}
_TITLE_PREFIX = {
    "conservative": "Managed service for",
    "balanced": "Platform for",
    "challenging": "New venture in",
    "disruptive": "Category-defining play in",
}


def calculate_target_count(
    base: int = DEFAULT_IDEA_COUNT,
    innovation_level: str = "balanced",
    distribution: Optional[Mapping[str, float]] = None,
) -> int:
    """Scale the base count for disruptive requests, clamped to [4, 8]."""
    complexity = 1.5 if innovation_level == "disruptive" else 1.0
    mass = sum(distribution.values()) if distribution else 1.0
    return min(max(round_half_up(base * complexity * mass), MIN_IDEA_COUNT), MAX_IDEA_COUNT)


def tier_counts(total: int, distribution: Mapping[str, float]) -> Dict[str, int]:
    return {tier: round_half_up(total * p) for tier, p in distribution.items()}


def _market_fit(record: ScoredRecord) -> str:
    if record.relevance >= 8:
        return "excellent"
    if record.relevance >= 5:
        return "good"
    return "fair"


def derive_ideas(research: Sequence[ScoredRecord], tier: str, count: int, round_number: int = 1) -> List[Candidate]:
    """Deterministic ideas built from the highest-quality research records."""
    ranked = sorted(research, key=lambda r: r.composite_score, reverse=True)
    if not ranked or count <= 0:
        return []
    # Tiers interleave over the ranking so they draw on different records;
    # later rounds shift by one
    lane = RISK_TIERS.index(tier) if tier in RISK_TIERS else 0
    ideas = []
    for i in range(count):
        slot = lane + i * len(RISK_TIERS) + (round_number - 1)
        record = ranked[slot % len(ranked)]
        scale = _SCALE_ROTATION[(i + round_number - 1) % len(_SCALE_ROTATION)]
        market_fit = _market_fit(record)
        ideas.append(Candidate(
            id=f"{tier}-r{round_number}-{i + 1}",
            title=f"{_TITLE_PREFIX.get(tier, 'Venture in')} {record.title}",
            description=f"Builds on research finding '{record.title}'. {record.content[:300]}".strip(),
            category=record.category,
            risk_tier=tier,
            scale_tier=scale,
            estimated_value=_SCALE_VALUE[scale] * _RISK_MULTIPLIER.get(tier, 1.0),
            synergy_score=clamp(record.quality + 1.0),
            confidence=record.confidence_tier,
            time_to_market=_TIME_TO_MARKET.get(tier, "2 years"),
            feasibility=estimate_feasibility(record.confidence_tier, market_fit),
            attributes={
                "source_record_ids": [record.id],
                "target_market": f"{scale.replace('_', ' ')} companies in {record.category.replace('_', ' ')}",
                "market_fit": market_fit,
                "origin": "derived",
            },
        ))
    return ideas


def _research_digest(research: Sequence[ScoredRecord]) -> str:
    ranked = sorted(research, key=lambda r: r.composite_score, reverse=True)[:RESEARCH_CONTEXT_LIMIT]
    return "\n".join(f"- [{r.category}] {r.title}: {r.content[:200]}" for r in ranked)


def ideas_from_payload(payload: Any, tier: str, round_number: int) -> List[Candidate]:
    """Build candidates from the decoded JSON answer; raises when it is unusable."""
    items = payload.get("ideas") if isinstance(payload, dict) else payload
    if not isinstance(items, list) or not items:
        raise ServiceDataError("answer has no ideas list")
    ideas = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ServiceDataError(f"idea {i} is not an object")
        confidence = str(item.get("confidence", "medium")).lower()
        market_fit = str(item.get("market_fit", "")).lower()
        scale = item.get("scale_tier") if item.get("scale_tier") in SCALE_TIERS else "enterprise"
        ideas.append(Candidate(
            id=f"{tier}-r{round_number}-{i + 1}",
            title=str(item.get("title", "")).strip(),
            description=str(item.get("description", "")).strip(),
            category=str(item.get("category", "")),
            risk_tier=tier,
            scale_tier=scale,
            estimated_value=float(item.get("estimated_value", 0) or 0),
            synergy_score=clamp(float(item.get("synergy_score", 0) or 0)),
            confidence=confidence,
            time_to_market=str(item.get("time_to_market", "")),
            feasibility=estimate_feasibility(confidence, market_fit),
            attributes={
                "target_market": item.get("target_market", ""),
                "market_fit": market_fit,
                "competitive_advantage": item.get("competitive_advantage", ""),
                "origin": "generated",
            },
        ))
    return ideas


class IdeaGenerator:
    def __init__(self, llm=None, retry_policy: RetryPolicy = NO_RETRY):
        self.llm = llm
        self.retry_policy = retry_policy

    def build_prompt(self, research, tier: str, count: int, feedback_text: str = "") -> str:
        prompt = (
            f"Generate {count} new business ideas with risk level '{tier}' "
            f"(risk order: {', '.join(RISK_TIERS)}).\n"
            f"Research findings:\n{_research_digest(research)}\n\n"
            "Return JSON: {\"ideas\": [{\"title\", \"description\", \"category\", \"scale_tier\", "
            "\"estimated_value\", \"synergy_score\", \"confidence\", \"market_fit\", \"time_to_market\", "
            "\"target_market\", \"competitive_advantage\"}]}\n"
            f"scale_tier is one of {', '.join(SCALE_TIERS)}; estimated_value is annual revenue potential; "
            "synergy_score is 0-10; confidence is high, medium or low."
        )
        if feedback_text:
            prompt += f"\n\nFeedback from the previous round:\n{feedback_text}"
        return prompt

    async def generate_for_tier(
        self,
        research: Sequence[ScoredRecord],
        tier: str,
        count: int,
        round_number: int = 1,
        feedback_text: str = "",
    ) -> ParseResult:
        """Ideas for one tier as Parsed (service answer) or Fallback (derived from research)."""
        fallback = lambda: derive_ideas(research, tier, count, round_number)
        if self.llm is None:
            return Fallback(fallback(), reason="no text-generation service configured")

        prompt = self.build_prompt(research, tier, count, feedback_text)
        try:
            raw, _ = await with_retry(lambda: self.llm.generate(prompt), self.retry_policy)
        except ServiceError as e:
            logger.warning(f"Idea generation failed for tier {tier}: {e}")
            GENERATION_FALLBACKS.labels(stage="ideation").inc()
            return Fallback(fallback(), reason=str(e))

        def parse(payload):
            try:
                return ideas_from_payload(payload, tier, round_number)[:count]
            except (PydanticValidationError, TypeError, ValueError) as e:
                raise ServiceDataError(f"invalid idea: {e}") from e

        return parse_or_fallback(raw, parse, fallback, stage="ideation")
