"""Ordered quality gates for research records and generated candidates.

Each candidate runs through the rules in declared order and stops at the first
rule it fails. A rule that raises rejects that candidate with reason
``rule_evaluation_error``; the rest of the batch is still evaluated.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ideation_system.config.settings import RISK_TIERS, FilteringThresholds, IdeationConstraints
from ideation_system.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

RULE_EVALUATION_ERROR = "rule_evaluation_error"
DEFAULT_DURATION_MONTHS = 24.0


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Callable[[Any], bool]
    message: str = ""

    def describe_failure(self, candidate: Any) -> str:
        return self.message or f"failed {self.name}"


@dataclass(frozen=True)
class Rejection:
    candidate: Any
    failed_rule: str
    reason: str
    code: str

    @property
    def errored(self) -> bool:
        return self.code == RULE_EVALUATION_ERROR


@dataclass
class FilterResult:
    accepted: List[Any] = field(default_factory=list)
    rejected: List[Rejection] = field(default_factory=list)

    def reason_counts(self) -> Dict[str, int]:
        """Rejections tallied by the failing rule (or rule_evaluation_error)."""
        return dict(Counter(r.code for r in self.rejected))

    @property
    def acceptance_rate(self) -> float:
        total = len(self.accepted) + len(self.rejected)
        return len(self.accepted) / total if total else 0.0


def filter_candidates(candidates: Iterable[Any], rules: Sequence[Rule]) -> FilterResult:
    """Apply ``rules`` in order to each candidate; the first failure decides."""
    result = FilterResult()
    for candidate in candidates:
        rejection = None
        for rule in rules:
            try:
                ok = bool(rule.predicate(candidate))
            except Exception as e:
                logger.warning(f"Rule {rule.name} raised on {getattr(candidate, 'id', candidate)!r}: {e}")
                rejection = Rejection(candidate, rule.name, f"{type(e).__name__}: {e}", RULE_EVALUATION_ERROR)
                break
            if not ok:
                rejection = Rejection(candidate, rule.name, rule.describe_failure(candidate), rule.name)
                break
        if rejection is None:
            result.accepted.append(candidate)
        else:
            result.rejected.append(rejection)

    if result.rejected:
        logger.info(f"Quality gate: {len(result.accepted)} accepted, {len(result.rejected)} rejected "
                    f"{result.reason_counts()}")
    return result


# Rule factories

def required_fields(*fields: str, name: str = "structural_completeness") -> Rule:
    def check(c):
        for f in fields:
            value = getattr(c, f, None)
            if value is None or (isinstance(value, str) and not value.strip()):
                return False
        return True
    return Rule(name, check, f"missing one of {', '.join(fields)}")


def min_value(name: str, attr: str, threshold: float) -> Rule:
    def check(c):
        value = getattr(c, attr)
        return value is not None and value >= threshold
    return Rule(name, check, f"{attr} below {threshold}")


def max_tier(name: str, attr: str, ceiling: str, order: Sequence[str] = RISK_TIERS) -> Rule:
    """Pass values ranked at or below ``ceiling`` in ``order``; unknown values fail."""
    if ceiling not in order:
        raise ConfigurationError(f"unknown tier {ceiling!r}; expected one of {list(order)}")
    limit = order.index(ceiling)

    def check(c):
        value = getattr(c, attr)
        return value in order and order.index(value) <= limit
    return Rule(name, check, f"{attr} above {ceiling}")


def excluded_values(name: str, attr: str, excluded: Iterable[str]) -> Rule:
    excluded = frozenset(excluded)
    return Rule(name, lambda c: getattr(c, attr) not in excluded, f"{attr} is excluded")


def max_duration(name: str, attr: str, months: float) -> Rule:
    return Rule(
        name,
        lambda c: parse_duration_months(getattr(c, attr)) <= months,
        f"{attr} longer than {months:g} months",
    )


def custom_rule(name: str, predicate: Callable[[Any], bool], message: str = "") -> Rule:
    return Rule(name, predicate, message)


_YEAR_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:years?|yrs?|y\b|年)", re.IGNORECASE)
_MONTH_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:months?|mos?|m\b|ヶ?月|か月|カ月)", re.IGNORECASE)


def parse_duration_months(text: Optional[str]) -> float:
    """
    Months expressed by strings like "18 months", "2 years", "1.5y", "2年6ヶ月".

    Year and month parts add up. Anything unparseable counts as 24 months.
    """
    if not text:
        return DEFAULT_DURATION_MONTHS
    months = 0.0
    year = _YEAR_RE.search(text)
    month = _MONTH_RE.search(text)
    if year:
        months += float(year.group(1)) * 12
    if month:
        months += float(month.group(1))
    return months or DEFAULT_DURATION_MONTHS


def standard_candidate_rules(
    thresholds: FilteringThresholds = FilteringThresholds(),
    constraints: Optional[IdeationConstraints] = None,
) -> List[Rule]:
    """Ideation gate: structure, value, synergy, risk, feasibility, then caller constraints."""
    rules = [
        required_fields("title", "description"),
        min_value("min_estimated_value", "estimated_value", thresholds.min_estimated_value),
        min_value("min_synergy", "synergy_score", thresholds.min_synergy),
        max_tier("max_risk_tier", "risk_tier", thresholds.max_risk_tier),
        min_value("min_feasibility", "feasibility", thresholds.min_feasibility),
    ]
    if constraints is not None:
        if constraints.excluded_categories:
            rules.append(excluded_values("excluded_category", "category", constraints.excluded_categories))
        if constraints.max_time_to_market_months is not None:
            rules.append(max_duration("max_time_to_market", "time_to_market",
                                      constraints.max_time_to_market_months))
    return rules


def evidence_rules(min_relevance: float) -> List[Rule]:
    """Research gate applied to scored records."""
    return [
        required_fields("title"),
        min_value("min_relevance", "relevance", min_relevance),
    ]
