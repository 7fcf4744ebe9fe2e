"""
Portfolio review of an accepted idea set.

Each check starts at 10 points and loses points per concern; 7 and above
passes, 5 and above is a warning, anything lower fails. The portfolio status
is the worst status of its checks.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations
from typing import Any, Dict, List, Sequence

from ideation_system.config.settings import FilteringThresholds
from ideation_system.text.similarity import jaccard, tokenize

logger = logging.getLogger(__name__)

SIMILAR_TITLE_THRESHOLD = 0.7
CATEGORY_CONCENTRATION = 0.4
SYNERGY_OUTLIER_MARGIN = 2.0
SYNERGY_OUTLIER_SHARE = 0.2


class CheckStatus(str, Enum):
    PASSED = "passed"
    WARNING = "warning"
    FAILED = "failed"


_SEVERITY = {CheckStatus.PASSED: 0, CheckStatus.WARNING: 1, CheckStatus.FAILED: 2}


def status_for(score: float) -> CheckStatus:
    if score >= 7:
        return CheckStatus.PASSED
    if score >= 5:
        return CheckStatus.WARNING
    return CheckStatus.FAILED


@dataclass(frozen=True)
class PortfolioCheck:
    name: str
    score: float
    issues: List[str] = field(default_factory=list)

    @property
    def status(self) -> CheckStatus:
        return status_for(self.score)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "status": self.status.value, "score": self.score, "issues": list(self.issues)}


@dataclass(frozen=True)
class PortfolioReport:
    checks: List[PortfolioCheck]

    @property
    def status(self) -> CheckStatus:
        if not self.checks:
            return CheckStatus.FAILED
        return max((c.status for c in self.checks), key=_SEVERITY.__getitem__)

    @property
    def score(self) -> float:
        return sum(c.score for c in self.checks) / len(self.checks) if self.checks else 0.0

    @property
    def warnings(self) -> List[str]:
        return [i for c in self.checks if c.status == CheckStatus.WARNING for i in c.issues]

    @property
    def errors(self) -> List[str]:
        return [i for c in self.checks if c.status == CheckStatus.FAILED for i in c.issues]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "score": round(self.score, 2),
            "checks": [c.to_dict() for c in self.checks],
        }


def _candidate(item: Any):
    return getattr(item, "candidate", item)


def check_diversity(ideas: Sequence) -> PortfolioCheck:
    score, issues = 10.0, []
    if len({i.category for i in ideas}) < min(len(ideas), 4):
        score -= 2
        issues.append("limited category diversity")
    if len({i.risk_tier for i in ideas}) < 3:
        score -= 2
        issues.append("limited risk tier diversity")
    if len({i.scale_tier for i in ideas}) < 2:
        score -= 1
        issues.append("limited business scale diversity")
    return PortfolioCheck("diversity", score, issues)


def check_risk_balance(ideas: Sequence) -> PortfolioCheck:
    """Balanced ideas should lead; conservative and challenging ones stay bounded."""
    counts = Counter(i.risk_tier for i in ideas)
    total = len(ideas)
    score, issues = 10.0, []
    if counts["balanced"] / total < 0.3:
        score -= 2
        issues.append("too few balanced ideas")
    if counts["conservative"] / total > 0.4:
        score -= 1
        issues.append("too many conservative ideas")
    if counts["challenging"] / total > 0.3:
        score -= 1
        issues.append("too many challenging ideas")
    return PortfolioCheck("risk_balance", score, issues)


def check_quality_consistency(ideas: Sequence, min_estimated_value: float) -> PortfolioCheck:
    score, issues = 10.0, []
    mean_synergy = sum(i.synergy_score for i in ideas) / len(ideas)
    outliers = [i for i in ideas if i.synergy_score < mean_synergy - SYNERGY_OUTLIER_MARGIN]
    if len(outliers) > len(ideas) * SYNERGY_OUTLIER_SHARE:
        score -= 2
        issues.append(f"{len(outliers)} low-synergy outliers")
    low_value = [i for i in ideas if i.estimated_value < min_estimated_value]
    if low_value:
        score -= 3
        issues.append(f"{len(low_value)} ideas below estimated value {min_estimated_value:g}")
    return PortfolioCheck("quality_consistency", score, issues)


def check_overlap(ideas: Sequence) -> PortfolioCheck:
    score, issues = 10.0, []
    titles = [(i.title, tokenize(i.title)) for i in ideas]
    similar = [f"'{a}' ~ '{b}'" for (a, ta), (b, tb) in combinations(titles, 2)
               if jaccard(ta, tb) >= SIMILAR_TITLE_THRESHOLD]
    if similar:
        score -= 2
        issues.append(f"similar titles: {', '.join(similar)}")
    counts = Counter(i.category for i in ideas)
    dominant = sorted(c for c, n in counts.items() if n > len(ideas) * CATEGORY_CONCENTRATION)
    if dominant:
        score -= 1
        issues.append(f"category concentration: {', '.join(dominant)}")
    return PortfolioCheck("overlap", score, issues)


def review_portfolio(items: Sequence, thresholds: FilteringThresholds = FilteringThresholds()) -> PortfolioReport:
    """Run every portfolio check over ideas (candidates or scored candidates)."""
    ideas = [_candidate(i) for i in items]
    if not ideas:
        return PortfolioReport(checks=[])
    report = PortfolioReport(checks=[
        check_diversity(ideas),
        check_risk_balance(ideas),
        check_quality_consistency(ideas, thresholds.min_estimated_value),
        check_overlap(ideas),
    ])
    if report.status != CheckStatus.PASSED:
        logger.info(f"Portfolio review {report.status.value}: {'; '.join(report.errors + report.warnings)}")
    return report
