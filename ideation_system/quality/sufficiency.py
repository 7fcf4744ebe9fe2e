"""Research sufficiency: enough accepted records per category, good enough on average."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

logger = logging.getLogger(__name__)

HIGH_QUALITY_THRESHOLD = 6.0


@dataclass(frozen=True)
class SufficiencyReport:
    sufficient: bool
    category_counts: Dict[str, int]
    mean_quality: float
    high_quality_count: int
    shortfalls: Dict[str, int] = field(default_factory=dict)
    failures: List[str] = field(default_factory=list)

    @property
    def short_categories(self) -> List[str]:
        return list(self.shortfalls)


def evaluate_sufficiency(
    records: Sequence,
    categories: Sequence[str],
    min_per_category: int = 3,
    min_mean_quality: float = 6.0,
) -> SufficiencyReport:
    """
    Check accepted research records against coverage and quality targets.

    Every category in ``categories`` needs at least ``min_per_category``
    records, and the mean ``quality`` across all records must reach
    ``min_mean_quality``. ``shortfalls`` maps each short category to how many
    more records it needs.
    """
    counts = Counter(getattr(r, "category", "") for r in records)
    category_counts = {c: counts.get(c, 0) for c in categories}
    qualities = [float(getattr(r, "quality", 0.0)) for r in records]
    mean_quality = sum(qualities) / len(qualities) if qualities else 0.0
    high_quality = sum(1 for q in qualities if q >= HIGH_QUALITY_THRESHOLD)

    shortfalls = {c: min_per_category - n for c, n in category_counts.items() if n < min_per_category}
    failures = []
    if shortfalls:
        failures.append(f"categories below {min_per_category} records: {sorted(shortfalls)}")
    if mean_quality < min_mean_quality:
        failures.append(f"mean quality {mean_quality:.2f} < {min_mean_quality}")

    report = SufficiencyReport(
        sufficient=not failures,
        category_counts=category_counts,
        mean_quality=mean_quality,
        high_quality_count=high_quality,
        shortfalls=shortfalls,
        failures=failures,
    )
    if failures:
        logger.info(f"Research insufficient: {'; '.join(failures)}")
    return report
