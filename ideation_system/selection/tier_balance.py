from __future__ import annotations
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Sequence
import logging
import math

from ideation_system.config.settings import validate_distribution
from ideation_system.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _default_tier(item: Any) -> str:
    return getattr(item, "tier")


def _default_score(item: Any):
    return getattr(item, "composite_score")


@dataclass(frozen=True)
class BalanceConfig:
    tolerance: float = 0.15     # allowed deviation of each tier's share
    tier_key: Callable[[Any], str] = _default_tier
    score_key: Callable[[Any], Any] = _default_score


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def tier_quotas(target: Mapping[str, float], total_count: int) -> Dict[str, int]:
    """Per-tier pick counts: round-half-up of total x proportion."""
    return {tier: round_half_up(total_count * p) for tier, p in target.items()}


def _ranked(indices: Sequence[int], pool: Sequence[Any], score_key) -> List[int]:
    # Stable: equal scores keep pool order
    return sorted(indices, key=lambda i: score_key(pool[i]), reverse=True)


def balance(
    pool: Sequence[Any],
    target_distribution: Mapping[str, float],
    total_count: int,
    cfg: BalanceConfig = BalanceConfig(),
) -> List[Any]:
    """
    Pick ``total_count`` items whose tier mix approximates ``target_distribution``.

    Each tier first contributes its best ``round_half_up(total x p)`` items
    (all it has when the bucket is short). Tiers are visited by descending
    proportion and picking stops at ``total_count``. Remaining slots are then
    filled with the best leftovers from any tier. Picks and leftovers are
    tracked as disjoint index sets, so an item is never chosen twice.

    Returns min(total_count, len(pool)) items ordered by descending score.
    """
    validate_distribution(dict(target_distribution))
    if total_count < 0:
        raise ConfigurationError(f"total_count must not be negative, got {total_count}")
    if total_count == 0 or not pool:
        return []

    buckets: Dict[str, List[int]] = defaultdict(list)
    for i, item in enumerate(pool):
        buckets[cfg.tier_key(item)].append(i)

    quotas = tier_quotas(target_distribution, total_count)
    order = sorted(target_distribution, key=lambda t: target_distribution[t], reverse=True)

    selected: List[int] = []
    chosen = set()
    for tier in order:
        room = total_count - len(selected)
        if room <= 0:
            break
        take = min(quotas[tier], room)
        picks = _ranked(buckets.get(tier, []), pool, cfg.score_key)[:take]
        selected.extend(picks)
        chosen.update(picks)

    shortfall = total_count - len(selected)
    if shortfall > 0:
        leftovers = [i for i in range(len(pool)) if i not in chosen]
        topup = _ranked(leftovers, pool, cfg.score_key)[:shortfall]
        selected.extend(topup)
        chosen.update(topup)
        if topup:
            logger.debug(f"Balancer topped up {len(topup)} items from leftovers")

    result = [pool[i] for i in _ranked(sorted(selected), pool, cfg.score_key)]
    logger.info(f"Balanced {len(pool)} candidates to {len(result)}: "
                f"{dict(Counter(cfg.tier_key(x) for x in result))}")
    return result


def tier_distribution(items: Sequence[Any], tier_key: Callable[[Any], str] = _default_tier) -> Dict[str, float]:
    """Share of each tier among ``items``."""
    if not items:
        return {}
    counts = Counter(tier_key(x) for x in items)
    return {tier: n / len(items) for tier, n in counts.items()}


def balance_gaps(
    items: Sequence[Any],
    target: Mapping[str, float],
    tier_key: Callable[[Any], str] = _default_tier,
) -> Dict[str, float]:
    """Target share minus actual share per target tier (positive = under-represented)."""
    total = sum(target.values())
    actual = tier_distribution(items, tier_key)
    return {tier: (p / total if total else 0.0) - actual.get(tier, 0.0) for tier, p in target.items()}


def is_balanced(
    items: Sequence[Any],
    target: Mapping[str, float],
    tolerance: float = 0.15,
    tier_key: Callable[[Any], str] = _default_tier,
) -> bool:
    """True when every target tier's share is within ``tolerance`` of its target."""
    if not items:
        return False
    return all(abs(gap) <= tolerance + 1e-9 for gap in balance_gaps(items, target, tier_key).values())


def under_represented_tiers(
    items: Sequence[Any],
    target: Mapping[str, float],
    tolerance: float = 0.15,
    tier_key: Callable[[Any], str] = _default_tier,
) -> List[str]:
    gaps = balance_gaps(items, target, tier_key)
    return [tier for tier, gap in sorted(gaps.items(), key=lambda kv: -kv[1]) if gap > tolerance]
