"""Unified configuration and settings module.

Single source of truth for runtime knobs, tier distributions, scoring weights
and filtering thresholds used by the research and ideation pipelines.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import math
import os
import logging

from ideation_system.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# Risk tiers, ordered from safest to boldest
RISK_TIERS: Tuple[str, ...] = ("conservative", "balanced", "challenging", "disruptive")

RISK_TIER_DISTRIBUTION: Dict[str, float] = {
    "conservative": 0.25,
    "balanced": 0.50,
    "challenging": 0.20,
    "disruptive": 0.05,
}

SCALE_TIERS: Tuple[str, ...] = ("startup", "mid_market", "enterprise", "mega_corp")

SCALE_TIER_DISTRIBUTION: Dict[str, float] = {
    "startup": 0.10,
    "mid_market": 0.30,
    "enterprise": 0.50,
    "mega_corp": 0.10,
}

# Candidate quality weights (sub-scores on a 0-10 scale)
QUALITY_WEIGHTS: Dict[str, float] = {
    "originality": 0.15,
    "feasibility": 0.25,
    "market_viability": 0.20,
    "synergy_alignment": 0.25,
    "competitive_advantage": 0.10,
    "risk_balance": 0.05,
}

# Critic dimensions and their maximum points; composite range is 0-100
CRITIC_DIMENSIONS: Dict[str, float] = {
    "market_potential": 35.0,
    "strategic_fit": 35.0,
    "competitive_advantage": 15.0,
    "profitability": 15.0,
}

# Evidence weights for research records
EVIDENCE_WEIGHTS: Dict[str, float] = {
    "relevance": 0.4,
    "source_quality": 0.3,
    "depth": 0.2,
    "recency": 0.1,
}

RESEARCH_CATEGORIES: Tuple[str, ...] = (
    "startup_trends",
    "industry_challenges",
    "technology_developments",
    "investment_patterns",
)

CATEGORY_PRIORITY: Dict[str, int] = {
    "startup_trends": 8,
    "industry_challenges": 9,
    "technology_developments": 7,
    "investment_patterns": 6,
}

CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "startup_trends": ("startup", "venture", "emerging business model", "unicorn"),
    "industry_challenges": ("industry pain points", "market challenges", "efficiency problems", "digital transformation"),
    "technology_developments": ("emerging technology", "AI", "automation", "platform"),
    "investment_patterns": ("investment trends", "venture funding", "M&A", "capital allocation"),
}

# Region name -> text appended to search queries
REGIONS: Dict[str, str] = {
    "japan": "Japan",
    "usa": "United States",
    "global": "global trends",
}

REGION_PRIORITY: Dict[str, int] = {
    "japan": 9,
    "usa": 8,
    "global": 6,
}

# Prior credibility for known source names (0-1)
SOURCE_QUALITY: Dict[str, float] = {
    "tavily": 0.7,
    "static": 0.6,
    "llm": 0.4,
}
DEFAULT_SOURCE_QUALITY = 0.5


@dataclass(frozen=True)
class FilteringThresholds:
    """Minimum bar a generated candidate must clear."""
    min_estimated_value: float = 10_000_000_000
    min_synergy: float = 6.0
    max_risk_tier: str = "challenging"
    min_feasibility: float = 6.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "min_estimated_value": self.min_estimated_value,
            "min_synergy": self.min_synergy,
            "max_risk_tier": self.max_risk_tier,
            "min_feasibility": self.min_feasibility,
        }


@dataclass(frozen=True)
class IdeationConstraints:
    """Caller supplied constraints on top of the standard thresholds."""
    excluded_categories: Tuple[str, ...] = ()
    max_time_to_market_months: Optional[float] = None


def validate_weights(weights: Dict[str, float], names=None) -> None:
    """Raise ConfigurationError for unusable weight maps."""
    if not weights:
        raise ConfigurationError("weight map is empty")
    for name, w in weights.items():
        if not isinstance(w, (int, float)) or not math.isfinite(w) or w < 0:
            raise ConfigurationError(f"weight {name!r} must be a finite non-negative number, got {w!r}")
    if names is not None:
        missing = set(weights) - set(names)
        if missing:
            raise ConfigurationError(f"no sub-score defined for weights: {sorted(missing)}")


def validate_distribution(distribution: Dict[str, float]) -> None:
    """Raise ConfigurationError unless the distribution has a positive, non-negative mass."""
    if not distribution:
        raise ConfigurationError("target distribution is empty")
    for tier, p in distribution.items():
        if not isinstance(p, (int, float)) or not math.isfinite(p) or p < 0:
            raise ConfigurationError(f"proportion for {tier!r} must be non-negative, got {p!r}")
    if sum(distribution.values()) <= 0:
        raise ConfigurationError("target distribution has no positive proportion")


@dataclass(frozen=True)
class Settings:
    """Global application settings."""
    # Execution
    MAX_CONCURRENT: int = field(default_factory=lambda: int(os.getenv("MAX_CONCURRENT", "5")))
    TASK_TIMEOUT_SEC: float = field(default_factory=lambda: float(os.getenv("TASK_TIMEOUT_SEC", "30")))
    WALL_TIMEOUT_SEC: int = field(default_factory=lambda: int(os.getenv("WALL_TIMEOUT_SEC", "600")))

    # Retry configuration
    RETRY_MAX_TRIES: int = field(default_factory=lambda: int(os.getenv("RETRY_MAX_TRIES", "3")))
    RETRY_BACKOFF_BASE_SECONDS: float = field(default_factory=lambda: float(os.getenv("RETRY_BACKOFF_BASE_SECONDS", "0.5")))
    RETRY_BACKOFF_MAX_SECONDS: float = field(default_factory=lambda: float(os.getenv("RETRY_BACKOFF_MAX_SECONDS", "8")))

    # Convergence
    DEDUP_THRESHOLD: float = field(default_factory=lambda: float(os.getenv("DEDUP_THRESHOLD", "0.8")))
    RESEARCH_MAX_ROUNDS: int = field(default_factory=lambda: int(os.getenv("RESEARCH_MAX_ROUNDS", "3")))
    IDEATION_MAX_ROUNDS: int = field(default_factory=lambda: int(os.getenv("IDEATION_MAX_ROUNDS", "2")))
    PASSING_SCORE: float = field(default_factory=lambda: float(os.getenv("PASSING_SCORE", "70")))
    MIN_ITEMS_PER_CATEGORY: int = field(default_factory=lambda: int(os.getenv("MIN_ITEMS_PER_CATEGORY", "3")))
    MIN_MEAN_QUALITY: float = field(default_factory=lambda: float(os.getenv("MIN_MEAN_QUALITY", "6")))
    MIN_RELEVANCE: float = field(default_factory=lambda: float(os.getenv("MIN_RELEVANCE", "3")))
    TARGET_IDEA_COUNT: int = field(default_factory=lambda: int(os.getenv("TARGET_IDEA_COUNT", "6")))
    BALANCE_TOLERANCE: float = field(default_factory=lambda: float(os.getenv("BALANCE_TOLERANCE", "0.15")))
    SEARCH_RESULTS_PER_TASK: int = field(default_factory=lambda: int(os.getenv("SEARCH_RESULTS_PER_TASK", "5")))

    # Services
    LLM_PROVIDER: str = field(default_factory=lambda: os.getenv("LLM_PROVIDER", "openai"))
    LLM_MODEL: Optional[str] = field(default_factory=lambda: os.getenv("LLM_MODEL"))
    OPENAI_API_KEY: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    ANTHROPIC_API_KEY: Optional[str] = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY"))
    TAVILY_API_KEY: Optional[str] = field(default_factory=lambda: os.getenv("TAVILY_API_KEY"))
    HTTP_TIMEOUT_SECONDS: int = field(default_factory=lambda: int(os.getenv("HTTP_TIMEOUT_SECONDS", "30")))

    def validate(self) -> None:
        """Raise ConfigurationError for values no run can work with."""
        if self.MAX_CONCURRENT <= 0:
            raise ConfigurationError(f"MAX_CONCURRENT must be positive, got {self.MAX_CONCURRENT}")
        if self.TASK_TIMEOUT_SEC <= 0:
            raise ConfigurationError(f"TASK_TIMEOUT_SEC must be positive, got {self.TASK_TIMEOUT_SEC}")
        if self.RETRY_MAX_TRIES < 1:
            raise ConfigurationError(f"RETRY_MAX_TRIES must be at least 1, got {self.RETRY_MAX_TRIES}")
        if self.RESEARCH_MAX_ROUNDS <= 0 or self.IDEATION_MAX_ROUNDS <= 0:
            raise ConfigurationError("round budgets must be positive")
        if not 0.0 < self.DEDUP_THRESHOLD <= 1.0:
            raise ConfigurationError(f"DEDUP_THRESHOLD must be in (0, 1], got {self.DEDUP_THRESHOLD}")
        if self.TARGET_IDEA_COUNT < 0:
            raise ConfigurationError("TARGET_IDEA_COUNT must not be negative")

    def has_llm(self) -> bool:
        if self.LLM_PROVIDER == "anthropic":
            return bool(self.ANTHROPIC_API_KEY)
        return bool(self.OPENAI_API_KEY)


# Global settings instance
settings = Settings()
