"""Unified configuration module.

Single source of truth for all configuration and settings.
"""

from .settings import (
    settings,
    Settings,
    FilteringThresholds,
    IdeationConstraints,
    validate_weights,
    validate_distribution,
    RISK_TIERS,
    RISK_TIER_DISTRIBUTION,
    SCALE_TIERS,
    SCALE_TIER_DISTRIBUTION,
    QUALITY_WEIGHTS,
    CRITIC_DIMENSIONS,
    EVIDENCE_WEIGHTS,
    RESEARCH_CATEGORIES,
)

__all__ = [
    "settings",
    "Settings",
    "FilteringThresholds",
    "IdeationConstraints",
    "validate_weights",
    "validate_distribution",
    "RISK_TIERS",
    "RISK_TIER_DISTRIBUTION",
    "SCALE_TIERS",
    "SCALE_TIER_DISTRIBUTION",
    "QUALITY_WEIGHTS",
    "CRITIC_DIMENSIONS",
    "EVIDENCE_WEIGHTS",
    "RESEARCH_CATEGORIES",
]
