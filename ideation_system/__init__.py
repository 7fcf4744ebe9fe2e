"""
Ideation System - research gathering and business ideation with convergence control
"""

__version__ = "1.0.0"

__all__ = [
    "Coordinator",
    "IdeationPipeline",
    "ResearchPipeline",
    "Settings",
    "__version__",
]


def __getattr__(name: str):
    """Lazy import to avoid import-time side effects."""
    if name == "Coordinator":
        from .coordinator import Coordinator
        return Coordinator
    elif name == "IdeationPipeline":
        from .ideation.pipeline import IdeationPipeline
        return IdeationPipeline
    elif name == "ResearchPipeline":
        from .research.pipeline import ResearchPipeline
        return ResearchPipeline
    elif name == "Settings":
        from ideation_system.config.settings import Settings
        return Settings
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
