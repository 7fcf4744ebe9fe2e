"""
Round-based convergence control shared by the research and ideation pipelines
"""

from .controller import (
    IterationController,
    IterationPhase,
    IterationState,
    RoundFeedback,
    RoundOutcome,
    TerminationReason,
    derive_feedback,
)

__all__ = [
    "IterationController",
    "IterationPhase",
    "IterationState",
    "RoundFeedback",
    "RoundOutcome",
    "TerminationReason",
    "derive_feedback",
]
