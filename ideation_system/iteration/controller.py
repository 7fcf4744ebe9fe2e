"""
Iteration controller: generate -> evaluate -> decide, for a bounded number of rounds.

Phases run INITIAL -> GENERATING -> EVALUATING -> (ITERATING | COMPLETING)
-> COMPLETED. Rounds are numbered from 1 and the controller always reaches
COMPLETED within ``budget`` rounds. Running out of rounds is a normal
termination reason, never an exception.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
import time

import structlog

from ideation_system.exceptions import ConfigurationError
from ideation_system.models import EvaluationRecord, RoundReport
from ideation_system.monitoring_metrics import ROUNDS_TOTAL, TERMINATIONS

logger = structlog.get_logger()


class IterationPhase(str, Enum):
    INITIAL = "initial"
    GENERATING = "generating"
    EVALUATING = "evaluating"
    ITERATING = "iterating"
    COMPLETING = "completing"
    COMPLETED = "completed"


class TerminationReason(str, Enum):
    TARGET_ACHIEVED = "target_achieved"
    BUDGET_EXHAUSTED = "budget_exhausted"
    INSUFFICIENT_RESULTS = "insufficient_results"
    INSUFFICIENT_INPUT = "insufficient_input"


@dataclass
class RoundFeedback:
    """Guidance carried into the next generation step."""
    priority_areas: List[str] = field(default_factory=list)
    dimension_scores: Dict[str, float] = field(default_factory=dict)
    under_represented: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_prompt(self) -> str:
        lines = []
        if self.priority_areas:
            areas = ", ".join(f"{a} ({self.dimension_scores.get(a, 0.0):.0%})" for a in self.priority_areas)
            lines.append(f"Improve the weakest dimensions: {areas}.")
        if self.under_represented:
            lines.append(f"Add more candidates in: {', '.join(self.under_represented)}.")
        lines.extend(self.notes)
        return "\n".join(lines)


@dataclass
class RoundOutcome:
    """What one evaluate step reports back to the controller."""
    accepted: List[Any] = field(default_factory=list)
    rejected: List[Any] = field(default_factory=list)
    evaluations: List[EvaluationRecord] = field(default_factory=list)
    generated: int = 0
    rejection_counts: Dict[str, int] = field(default_factory=dict)
    under_represented: List[str] = field(default_factory=list)
    tasks_failed: int = 0
    error: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def best_score(self) -> Optional[float]:
        accepted_ids = {getattr(a, "id", None) for a in self.accepted}
        scores = [e.composite_score for e in self.evaluations if e.passed and e.subject_id in accepted_ids]
        if not scores:
            scores = [getattr(a, "composite_score") for a in self.accepted if hasattr(a, "composite_score")]
        return max(scores) if scores else None

    @property
    def failed(self) -> bool:
        return not self.accepted


@dataclass
class IterationState:
    budget: int
    round_number: int = 0
    phase: IterationPhase = IterationPhase.INITIAL
    best_score_so_far: Optional[float] = None
    accepted: List[Any] = field(default_factory=list)
    rejected: List[Any] = field(default_factory=list)
    feedback_for_next_round: Optional[RoundFeedback] = None
    terminal: bool = False
    termination_reason: Optional[TerminationReason] = None
    failed_rounds: int = 0
    history: List[RoundOutcome] = field(default_factory=list)

    @property
    def last_outcome(self) -> Optional[RoundOutcome]:
        return self.history[-1] if self.history else None

    def terminate(self, reason: TerminationReason) -> None:
        if self.terminal:
            raise RuntimeError(f"state already terminal ({self.termination_reason}); cannot terminate with {reason}")
        self.terminal = True
        self.termination_reason = reason
        self.phase = IterationPhase.COMPLETED


def derive_feedback(
    evaluations: Sequence[EvaluationRecord],
    dimension_max: Mapping[str, float],
    count: int = 2,
    under_represented: Sequence[str] = (),
) -> RoundFeedback:
    """
    Pick the ``count`` weakest dimensions by mean score relative to their max.

    Dimensions missing from every evaluation are ignored; ties keep the
    declared dimension order.
    """
    relative: Dict[str, float] = {}
    for dim, max_score in dimension_max.items():
        values = [e.sub_scores[dim] for e in evaluations if dim in e.sub_scores]
        if not values or max_score <= 0:
            continue
        relative[dim] = (sum(values) / len(values)) / max_score
    weakest = sorted(relative, key=lambda d: relative[d])[:count]
    return RoundFeedback(
        priority_areas=weakest,
        dimension_scores=relative,
        under_represented=list(under_represented),
    )


GenerateFn = Callable[[IterationState], Awaitable[Any]]
EvaluateFn = Callable[[Any, IterationState], Awaitable[RoundOutcome]]
TargetFn = Callable[[IterationState, RoundOutcome], bool]


class IterationController:
    def __init__(
        self,
        generate: GenerateFn,
        evaluate: EvaluateFn,
        budget: int,
        target_score: Optional[float] = None,
        target_reached: Optional[TargetFn] = None,
        accumulate: bool = True,
        dimension_max: Optional[Mapping[str, float]] = None,
        context=None,
        name: str = "iteration",
    ):
        if not isinstance(budget, int) or budget <= 0:
            raise ConfigurationError(f"round budget must be a positive integer, got {budget!r}")
        if target_score is None and target_reached is None:
            raise ConfigurationError("either target_score or target_reached is required")
        self.generate = generate
        self.evaluate = evaluate
        self.budget = budget
        self.target_score = target_score
        self.target_reached = target_reached or self._score_target
        self.accumulate = accumulate
        self.dimension_max = dict(dimension_max or {})
        self.context = context
        self.name = name
        self.log = context.log if context is not None else logger.bind(pipeline=name)

    def _score_target(self, state: IterationState, outcome: RoundOutcome) -> bool:
        return state.best_score_so_far is not None and state.best_score_so_far >= self.target_score

    def new_state(self) -> IterationState:
        return IterationState(budget=self.budget)

    def terminate_early(self, reason: TerminationReason, detail: str = "") -> IterationState:
        """Terminal state for runs stopped before round 1 (e.g. unusable input)."""
        state = self.new_state()
        state.terminate(reason)
        self.log.info("iteration_terminated", reason=reason.value, rounds=0, detail=detail)
        TERMINATIONS.labels(pipeline=self.name, reason=reason.value).inc()
        return state

    async def _run_round(self, state: IterationState) -> RoundOutcome:
        try:
            state.phase = IterationPhase.GENERATING
            generated = await self.generate(state)
            state.phase = IterationPhase.EVALUATING
            return await self.evaluate(generated, state)
        except ConfigurationError:
            raise
        except Exception as e:
            self.log.warning("iteration_round_error", round=state.round_number, error=str(e))
            if self.context is not None:
                self.context.record_error(f"round {state.round_number}", e)
            state.phase = IterationPhase.EVALUATING
            return RoundOutcome(error=f"{type(e).__name__}: {e}")

    def _apply(self, state: IterationState, outcome: RoundOutcome) -> None:
        state.history.append(outcome)
        state.rejected.extend(outcome.rejected)
        if outcome.failed:
            state.failed_rounds += 1
            return
        if self.accumulate:
            state.accepted.extend(outcome.accepted)
        else:
            state.accepted = list(outcome.accepted)
        best = outcome.best_score
        if best is not None and (state.best_score_so_far is None or best > state.best_score_so_far):
            state.best_score_so_far = best

    def _decide(self, state: IterationState, outcome: RoundOutcome) -> Optional[TerminationReason]:
        if not outcome.failed and self.target_reached(state, outcome):
            return TerminationReason.TARGET_ACHIEVED
        if state.round_number >= self.budget:
            if outcome.failed:
                return TerminationReason.INSUFFICIENT_RESULTS
            return TerminationReason.BUDGET_EXHAUSTED
        return None

    async def run(self, state: Optional[IterationState] = None) -> IterationState:
        """Drive rounds until a termination reason applies. Returns the terminal state."""
        state = state or self.new_state()
        if state.terminal:
            return state

        while not state.terminal:
            state.round_number += 1
            t0 = time.perf_counter()
            outcome = await self._run_round(state)
            self._apply(state, outcome)
            reason = self._decide(state, outcome)
            duration_ms = (time.perf_counter() - t0) * 1000

            round_label = "failed" if outcome.failed else ("final" if reason else "continue")
            ROUNDS_TOTAL.labels(pipeline=self.name, outcome=round_label).inc()
            if self.context is not None:
                self.context.record_rejections(outcome.rejection_counts)
                self.context.record_round(RoundReport(
                    round_number=state.round_number,
                    duration_ms=duration_ms,
                    generated=outcome.generated,
                    accepted=len(outcome.accepted),
                    rejected=len(outcome.rejected),
                    tasks_failed=outcome.tasks_failed,
                    best_score=outcome.best_score,
                    outcome=round_label,
                ))

            if reason is not None:
                state.phase = IterationPhase.COMPLETING
                state.terminate(reason)
                TERMINATIONS.labels(pipeline=self.name, reason=reason.value).inc()
                self.log.info("iteration_terminated", reason=reason.value, rounds=state.round_number,
                              best_score=state.best_score_so_far, failed_rounds=state.failed_rounds)
                break

            state.phase = IterationPhase.ITERATING
            state.feedback_for_next_round = derive_feedback(
                outcome.evaluations, self.dimension_max, under_represented=outcome.under_represented,
            )
            if outcome.failed:
                state.feedback_for_next_round.notes.append(
                    f"Round {state.round_number} produced no acceptable results; broaden the approach.")
            self.log.info("iteration_continue", round=state.round_number,
                          priority_areas=state.feedback_for_next_round.priority_areas)

        return state
