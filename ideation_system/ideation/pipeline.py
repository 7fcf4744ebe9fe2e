"""
Candidate-ideation pipeline.

Per round: generate per risk tier -> dedup by title -> critic evaluation ->
quality gate -> tier balancer -> controller decides iterate or complete.
The research input is checked first; unusable input ends the run with
``insufficient_input`` before any generation happens.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ideation_system.collect.dedup import deduplicate
from ideation_system.config.settings import (
    CRITIC_DIMENSIONS,
    RISK_TIER_DISTRIBUTION,
    RISK_TIERS,
    FilteringThresholds,
    IdeationConstraints,
    Settings,
    validate_distribution,
)
from ideation_system.context import RunContext
from ideation_system.exceptions import ConfigurationError
from ideation_system.execution.executor import BoundedExecutor
from ideation_system.execution.retry import RetryPolicy
from ideation_system.ideation.critic import Critic
from ideation_system.ideation.generator import IdeaGenerator, calculate_target_count, tier_counts
from ideation_system.iteration.controller import (
    IterationController,
    IterationState,
    RoundFeedback,
    RoundOutcome,
    TerminationReason,
)
from ideation_system.models import Candidate, PipelineOutcome, ScoredCandidate, ScoredRecord, Task
from ideation_system.quality.gates import Rejection, Rule, filter_candidates, standard_candidate_rules
from ideation_system.quality.portfolio import PortfolioReport, review_portfolio
from ideation_system.quality.sufficiency import HIGH_QUALITY_THRESHOLD
from ideation_system.scoring import candidate_quality
from ideation_system.selection.tier_balance import (
    BalanceConfig,
    balance,
    is_balanced,
    under_represented_tiers,
)

MIN_RESEARCH_RECORDS = 3
MIN_HIGH_QUALITY_RECORDS = 2
MIN_RESEARCH_CATEGORIES = 2


class Decision(str, Enum):
    ITERATE = "iterate"
    COMPLETE = "complete"


@dataclass(frozen=True)
class IdeationRequest:
    research: Tuple[ScoredRecord, ...]
    target_count: Optional[int] = None
    target_distribution: Mapping[str, float] = field(default_factory=lambda: dict(RISK_TIER_DISTRIBUTION))
    thresholds: FilteringThresholds = FilteringThresholds()
    constraints: Optional[IdeationConstraints] = None
    innovation_level: str = "balanced"


@dataclass
class IdeationResult:
    ideas: List[ScoredCandidate]
    selected: Optional[ScoredCandidate]
    decision: Decision
    termination_reason: Optional[str]
    balanced: bool = False
    feedback: Optional[RoundFeedback] = None
    input_problems: List[str] = field(default_factory=list)
    portfolio: Optional[PortfolioReport] = None


def validate_research_input(records: Sequence[ScoredRecord]) -> List[str]:
    """Problems that make the research unusable for ideation (empty when usable)."""
    problems = []
    if len(records) < MIN_RESEARCH_RECORDS:
        problems.append(f"need at least {MIN_RESEARCH_RECORDS} research records, got {len(records)}")
    high_quality = sum(1 for r in records if r.quality >= HIGH_QUALITY_THRESHOLD)
    if high_quality < MIN_HIGH_QUALITY_RECORDS:
        problems.append(f"need at least {MIN_HIGH_QUALITY_RECORDS} high-quality records, got {high_quality}")
    categories = {r.category for r in records}
    if len(categories) < MIN_RESEARCH_CATEGORIES:
        problems.append(f"need records from at least {MIN_RESEARCH_CATEGORIES} categories, got {len(categories)}")
    return problems


def _rank_key(sc: ScoredCandidate):
    return (sc.composite_score, sc.quality_score)


class IdeationPipeline:
    def __init__(
        self,
        generator: Optional[IdeaGenerator] = None,
        critic: Optional[Critic] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.settings.validate()
        self.retry_policy = RetryPolicy.from_settings(self.settings)
        self.generator = generator or IdeaGenerator()
        self.critic = critic or Critic(passing_score=self.settings.PASSING_SCORE)

    def _executor(self, context: RunContext) -> BoundedExecutor:
        return BoundedExecutor(
            self.settings.MAX_CONCURRENT,
            task_timeout=self.settings.TASK_TIMEOUT_SEC,
            retry_policy=self.retry_policy,
            context=context,
        )

    async def _generate(self, request, distribution, total, executor, context, state: IterationState):
        counts = tier_counts(total, distribution)
        feedback = state.feedback_for_next_round
        if feedback is not None:
            # One extra idea for each tier the last balance left short
            for tier in feedback.under_represented:
                if tier in counts:
                    counts[tier] += 1
        feedback_text = feedback.to_prompt() if feedback else ""

        tasks = [
            Task(id=f"generate-{tier}-r{state.round_number}", category=tier, topic=tier,
                 round_number=state.round_number)
            for tier, n in counts.items() if n > 0
        ]

        async def run(task: Task):
            result = await self.generator.generate_for_tier(
                request.research, task.category, counts[task.category], state.round_number, feedback_text,
            )
            if result.is_fallback:
                context.incr("generation_fallbacks")
            return result.value

        with context.timer("generation"):
            results = await executor.run(tasks, run)
        candidates: List[Candidate] = [c for r in results if r.ok for c in r.payload]
        return candidates, sum(1 for r in results if not r.ok)

    async def _evaluate(self, request, distribution, total, rules, executor, context, batch, state) -> RoundOutcome:
        candidates, generation_failures = batch
        rejected: List[Rejection] = []
        counts: Dict[str, int] = {}

        dedup = deduplicate(candidates, threshold=self.settings.DEDUP_THRESHOLD)
        kept_ids = {c.id for c in dedup.uniques}
        for c in candidates:
            if c.id not in kept_ids:
                rejected.append(Rejection(c, "deduplication", "near-duplicate idea", "duplicate"))

        by_task = {f"critic-{c.id}": c for c in dedup.uniques}
        tasks = [Task(id=tid, category="evaluation", topic=c.title, round_number=state.round_number)
                 for tid, c in by_task.items()]

        async def critique(task: Task):
            return await self.critic.evaluate(by_task[task.id], state.round_number)

        with context.timer("evaluation"):
            results = await executor.run(tasks, critique)

        scored: Dict[str, ScoredCandidate] = {}
        evaluations = []
        for r in results:
            candidate = by_task[r.task.id]
            if not r.ok:
                rejected.append(Rejection(candidate, "evaluation", r.error or "evaluation failed", "evaluation_failed"))
                continue
            evaluations.append(r.payload)
            scored[candidate.id] = ScoredCandidate(
                candidate=candidate,
                evaluation=r.payload,
                quality_score=candidate_quality(candidate).composite,
            )

        gate = filter_candidates([s.candidate for s in scored.values()], rules)
        rejected.extend(gate.rejected)
        passing = [scored[c.id] for c in gate.accepted]

        cfg = BalanceConfig(tolerance=self.settings.BALANCE_TOLERANCE, score_key=_rank_key)
        selected = balance(passing, distribution, total, cfg)
        selected_ids = {s.id for s in selected}
        for s in passing:
            if s.id not in selected_ids:
                rejected.append(Rejection(s.candidate, "balance", "not selected by tier balancer", "not_selected"))

        for r in rejected:
            counts[r.code] = counts.get(r.code, 0) + 1

        under = under_represented_tiers(selected, distribution, cfg.tolerance) if selected else []
        return RoundOutcome(
            accepted=selected,
            rejected=rejected,
            evaluations=evaluations,
            generated=len(candidates),
            rejection_counts=counts,
            under_represented=under,
            tasks_failed=generation_failures + sum(1 for r in results if not r.ok),
        )

    def prepare(self, request: IdeationRequest) -> Tuple[Dict[str, float], int, List[Rule]]:
        """
        Check the request's configuration before any work is done.

        Returns the target distribution, the idea total and the gate rules.
        Raises ConfigurationError for unknown tiers, a negative total or
        unusable thresholds.
        """
        distribution = dict(request.target_distribution)
        validate_distribution(distribution)
        unknown = sorted(set(distribution) - set(RISK_TIERS))
        if unknown:
            raise ConfigurationError(f"unknown risk tiers in target distribution: {unknown}; "
                                     f"expected {list(RISK_TIERS)}")
        total = request.target_count
        if total is None:
            total = calculate_target_count(self.settings.TARGET_IDEA_COUNT, request.innovation_level, distribution)
        if total < 0:
            raise ConfigurationError(f"target_count must not be negative, got {total}")
        rules = standard_candidate_rules(request.thresholds, request.constraints)
        return distribution, total, rules

    async def run(self, request: IdeationRequest) -> PipelineOutcome[IdeationResult]:
        """Run ideation rounds to completion. Only configuration errors raise."""
        distribution, total, rules = self.prepare(request)

        context = RunContext(pipeline="ideation")
        executor = self._executor(context)

        async def generate(state):
            return await self._generate(request, distribution, total, executor, context, state)

        async def evaluate(batch, state):
            return await self._evaluate(request, distribution, total, rules, executor, context, batch, state)

        controller = IterationController(
            generate,
            evaluate,
            budget=self.settings.IDEATION_MAX_ROUNDS,
            target_score=self.critic.passing_score,
            accumulate=False,
            dimension_max=CRITIC_DIMENSIONS,
            context=context,
            name="ideation",
        )

        problems = validate_research_input(request.research)
        if problems:
            for p in problems:
                context.record_error("research input", p)
            state = controller.terminate_early(TerminationReason.INSUFFICIENT_INPUT, "; ".join(problems))
        else:
            state = await controller.run()

        ideas: List[ScoredCandidate] = list(state.accepted)
        selected = max(ideas, key=_rank_key) if ideas else None
        reason = state.termination_reason.value if state.termination_reason else None
        # A spent budget still completes with the best ideas so far
        decision = Decision.COMPLETE if ideas and state.termination_reason in (
            TerminationReason.TARGET_ACHIEVED, TerminationReason.BUDGET_EXHAUSTED) else Decision.ITERATE
        result = IdeationResult(
            ideas=ideas,
            selected=selected,
            decision=decision,
            termination_reason=reason,
            balanced=is_balanced(ideas, distribution, self.settings.BALANCE_TOLERANCE) if ideas else False,
            feedback=state.feedback_for_next_round,
            input_problems=problems,
            portfolio=review_portfolio(ideas, request.thresholds) if ideas else None,
        )
        context.log.info("ideation_complete", decision=decision.value, ideas=len(ideas),
                         best_score=state.best_score_so_far, termination_reason=reason,
                         portfolio=result.portfolio.status.value if result.portfolio else None)
        return PipelineOutcome(result=result, report=context.finalize(reason))
