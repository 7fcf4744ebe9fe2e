"""
Research-gathering pipeline.

plan -> bounded concurrent retrieval -> dedup (within the round and against
everything already accepted) -> score -> evidence gate -> sufficiency.
Rounds repeat for the categories that fell short until the research is
sufficient or the round budget is spent.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from ideation_system.collect.dedup import deduplicate, exclude_known
from ideation_system.config.settings import Settings
from ideation_system.context import RunContext
from ideation_system.execution.executor import BoundedExecutor
from ideation_system.execution.retry import RetryPolicy
from ideation_system.iteration.controller import (
    IterationController,
    IterationState,
    RoundOutcome,
)
from ideation_system.models import PipelineOutcome, ScoredRecord, Task, TaskResult
from ideation_system.planning.planner import ResearchPlanner, ResearchRequest
from ideation_system.quality.gates import Rejection, evidence_rules, filter_candidates
from ideation_system.quality.sufficiency import SufficiencyReport, evaluate_sufficiency
from ideation_system.research.researcher import Researcher
from ideation_system.scoring import score_record


DUPLICATE = "duplicate"
PROCEED_HIGH_QUALITY = 5
REPLAN_MEAN_QUALITY = 4.0


class NextAction(str, Enum):
    CONTINUE_RESEARCH = "continue_research"
    PROCEED = "proceed"
    NEED_REPLANNING = "need_replanning"


@dataclass
class ResearchResult:
    records: List[ScoredRecord]
    next_action: NextAction
    sufficiency: SufficiencyReport
    termination_reason: Optional[str] = None
    tasks: List[Task] = field(default_factory=list)

    def by_category(self) -> Dict[str, List[ScoredRecord]]:
        out: Dict[str, List[ScoredRecord]] = {}
        for r in self.records:
            out.setdefault(r.category, []).append(r)
        return out


def decide_next_action(report: SufficiencyReport) -> NextAction:
    """
    proceed when sufficient or when enough high-quality records exist;
    need_replanning when quality is too low to build on;
    continue_research otherwise.
    """
    if report.sufficient:
        return NextAction.PROCEED
    if not any(report.category_counts.values()) or report.mean_quality < REPLAN_MEAN_QUALITY:
        return NextAction.NEED_REPLANNING
    if report.high_quality_count >= PROCEED_HIGH_QUALITY:
        return NextAction.PROCEED
    return NextAction.CONTINUE_RESEARCH


class ResearchPipeline:
    def __init__(
        self,
        retrieval,
        planner: Optional[ResearchPlanner] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.settings.validate()
        self.retrieval = retrieval
        self.planner = planner or ResearchPlanner()
        self.researcher = Researcher(retrieval, max_results=self.settings.SEARCH_RESULTS_PER_TASK)
        self.retry_policy = RetryPolicy.from_settings(self.settings)

    def _plan_round(self, request, initial: List[Task], state: IterationState) -> List[Task]:
        last = state.last_outcome
        sufficiency = last.extras.get("sufficiency") if last else None
        short = sufficiency.short_categories if sufficiency else []
        if not short:
            # Coverage was fine (quality was not) or the round failed outright
            short = list(request.categories)
        return self.planner.follow_up(initial, short, state.round_number)

    def _evaluate(
        self,
        request: ResearchRequest,
        batch: Tuple[List[Task], List[TaskResult]],
        state: IterationState,
    ) -> RoundOutcome:
        tasks, results = batch
        by_task = {t.id: t for t in tasks}
        raws = [raw for r in results if r.ok for raw in (r.payload or [])]
        tasks_failed = sum(1 for r in results if not r.ok)

        threshold = self.settings.DEDUP_THRESHOLD
        dedup = deduplicate(raws, threshold=threshold)
        fresh = exclude_known(dedup.uniques, state.accepted, threshold=threshold)
        fresh_ids = {r.id for r in fresh}
        duplicates = [r for r in raws if r.id not in fresh_ids]
        rejected = [Rejection(r, "deduplication", "near-duplicate of an earlier record", DUPLICATE)
                    for r in duplicates]

        scored = [score_record(r, by_task[r.task_id]) for r in fresh]
        gate = filter_candidates(scored, evidence_rules(self.settings.MIN_RELEVANCE))
        rejected.extend(gate.rejected)

        reason_counts = gate.reason_counts()
        if duplicates:
            reason_counts[DUPLICATE] = len(duplicates)

        sufficiency = evaluate_sufficiency(
            list(state.accepted) + gate.accepted,
            request.categories,
            min_per_category=self.settings.MIN_ITEMS_PER_CATEGORY,
            min_mean_quality=self.settings.MIN_MEAN_QUALITY,
        )
        return RoundOutcome(
            accepted=gate.accepted,
            rejected=rejected,
            generated=len(raws),
            rejection_counts=reason_counts,
            tasks_failed=tasks_failed,
            extras={"sufficiency": sufficiency},
        )

    async def run(self, request: ResearchRequest) -> PipelineOutcome[ResearchResult]:
        """Run research rounds to completion. Only configuration errors raise."""
        request.validate()
        context = RunContext(pipeline="research")
        executor = BoundedExecutor(
            self.settings.MAX_CONCURRENT,
            task_timeout=self.settings.TASK_TIMEOUT_SEC,
            retry_policy=self.retry_policy,
            context=context,
        )
        initial: List[Task] = []
        planned: List[Task] = []

        async def generate(state: IterationState):
            if state.round_number == 1:
                initial.extend(await self.planner.plan(request))
                tasks = list(initial)
            else:
                tasks = self._plan_round(request, initial, state)
            planned.extend(tasks)
            with context.timer("retrieval"):
                results = await executor.run(tasks, self.researcher.fetch)
            return tasks, results

        async def evaluate(batch, state: IterationState) -> RoundOutcome:
            with context.timer("evaluation"):
                return self._evaluate(request, batch, state)

        def sufficient(state: IterationState, outcome: RoundOutcome) -> bool:
            return outcome.extras["sufficiency"].sufficient

        controller = IterationController(
            generate,
            evaluate,
            budget=self.settings.RESEARCH_MAX_ROUNDS,
            target_reached=sufficient,
            accumulate=True,
            context=context,
            name="research",
        )
        state = await controller.run()

        sufficiency = evaluate_sufficiency(
            state.accepted,
            request.categories,
            min_per_category=self.settings.MIN_ITEMS_PER_CATEGORY,
            min_mean_quality=self.settings.MIN_MEAN_QUALITY,
        )
        next_action = decide_next_action(sufficiency)
        reason = state.termination_reason.value if state.termination_reason else None
        context.log.info("research_complete", next_action=next_action.value, records=len(state.accepted),
                         mean_quality=round(sufficiency.mean_quality, 2), termination_reason=reason)

        result = ResearchResult(
            records=list(state.accepted),
            next_action=next_action,
            sufficiency=sufficiency,
            termination_reason=reason,
            tasks=planned,
        )
        return PipelineOutcome(result=result, report=context.finalize(reason))
