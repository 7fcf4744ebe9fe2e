"""
Coordinator: research gathering followed by candidate ideation.

Ideation is skipped only when research asks for re-planning; every other
research outcome is handed to the ideation pipeline, which applies its own
input check. Both runs are saved to the session store when one is given.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional, Sequence
import uuid

import structlog

from ideation_system.config.settings import (
    RESEARCH_CATEGORIES,
    RISK_TIER_DISTRIBUTION,
    FilteringThresholds,
    IdeationConstraints,
    Settings,
)
from ideation_system.execution.retry import RetryPolicy
from ideation_system.ideation.critic import Critic
from ideation_system.ideation.generator import IdeaGenerator
from ideation_system.ideation.pipeline import IdeationPipeline, IdeationRequest, IdeationResult
from ideation_system.models import PipelineOutcome, utcnow
from ideation_system.planning.planner import ResearchPlanner, ResearchRequest
from ideation_system.research.pipeline import NextAction, ResearchPipeline, ResearchResult

logger = structlog.get_logger()


@dataclass
class CoordinatorOutcome:
    session_id: str
    topic: str
    research: PipelineOutcome[ResearchResult]
    ideation: Optional[PipelineOutcome[IdeationResult]] = None
    skipped_reason: Optional[str] = None
    save_error: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)

    def reports(self) -> Dict[str, Any]:
        out = {"research": self.research.report.to_contract()}
        if self.ideation is not None:
            out["ideation"] = self.ideation.report.to_contract()
        return out

    def to_dict(self) -> Dict[str, Any]:
        research = self.research.result
        data: Dict[str, Any] = {
            "session_id": self.session_id,
            "topic": self.topic,
            "started_at": self.started_at.isoformat(),
            "research": {
                "next_action": research.next_action.value,
                "termination_reason": research.termination_reason,
                "sufficiency": {
                    "sufficient": research.sufficiency.sufficient,
                    "category_counts": research.sufficiency.category_counts,
                    "mean_quality": research.sufficiency.mean_quality,
                    "high_quality_count": research.sufficiency.high_quality_count,
                    "failures": list(research.sufficiency.failures),
                },
                "records": [r.model_dump(mode="json") for r in research.records],
            },
            "ideation": None,
            "skipped_reason": self.skipped_reason,
            "reports": self.reports(),
        }
        if self.ideation is not None:
            ideation = self.ideation.result
            data["ideation"] = {
                "decision": ideation.decision.value,
                "termination_reason": ideation.termination_reason,
                "balanced": ideation.balanced,
                "input_problems": list(ideation.input_problems),
                "portfolio": ideation.portfolio.to_dict() if ideation.portfolio else None,
                "selected_id": ideation.selected.id if ideation.selected else None,
                "ideas": [i.model_dump(mode="json") for i in ideation.ideas],
            }
        return data


class Coordinator:
    def __init__(self, retrieval, llm=None, settings: Optional[Settings] = None, store=None):
        self.settings = settings or Settings()
        self.settings.validate()
        self.store = store
        policy = RetryPolicy.from_settings(self.settings)
        self.research = ResearchPipeline(
            retrieval,
            planner=ResearchPlanner(llm, retry_policy=policy),
            settings=self.settings,
        )
        self.ideation = IdeationPipeline(
            generator=IdeaGenerator(llm, retry_policy=policy),
            critic=Critic(llm, retry_policy=policy, passing_score=self.settings.PASSING_SCORE),
            settings=self.settings,
        )

    async def run(
        self,
        topic: str,
        categories: Sequence[str] = RESEARCH_CATEGORIES,
        regions: Sequence[str] = ("global",),
        items_per_category: int = 1,
        target_count: Optional[int] = None,
        target_distribution=None,
        thresholds: FilteringThresholds = FilteringThresholds(),
        constraints: Optional[IdeationConstraints] = None,
        innovation_level: str = "balanced",
        session_id: Optional[str] = None,
    ) -> CoordinatorOutcome:
        session_id = session_id or uuid.uuid4().hex[:12]
        log = logger.bind(session_id=session_id, topic=topic)

        research_request = ResearchRequest(
            topic=topic,
            categories=tuple(categories),
            regions=tuple(regions),
            items_per_category=items_per_category,
        )
        ideation_request = IdeationRequest(
            research=(),
            target_count=target_count,
            target_distribution=dict(target_distribution or RISK_TIER_DISTRIBUTION),
            thresholds=thresholds,
            constraints=constraints,
            innovation_level=innovation_level,
        )
        # Both requests are checked before any service call
        research_request.validate()
        self.ideation.prepare(ideation_request)
        log.info("coordinator_start")

        research = await self.research.run(research_request)
        outcome = CoordinatorOutcome(session_id=session_id, topic=topic, research=research)

        if research.result.next_action == NextAction.NEED_REPLANNING:
            outcome.skipped_reason = "research needs re-planning"
            log.warning("ideation_skipped", reason=outcome.skipped_reason,
                        mean_quality=research.result.sufficiency.mean_quality)
        else:
            outcome.ideation = await self.ideation.run(
                replace(ideation_request, research=tuple(research.result.records)))

        if self.store is not None:
            try:
                self.store.save(session_id, outcome.to_dict())
            except Exception as e:
                outcome.save_error = f"{type(e).__name__}: {e}"
                log.error("session_save_failed", error=outcome.save_error)
        log.info("coordinator_complete", research=research.report.termination_reason,
                 ideation=outcome.ideation.report.termination_reason if outcome.ideation else None)
        return outcome
