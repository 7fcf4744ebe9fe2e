"""
Research planning: turn a topic into prioritized retrieval tasks.

Topics per category/region come from the text-generation service when one
is configured (numbered-list answer), otherwise from category templates.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple
import logging
import re

from ideation_system.config.settings import (
    CATEGORY_KEYWORDS,
    CATEGORY_PRIORITY,
    REGION_PRIORITY,
    REGIONS,
    RESEARCH_CATEGORIES,
)
from ideation_system.exceptions import ConfigurationError, ServiceError
from ideation_system.execution.retry import NO_RETRY, RetryPolicy, with_retry
from ideation_system.llm.parsing import Fallback, Parsed, ParseResult
from ideation_system.models import Task
from ideation_system.monitoring_metrics import GENERATION_FALLBACKS

logger = logging.getLogger(__name__)

_NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s*(.+?)\s*$")

CATEGORY_DESCRIPTIONS: Dict[str, str] = {
    "startup_trends": "startup trends and emerging companies",
    "industry_challenges": "industry challenges and unsolved market problems",
    "technology_developments": "technology developments and innovation",
    "investment_patterns": "investment trends and funding patterns",
}

FOLLOW_UP_KEYWORDS = ("latest developments", "case study")


@dataclass(frozen=True)
class ResearchRequest:
    topic: str
    categories: Tuple[str, ...] = RESEARCH_CATEGORIES
    regions: Tuple[str, ...] = ("global",)
    items_per_category: int = 1

    def validate(self) -> None:
        if not self.topic or not self.topic.strip():
            raise ConfigurationError("research topic is empty")
        if not self.categories:
            raise ConfigurationError("at least one research category is required")
        for name, values in (("categories", self.categories), ("regions", self.regions)):
            if len(set(values)) != len(values):
                raise ConfigurationError(f"duplicate {name}: {list(values)}")
        unknown = [r for r in self.regions if r not in REGIONS]
        if unknown:
            raise ConfigurationError(f"unknown regions: {unknown}; expected {sorted(REGIONS)}")
        if self.items_per_category < 1:
            raise ConfigurationError("items_per_category must be at least 1")


def calculate_priority(category: str, region: str, topic: str) -> int:
    """Mean of category, region and topic-mention priorities, capped at 10."""
    category_priority = CATEGORY_PRIORITY.get(category, 5)
    region_priority = REGION_PRIORITY.get(region, 5)
    mentioned = 2 if category.replace("_", " ") in topic.lower() else 0
    return int(min(10, round((category_priority + region_priority + mentioned) / 3)))


def build_query(task: Task) -> str:
    """Search query for a task: topic, keywords, then the region qualifier."""
    base = " ".join([task.topic, *task.keywords]).strip()
    suffix = REGIONS.get(task.region, "")
    return f"{base} {suffix}".strip()


def parse_numbered_list(text: str) -> List[str]:
    items = []
    for line in (text or "").splitlines():
        m = _NUMBERED_RE.match(line)
        if m:
            items.append(m.group(1).strip("[]\"' "))
    return [i for i in items if i]


def template_topics(topic: str, category: str, count: int) -> List[str]:
    description = CATEGORY_DESCRIPTIONS.get(category, category.replace("_", " "))
    topics = [f"{topic} {description}"]
    keywords = CATEGORY_KEYWORDS.get(category, ())
    for kw in keywords:
        if len(topics) >= count:
            break
        topics.append(f"{topic} {kw}")
    while len(topics) < count:
        topics.append(f"{topic} {description} {len(topics) + 1}")
    return topics[:count]


class ResearchPlanner:
    def __init__(self, llm=None, retry_policy: RetryPolicy = NO_RETRY):
        self.llm = llm
        self.retry_policy = retry_policy

    async def _topics(self, request: ResearchRequest, category: str, region: str) -> ParseResult:
        count = request.items_per_category
        fallback = lambda: template_topics(request.topic, category, count)
        if self.llm is None:
            return Fallback(fallback(), reason="no text-generation service configured")

        prompt = (
            f"Propose {count} specific, searchable research topics.\n"
            f"Subject: {request.topic}\n"
            f"Category: {CATEGORY_DESCRIPTIONS.get(category, category)}\n"
            f"Market: {REGIONS.get(region, region)}\n"
            f"Cover a different industry in each topic.\n"
            f"Answer as a numbered list, one topic per line."
        )
        try:
            raw, _ = await with_retry(lambda: self.llm.generate(prompt), self.retry_policy)
        except ServiceError as e:
            logger.warning(f"Topic generation failed for {category}/{region}: {e}")
            GENERATION_FALLBACKS.labels(stage="planning").inc()
            return Fallback(fallback(), reason=str(e))

        topics = parse_numbered_list(raw)
        if not topics:
            GENERATION_FALLBACKS.labels(stage="planning").inc()
            return Fallback(fallback(), reason="no numbered topics in response", raw=raw[:500])
        return Parsed((topics + fallback())[:count])

    async def plan(self, request: ResearchRequest) -> List[Task]:
        """One task per topic for every category/region pair, highest priority first."""
        request.validate()
        tasks: List[Task] = []
        for category in request.categories:
            keywords = CATEGORY_KEYWORDS.get(category, ())[:3]
            for region in request.regions:
                result = await self._topics(request, category, region)
                if result.is_fallback:
                    logger.debug(f"Using template topics for {category}/{region}: {result.reason}")
                for i, topic in enumerate(result.value):
                    tasks.append(Task(
                        id=f"{category}-{region}-{i + 1}",
                        category=category,
                        topic=topic,
                        keywords=tuple(keywords),
                        region=region,
                        priority=calculate_priority(category, region, request.topic),
                    ))
        tasks.sort(key=lambda t: -t.priority)
        logger.info(f"Planned {len(tasks)} research tasks for '{request.topic}'")
        return tasks

    def follow_up(self, tasks: Sequence[Task], short_categories: Sequence[str], round_number: int) -> List[Task]:
        """Re-plan tasks for categories that fell short, with derived ids and extra keywords."""
        short = set(short_categories)
        seen_origins = set()
        out = []
        for task in tasks:
            if task.category not in short or task.origin_id in seen_origins:
                continue
            seen_origins.add(task.origin_id)
            out.append(task.for_round(round_number, extra_keywords=FOLLOW_UP_KEYWORDS))
        logger.info(f"Follow-up round {round_number}: {len(out)} tasks for {sorted(short)}")
        return out
