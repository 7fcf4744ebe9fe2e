"""Unit tests for research planning."""

import pytest

from ideation_system.config.settings import RESEARCH_CATEGORIES
from ideation_system.exceptions import ConfigurationError, ServiceTransientError
from ideation_system.models import Task
from ideation_system.planning.planner import (
    FOLLOW_UP_KEYWORDS,
    ResearchPlanner,
    ResearchRequest,
    build_query,
    calculate_priority,
    parse_numbered_list,
    template_topics,
)


class FailingLLM:
    async def generate(self, prompt):
        raise ServiceTransientError("rate limited", status_code=429)


class NumberedLLM:
    def __init__(self, text):
        self.text = text

    async def generate(self, prompt):
        return self.text


def test_priority_formula():
    # (9 + 9 + 0) / 3
    assert calculate_priority("industry_challenges", "japan", "fintech") == 6
    # topic mention adds 2: (8 + 8 + 2) / 3
    assert calculate_priority("startup_trends", "usa", "Startup trends in fintech") == 6
    assert calculate_priority("unknown", "nowhere", "x") == 3


def test_build_query_appends_region_suffix():
    task = Task(id="t", category="startup_trends", topic="fintech", keywords=("startup",), region="japan")
    assert build_query(task) == "fintech startup Japan"


def test_parse_numbered_list():
    text = "Topics:\n1. Embedded finance\n2) \"Open banking\"\n- ignored\n3.  [Neobanks] "
    assert parse_numbered_list(text) == ["Embedded finance", "Open banking", "Neobanks"]
    assert parse_numbered_list("") == []


def test_template_topics_fill_count():
    topics = template_topics("fintech", "startup_trends", 3)
    assert len(topics) == 3
    assert topics[0].startswith("fintech startup trends")


class TestResearchPlanner:
    """Task generation from topic templates or service answers."""

    @pytest.mark.asyncio
    async def test_plan_without_service(self):
        request = ResearchRequest(topic="fintech", regions=("japan", "global"), items_per_category=2)
        tasks = await ResearchPlanner().plan(request)

        assert len(tasks) == len(RESEARCH_CATEGORIES) * 2 * 2
        assert len({t.id for t in tasks}) == len(tasks)
        priorities = [t.priority for t in tasks]
        assert priorities == sorted(priorities, reverse=True)
        assert all(t.round_number == 1 and t.origin_id == t.id for t in tasks)

    @pytest.mark.asyncio
    async def test_plan_uses_service_topics(self):
        planner = ResearchPlanner(NumberedLLM("1. QR payments\n2. BNPL regulation"))
        tasks = await planner.plan(ResearchRequest(topic="fintech", categories=("startup_trends",),
                                                   items_per_category=2))
        assert [t.topic for t in tasks] == ["QR payments", "BNPL regulation"]

    @pytest.mark.asyncio
    async def test_service_failure_falls_back_to_templates(self):
        planner = ResearchPlanner(FailingLLM())
        tasks = await planner.plan(ResearchRequest(topic="fintech", categories=("startup_trends",)))
        assert len(tasks) == 1
        assert tasks[0].topic.startswith("fintech")

    @pytest.mark.asyncio
    async def test_unusable_answer_falls_back(self):
        planner = ResearchPlanner(NumberedLLM("I cannot help with that."))
        tasks = await planner.plan(ResearchRequest(topic="fintech", categories=("investment_patterns",)))
        assert tasks[0].topic.startswith("fintech investment")

    def test_follow_up_only_short_categories(self):
        tasks = [
            Task(id="startup_trends-global-1", category="startup_trends", topic="a", keywords=("startup",)),
            Task(id="investment_patterns-global-1", category="investment_patterns", topic="b"),
        ]
        follow = ResearchPlanner().follow_up(tasks, ["startup_trends"], round_number=2)

        assert [t.id for t in follow] == ["startup_trends-global-1-r2"]
        assert follow[0].origin_id == "startup_trends-global-1"
        assert follow[0].round_number == 2
        assert set(FOLLOW_UP_KEYWORDS) <= set(follow[0].keywords)
        assert follow[0].priority == tasks[0].priority + 1

    @pytest.mark.parametrize("request_kwargs", [
        {"topic": " "},
        {"topic": "x", "categories": ()},
        {"topic": "x", "regions": ("mars",)},
        {"topic": "x", "items_per_category": 0},
        {"topic": "x", "categories": ("startup_trends", "startup_trends")},
        {"topic": "x", "regions": ("global", "global")},
    ])
    def test_invalid_requests(self, request_kwargs):
        with pytest.raises(ConfigurationError):
            ResearchRequest(**request_kwargs).validate()
