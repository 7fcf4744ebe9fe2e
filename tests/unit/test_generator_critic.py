"""Unit tests for idea generation and the critic."""

import json

import pytest

from ideation_system.config.settings import RISK_TIER_DISTRIBUTION
from ideation_system.exceptions import ServiceDataError, ServiceTransientError
from ideation_system.ideation.critic import Critic, heuristic_points, points_from_payload
from ideation_system.ideation.generator import (
    IdeaGenerator,
    calculate_target_count,
    derive_ideas,
    ideas_from_payload,
    tier_counts,
)
from ideation_system.models import Candidate
from tests.conftest import ScriptedLLM, make_record, scored_corpus_records


class BrokenLLM:
    async def generate(self, prompt):
        raise ServiceTransientError("upstream 503", status_code=503)


class GarbageLLM:
    async def generate(self, prompt):
        return "I'd rather not answer in JSON today."


def test_target_count():
    assert calculate_target_count() == 6
    assert calculate_target_count(6, "disruptive") == 8
    assert calculate_target_count(2) == 4
    assert calculate_target_count(6, "balanced", {"a": 0.5}) == 4


def test_tier_counts_round_half_up():
    assert tier_counts(6, RISK_TIER_DISTRIBUTION) == {
        "conservative": 2, "balanced": 3, "challenging": 1, "disruptive": 0,
    }


class TestDerivedIdeas:
    """Deterministic ideas built from research when no service answer is usable."""

    def test_tiers_draw_on_different_records(self):
        research = scored_corpus_records()
        conservative = derive_ideas(research, "conservative", 2)
        balanced = derive_ideas(research, "balanced", 3)
        sources = [i.attributes["source_record_ids"][0] for i in conservative + balanced]
        assert len(set(sources)) == 5

    def test_derived_ideas_clear_standard_thresholds(self):
        for idea in derive_ideas(scored_corpus_records(), "conservative", 2):
            assert idea.estimated_value >= 1e10
            assert idea.synergy_score >= 6
            assert idea.feasibility >= 6
            assert idea.risk_tier == "conservative"

    def test_rounds_shift_the_source(self):
        research = scored_corpus_records()
        first = derive_ideas(research, "balanced", 1, round_number=1)[0]
        second = derive_ideas(research, "balanced", 1, round_number=2)[0]
        assert first.id != second.id
        assert first.attributes["source_record_ids"] != second.attributes["source_record_ids"]

    def test_empty_inputs(self):
        assert derive_ideas([], "balanced", 3) == []
        assert derive_ideas([make_record("startup_trends")], "balanced", 0) == []


class TestIdeaGenerator:
    """Service answers parsed into candidates, with research-derived fallback."""

    @pytest.mark.asyncio
    async def test_parsed_answer(self):
        llm = ScriptedLLM()
        result = await IdeaGenerator(llm).generate_for_tier(scored_corpus_records(), "balanced", 2)
        assert not result.is_fallback
        assert [c.id for c in result.value] == ["balanced-r1-1", "balanced-r1-2"]
        assert result.value[0].feasibility == 9.0
        assert "risk level 'balanced'" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_feedback_is_included_in_prompt(self):
        llm = ScriptedLLM()
        await IdeaGenerator(llm).generate_for_tier(scored_corpus_records(), "balanced", 1,
                                                   feedback_text="Improve the weakest dimensions")
        assert "Feedback from the previous round" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_service_error_falls_back(self):
        result = await IdeaGenerator(BrokenLLM()).generate_for_tier(scored_corpus_records(), "balanced", 2)
        assert result.is_fallback
        assert len(result.value) == 2
        assert result.value[0].attributes["origin"] == "derived"

    @pytest.mark.asyncio
    async def test_unparseable_answer_falls_back(self):
        result = await IdeaGenerator(GarbageLLM()).generate_for_tier(scored_corpus_records(), "balanced", 1)
        assert result.is_fallback
        assert len(result.value) == 1

    @pytest.mark.asyncio
    async def test_invalid_idea_values_fall_back(self):
        llm = ScriptedLLM(ideas=[{"title": "x", "estimated_value": -5}])
        result = await IdeaGenerator(llm).generate_for_tier(scored_corpus_records(), "balanced", 1)
        assert result.is_fallback

    @pytest.mark.asyncio
    async def test_no_service_uses_derived_ideas(self):
        result = await IdeaGenerator().generate_for_tier(scored_corpus_records(), "conservative", 2)
        assert result.is_fallback
        assert result.reason == "no text-generation service configured"

    def test_ideas_from_payload_rejects_bad_shapes(self):
        with pytest.raises(ServiceDataError):
            ideas_from_payload({"ideas": []}, "balanced", 1)
        with pytest.raises(ServiceDataError):
            ideas_from_payload({"ideas": ["just a string"]}, "balanced", 1)


def candidate(**kw):
    base = dict(id="c1", title="Embedded lending", description="Credit for marketplaces",
                risk_tier="balanced", estimated_value=3e10, synergy_score=8, feasibility=8,
                confidence="high", attributes={"target_market": "mid-sized regional banks in Japan"})
    base.update(kw)
    return Candidate(**base)


class TestCritic:
    """Four dimensions, 100 points, pass at the passing score."""

    def test_heuristic_points_within_dimension_maxima(self):
        points = heuristic_points(candidate())
        assert points["market_potential"] <= 35
        assert points["strategic_fit"] == pytest.approx(28.0)
        assert points["competitive_advantage"] <= 15
        assert points["profitability"] <= 15

    def test_points_are_clamped(self):
        points = points_from_payload({"scores": {
            "market_potential": 50, "strategic_fit": -3, "competitive_advantage": 10, "profitability": 15,
        }})
        assert points == {"market_potential": 35.0, "strategic_fit": 0.0,
                          "competitive_advantage": 10.0, "profitability": 15.0}

    def test_missing_dimension_is_data_error(self):
        with pytest.raises(ServiceDataError):
            points_from_payload({"scores": {"market_potential": 10}})

    @pytest.mark.asyncio
    async def test_service_scores(self):
        evaluation = await Critic(ScriptedLLM()).evaluate(candidate(), round_number=2)
        assert evaluation.composite_score == 84
        assert evaluation.passed
        assert evaluation.round_number == 2
        assert evaluation.reasons == ("solid",)

    @pytest.mark.asyncio
    async def test_below_passing_score(self):
        low = {"market_potential": 10, "strategic_fit": 10, "competitive_advantage": 5, "profitability": 5}
        evaluation = await Critic(ScriptedLLM(scores=low)).evaluate(candidate(), round_number=1)
        assert evaluation.composite_score == 30
        assert not evaluation.passed
        assert any("below passing score" in r for r in evaluation.reasons)

    @pytest.mark.asyncio
    async def test_unusable_answer_uses_heuristic(self):
        evaluation = await Critic(GarbageLLM()).evaluate(candidate(), round_number=1)
        assert evaluation.composite_score == pytest.approx(sum(heuristic_points(candidate()).values()))
        assert any(r.startswith("heuristic evaluation") for r in evaluation.reasons)

    @pytest.mark.asyncio
    async def test_strong_candidate_passes_heuristically(self):
        evaluation = await Critic().evaluate(candidate(), round_number=1)
        assert evaluation.passed
        assert json.dumps(evaluation.sub_scores)
