"""Unit tests for the iteration controller."""

from types import SimpleNamespace

import pytest

from ideation_system.context import RunContext
from ideation_system.exceptions import ConfigurationError
from ideation_system.iteration.controller import (
    IterationController,
    IterationPhase,
    IterationState,
    RoundOutcome,
    TerminationReason,
    derive_feedback,
)
from ideation_system.models import EvaluationRecord

DIMS = {"market_potential": 35, "strategic_fit": 35, "competitive_advantage": 15, "profitability": 15}


def evaluation(subject_id, total, passed, round_number=1, **scores):
    return EvaluationRecord(subject_id=subject_id, round_number=round_number,
                            sub_scores=scores, composite_score=total, passed=passed)


def scripted(outcomes):
    """generate/evaluate pair that replays one RoundOutcome per round."""
    calls = []

    async def generate(state):
        calls.append(state.round_number)
        return state.round_number

    async def evaluate(batch, state):
        outcome = outcomes[batch - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return generate, evaluate, calls


def accepted_with(score, id="c1"):
    return RoundOutcome(
        accepted=[SimpleNamespace(id=id, composite_score=score)],
        evaluations=[evaluation(id, score, score >= 70)],
        generated=1,
    )


class TestTermination:
    """Every run stops within budget with exactly one reason."""

    @pytest.mark.asyncio
    async def test_target_achieved_first_round(self):
        gen, ev, calls = scripted([accepted_with(80)])
        state = await IterationController(gen, ev, budget=3, target_score=70).run()
        assert state.termination_reason == TerminationReason.TARGET_ACHIEVED
        assert state.round_number == 1
        assert state.phase == IterationPhase.COMPLETED
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_budget_exhausted(self):
        gen, ev, calls = scripted([accepted_with(50), accepted_with(60, id="c2")])
        state = await IterationController(gen, ev, budget=2, target_score=70).run()
        assert state.termination_reason == TerminationReason.BUDGET_EXHAUSTED
        assert state.best_score_so_far == 60
        assert calls == [1, 2]

    @pytest.mark.asyncio
    async def test_failed_final_round_is_insufficient_results(self):
        gen, ev, _ = scripted([accepted_with(50), RoundOutcome()])
        state = await IterationController(gen, ev, budget=2, target_score=70).run()
        assert state.termination_reason == TerminationReason.INSUFFICIENT_RESULTS
        assert state.failed_rounds == 1
        assert [a.id for a in state.accepted] == ["c1"]

    @pytest.mark.asyncio
    async def test_round_exception_becomes_failed_round(self):
        context = RunContext(pipeline="test")
        gen, ev, _ = scripted([RuntimeError("generator crashed")])
        state = await IterationController(gen, ev, budget=1, target_score=70, context=context).run()
        assert state.termination_reason == TerminationReason.INSUFFICIENT_RESULTS
        assert "RuntimeError" in state.history[0].error
        assert any("generator crashed" in e for e in context.errors)

    @pytest.mark.asyncio
    async def test_configuration_errors_propagate(self):
        gen, ev, _ = scripted([ConfigurationError("bad weights")])
        with pytest.raises(ConfigurationError):
            await IterationController(gen, ev, budget=1, target_score=70).run()

    @pytest.mark.asyncio
    async def test_passed_evaluation_of_rejected_item_does_not_count(self):
        outcome = RoundOutcome(
            accepted=[SimpleNamespace(id="kept", composite_score=40)],
            evaluations=[evaluation("kept", 40, False), evaluation("dropped", 90, True)],
        )
        gen, ev, _ = scripted([outcome])
        state = await IterationController(gen, ev, budget=1, target_score=70).run()
        assert state.best_score_so_far == 40
        assert state.termination_reason == TerminationReason.BUDGET_EXHAUSTED

    def test_terminate_early(self):
        gen, ev, calls = scripted([])
        controller = IterationController(gen, ev, budget=2, target_score=70)
        state = controller.terminate_early(TerminationReason.INSUFFICIENT_INPUT, "too few records")
        assert state.terminal
        assert state.round_number == 0
        assert calls == []

    @pytest.mark.asyncio
    async def test_terminal_state_is_not_rerun(self):
        gen, ev, calls = scripted([accepted_with(90)])
        controller = IterationController(gen, ev, budget=2, target_score=70)
        state = controller.terminate_early(TerminationReason.INSUFFICIENT_INPUT)
        assert await controller.run(state) is state
        assert calls == []

    def test_state_terminates_once(self):
        state = IterationState(budget=1)
        state.terminate(TerminationReason.BUDGET_EXHAUSTED)
        with pytest.raises(RuntimeError):
            state.terminate(TerminationReason.TARGET_ACHIEVED)

    @pytest.mark.parametrize("budget", [0, -1])
    def test_invalid_budget(self, budget):
        gen, ev, _ = scripted([])
        with pytest.raises(ConfigurationError):
            IterationController(gen, ev, budget=budget, target_score=70)

    def test_target_required(self):
        gen, ev, _ = scripted([])
        with pytest.raises(ConfigurationError):
            IterationController(gen, ev, budget=1)


class TestAccumulation:
    """Research accumulates across rounds; ideation keeps the latest round."""

    @pytest.mark.asyncio
    async def test_accumulate(self):
        gen, ev, _ = scripted([accepted_with(10, "a"), accepted_with(20, "b")])
        state = await IterationController(gen, ev, budget=2, target_reached=lambda s, o: False).run()
        assert [a.id for a in state.accepted] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_replace(self):
        gen, ev, _ = scripted([accepted_with(10, "a"), accepted_with(20, "b")])
        state = await IterationController(gen, ev, budget=2, target_score=70, accumulate=False).run()
        assert [a.id for a in state.accepted] == ["b"]

    @pytest.mark.asyncio
    async def test_context_records_rounds(self):
        context = RunContext(pipeline="test")
        outcome = accepted_with(80)
        outcome.rejection_counts = {"min_synergy": 2}
        gen, ev, _ = scripted([outcome])
        await IterationController(gen, ev, budget=2, target_score=70, context=context).run()
        report = context.finalize("target_achieved")
        assert report.rounds_run == 1
        assert report.rejection_reason_counts == {"min_synergy": 2}
        assert report.to_contract()["terminationReason"] == "target_achieved"


class TestFeedback:
    """Weakest dimensions relative to their maximum."""

    def test_weakest_two_dimensions(self):
        evals = [
            evaluation("a", 60, False, market_potential=30, strategic_fit=10, competitive_advantage=12,
                       profitability=3),
            evaluation("b", 60, False, market_potential=28, strategic_fit=14, competitive_advantage=12,
                       profitability=5),
        ]
        feedback = derive_feedback(evals, DIMS, under_represented=["disruptive"])
        assert feedback.priority_areas == ["profitability", "strategic_fit"]
        assert "disruptive" in feedback.to_prompt()

    def test_no_evaluations(self):
        feedback = derive_feedback([], DIMS)
        assert feedback.priority_areas == []
        assert feedback.to_prompt() == ""

    @pytest.mark.asyncio
    async def test_feedback_reaches_next_round(self):
        seen = []
        outcomes = [
            RoundOutcome(
                accepted=[SimpleNamespace(id="a", composite_score=50)],
                evaluations=[evaluation("a", 50, False, market_potential=30, strategic_fit=5,
                                        competitive_advantage=10, profitability=5)],
            ),
            accepted_with(90, "b"),
        ]

        async def generate(state):
            seen.append(state.feedback_for_next_round)
            return state.round_number

        async def evaluate(batch, state):
            return outcomes[batch - 1]

        controller = IterationController(generate, evaluate, budget=3, target_score=70, dimension_max=DIMS)
        state = await controller.run()
        assert seen[0] is None
        assert seen[1].priority_areas == ["strategic_fit", "profitability"]
        assert state.termination_reason == TerminationReason.TARGET_ACHIEVED
