"""Unit tests for the Quick Version audit, driven through the runner."""

from __future__ import annotations

import pytest

from governance_interview.domain.enums import PredictionStatus, ProblemDirection, WorkflowKind
from governance_interview.domain.machine import AnswerMode
from governance_interview.schemas.decisions import DirectionAssessment, ParsedProblems, QuickReport
from governance_interview.services.exceptions import (
    ExternalGenerationFailed,
    InvalidSessionState,
    SkipNotAllowed,
    ValidationFailed,
)
from governance_interview.services.runner import InterviewPhase
from governance_interview.state.sessions import SessionStatus
from tests.helpers.interviews import (
    AVOIDED_ANSWER,
    COMFORT_ANSWER,
    CONCRETE_EXAMPLE,
    DIRECTION_ANSWERS,
    PROBLEMS_ANSWER,
    QUICK_REPORT,
    ROLE_ANSWER,
    VAGUE_ANSWER,
    VAGUE_ANSWER_2,
    VAGUE_ANSWER_3,
    run_quick,
)


async def start_quick(runner, user_id: str = "user-1") -> str:
    view = await runner.start(user_id, WorkflowKind.QUICK, abstraction_mode=False)
    return view.session_id


class TestQuickStart:
    """Starting a session."""

    async def test_start_waits_at_privacy_gate(self, runner) -> None:
        """Without a privacy choice the session stops at the sensitivity gate."""
        view = await runner.start("user-1", WorkflowKind.QUICK)

        assert view.state == "sensitivity_gate"
        assert view.phase == InterviewPhase.ACTIVE
        assert view.expected_form == "privacy"
        assert view.answer_mode == AnswerMode.FORM

    async def test_privacy_choice_moves_to_first_question(self, runner, session_repo) -> None:
        """Answering the gate stores the choice and asks Q1."""
        view = await runner.start("user-1", WorkflowKind.QUICK)
        view = await runner.set_privacy(view.session_id, True)

        assert view.state == "q1_role_context"
        assert view.question_number == 1
        assert view.question_text.startswith("In 1-2 sentences")
        assert session_repo.get(view.session_id).data.abstraction_mode is True


class TestQuickHappyPath:
    """All answers concrete, through to the published bet."""

    async def test_full_audit(self, runner, session_repo, governance_repo, llm) -> None:
        """Five questions produce the report and one open prediction."""
        view = await run_quick(runner)

        assert view.phase == InterviewPhase.FINALIZED
        assert view.state == "finalized"
        assert view.progress_percent == 100
        assert view.output_markdown == QUICK_REPORT.markdown

        record = session_repo.get(view.session_id)
        data = record.data
        assert record.status == SessionStatus.FINALIZED
        assert record.completed_at is not None
        assert data.role_context == ROLE_ANSWER
        assert [p.name for p in data.problems] == [
            "Payments API uptime",
            "Vendor contract renewals",
            "Hiring backend engineers",
        ]
        assert data.avoided_decision_cost == "two weeks of rework"
        assert data.comfort_work == COMFORT_ANSWER
        assert data.assessment == QUICK_REPORT.assessment
        assert len(data.transcript) == 2 + 9 + 2

        predictions = governance_repo.list_predictions("user-1")
        assert len(predictions) == 1
        assert predictions[0].id == data.created_prediction_id
        assert predictions[0].prediction == QUICK_REPORT.bet_prediction
        assert predictions[0].status == PredictionStatus.OPEN
        assert predictions[0].source_session_id == view.session_id

    async def test_direction_loop_asks_three_per_problem(self, runner, llm) -> None:
        """Q3 holds until every sub-question of every problem is answered."""
        llm.respond(
            DirectionAssessment,
            DirectionAssessment(direction=ProblemDirection.APPRECIATING, rationale="Trust is required"),
        )
        session_id = await start_quick(runner)
        await runner.submit_answer(session_id, ROLE_ANSWER)
        view = await runner.submit_answer(session_id, PROBLEMS_ANSWER)

        asked = []
        for _ in range(9):
            assert view.state == "q3_direction_loop"
            asked.append(view.question_text)
            view = await runner.submit_answer(session_id, DIRECTION_ANSWERS[len(asked) % 3])

        assert view.state == "q4_avoided_decision"
        assert asked[0] == 'For "Payments API uptime": Is AI getting cheaper at solving this? How so?'
        assert asked[3].startswith('For "Vendor contract renewals"')
        assert asked[8] == 'For "Hiring backend engineers": Is trust or special access required to solve this?'
        assert llm.calls_for(DirectionAssessment) == 3

        data = runner.get_record(session_id).data
        assert all(p.direction == ProblemDirection.APPRECIATING for p in data.problems)
        assert [e.context_index for e in data.transcript[2:]] == [0, 0, 0, 1, 1, 1, 2, 2, 2]

    async def test_llm_parse_used_when_available(self, runner, llm) -> None:
        """Parsed problems are capped at three."""
        llm.respond(ParsedProblems, ParsedProblems(problems=["Uptime", "Renewals", "Hiring", "Budget"]))
        session_id = await start_quick(runner)
        await runner.submit_answer(session_id, ROLE_ANSWER)
        view = await runner.submit_answer(session_id, PROBLEMS_ANSWER)

        assert view.question_text.startswith('For "Uptime"')
        assert [p.name for p in runner.get_record(session_id).data.problems] == ["Uptime", "Renewals", "Hiring"]

    async def test_direction_fallback_is_stable(self, runner, session_repo) -> None:
        """Without the LLM every problem is classified stable."""
        view = await run_quick(runner)
        problems = session_repo.get(view.session_id).data.problems
        assert {p.direction for p in problems} == {ProblemDirection.STABLE}
        assert problems[0].direction_rationale == "Could not evaluate direction"


class TestQuickClarification:
    """Vague answers, clarify states and the skip budget."""

    async def test_vague_answer_routes_to_clarify(self, runner) -> None:
        """The clarify state offers a suggestion and a skip."""
        session_id = await start_quick(runner)
        view = await runner.submit_answer(session_id, VAGUE_ANSWER)

        assert view.state == "q1_clarify"
        assert view.can_skip
        assert view.clarify_suggestion
        assert view.question_text == "Give one concrete example (who/what/when/result)."
        assert view.question_number == 1

    async def test_clarification_enriches_answer(self, runner) -> None:
        """The example is attached to the transcript entry and the accumulator."""
        session_id = await start_quick(runner)
        await runner.submit_answer(session_id, VAGUE_ANSWER)
        view = await runner.submit_answer(session_id, CONCRETE_EXAMPLE)

        assert view.state == "q2_paid_problems"
        assert view.clarify_suggestion is None
        data = runner.get_record(session_id).data
        assert data.role_context == f"{VAGUE_ANSWER} Example: {CONCRETE_EXAMPLE}"
        assert len(data.transcript) == 1
        assert data.transcript[0].was_vague
        assert data.transcript[0].concrete_example == CONCRETE_EXAMPLE

    async def test_skip_continues_with_vague_answer(self, runner) -> None:
        """A skip is recorded and counted."""
        session_id = await start_quick(runner)
        await runner.submit_answer(session_id, VAGUE_ANSWER)
        view = await runner.skip(session_id)

        assert view.state == "q2_paid_problems"
        assert view.vagueness_skip_count == 1
        data = runner.get_record(session_id).data
        assert data.role_context == VAGUE_ANSWER
        assert data.transcript[-1].skipped
        assert data.transcript[-1].answer == "[example refused]"
        assert data.transcript[-1].state == "q1_clarify"

    async def test_third_skip_refused(self, runner) -> None:
        """After two skips the user must give an example."""
        session_id = await start_quick(runner)
        await runner.submit_answer(session_id, VAGUE_ANSWER)
        await runner.skip(session_id)
        await runner.submit_answer(session_id, PROBLEMS_ANSWER)
        await runner.submit_answer(session_id, VAGUE_ANSWER_2)
        await runner.skip(session_id)
        for answer in (DIRECTION_ANSWERS * 3)[1:]:
            await runner.submit_answer(session_id, answer)
        view = await runner.submit_answer(session_id, VAGUE_ANSWER_3)

        assert view.state == "q4_clarify"
        assert not view.can_skip
        with pytest.raises(SkipNotAllowed, match="Maximum skips reached"):
            await runner.skip(session_id)

        view = await runner.submit_answer(session_id, CONCRETE_EXAMPLE)
        assert view.state == "q5_comfort_work"
        assert view.vagueness_skip_count == 2

    async def test_skip_outside_clarify_refused(self, runner) -> None:
        """Skip is only offered in clarify states."""
        session_id = await start_quick(runner)
        with pytest.raises(SkipNotAllowed, match="only available"):
            await runner.skip(session_id)

    async def test_clarify_in_direction_loop_stays_on_problem(self, runner) -> None:
        """A clarified sub-answer resumes the loop at the next sub-question."""
        session_id = await start_quick(runner)
        await runner.submit_answer(session_id, ROLE_ANSWER)
        await runner.submit_answer(session_id, PROBLEMS_ANSWER)
        view = await runner.submit_answer(session_id, VAGUE_ANSWER)
        assert view.state == "q3_clarify"

        view = await runner.submit_answer(session_id, CONCRETE_EXAMPLE)
        assert view.state == "q3_direction_loop"
        assert view.question_text == 'For "Payments API uptime": What\'s the cost if you get this wrong?'
        problem = runner.get_record(session_id).data.problems[0]
        assert problem.evidence_ai_cheaper == f"{VAGUE_ANSWER} Example: {CONCRETE_EXAMPLE}"

    async def test_clarified_problem_list_replaces_vague_one(self, runner) -> None:
        """Q3 walks the problems named in the example, not the vague answer."""
        session_id = await start_quick(runner)
        await runner.submit_answer(session_id, ROLE_ANSWER)
        view = await runner.submit_answer(session_id, VAGUE_ANSWER)
        assert view.state == "q2_clarify"

        view = await runner.submit_answer(session_id, PROBLEMS_ANSWER)

        assert view.state == "q3_direction_loop"
        assert view.question_text == 'For "Payments API uptime": Is AI getting cheaper at solving this? How so?'
        data = runner.get_record(session_id).data
        assert [p.name for p in data.problems] == [
            "Payments API uptime",
            "Vendor contract renewals",
            "Hiring backend engineers",
        ]
        assert data.current_problem_index == 0
        assert data.current_direction_sub_question == 0
        assert data.transcript[-1].answer == VAGUE_ANSWER
        assert data.transcript[-1].concrete_example == PROBLEMS_ANSWER

    async def test_blank_answer_rejected(self, runner) -> None:
        """An empty answer is a validation error and changes nothing."""
        session_id = await start_quick(runner)
        with pytest.raises(ValidationFailed):
            await runner.submit_answer(session_id, "   ")
        assert runner.view(session_id).state == "q1_role_context"
        assert runner.view(session_id).error == "Answer is required"


class TestQuickFinalize:
    """Report failures keep the session at its pre-finalize checkpoint."""

    async def test_report_failure_can_be_retried(self, runner, session_repo, governance_repo, llm) -> None:
        """A failed report leaves the session finalizing; finalize retries it."""
        llm.fail(QuickReport)
        session_id = await start_quick(runner)
        for answer in (ROLE_ANSWER, PROBLEMS_ANSWER, *(DIRECTION_ANSWERS * 3), AVOIDED_ANSWER):
            await runner.submit_answer(session_id, answer)
        with pytest.raises(ExternalGenerationFailed):
            await runner.submit_answer(session_id, COMFORT_ANSWER)

        view = runner.view(session_id)
        assert view.phase == InterviewPhase.FINALIZING
        assert view.state == "generate_output"
        assert view.error == "Could not generate the audit report"
        assert session_repo.get(session_id).status == SessionStatus.ACTIVE
        assert governance_repo.list_predictions("user-1") == []

        llm.respond(QuickReport, QUICK_REPORT)
        view = await runner.finalize(session_id)

        assert view.phase == InterviewPhase.FINALIZED
        assert view.error is None
        assert len(governance_repo.list_predictions("user-1")) == 1

    async def test_finalize_before_ready_refused(self, runner) -> None:
        """Finalize only applies to a session waiting on it."""
        session_id = await start_quick(runner)
        with pytest.raises(InvalidSessionState, match="not ready to finalize"):
            await runner.finalize(session_id)

    async def test_finalized_session_rejects_answers(self, runner) -> None:
        """A finalized session is read-only."""
        view = await run_quick(runner)
        with pytest.raises(InvalidSessionState):
            await runner.submit_answer(view.session_id, ROLE_ANSWER)
