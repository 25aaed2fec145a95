"""
Quarterly Review handler.

The prerequisites gate snapshots the published portfolio into the session, so
the rest of the review works on that snapshot and nothing durable changes
until finalize publishes.

Board interrogation is one table state per roster (core, growth) asked once
per active member. The handler HOLDs until every member of the roster has
been answered.
"""

import logging
from typing import List, Optional

from ...config import settings
from ...domain.enums import ProblemDirection, WorkflowKind
from ...domain.validation import (
    Violation,
    allocation_violations,
    check_allocation,
    prediction_transition_violations,
)
from ...domain.workflows import QUARTERLY_MACHINE, QuarterlyState
from ...repositories.governance import Changeset, new_id
from ...schemas.forms import BetEvaluationForm, HealthUpdateForm, NewBetForm, TriggerCheckForm
from ...services.exceptions import ValidationFailed
from ...state.models import (
    AllocationUpdate,
    BetEvaluation,
    BoardMember,
    BoardResponse,
    DirectionUpdate,
    HealthTrend,
    NewBet,
    PortfolioHealth,
    Prediction,
    Problem,
    QuestionAnswer,
    TriggerStatus,
)
from ...state.sessions import QuarterlySessionData
from .base import Transition, WorkflowContext, WorkflowHandler

logger = logging.getLogger(__name__)

S = QuarterlyState

QUESTIONS = {
    S.Q2_COMMITMENTS_VS_ACTUALS: (
        "What commitments did you make last quarter and how did they compare to your actual actions? "
        "Provide evidence where possible."
    ),
    S.Q3_AVOIDED_DECISION: (
        "What decision or conversation have you been avoiding this quarter? "
        "What is the cost of continuing to wait?"
    ),
    S.Q4_COMFORT_WORK: (
        "Where have you been doing comfort work this quarter - tasks that feel productive "
        "but do not advance your goals?"
    ),
    S.Q5_PORTFOLIO_CHECK: (
        "Review your portfolio problems. Have any directions shifted? Should any time allocations change?"
    ),
    S.Q6_PORTFOLIO_HEALTH_UPDATE: (
        "Update your portfolio: reclassify any problem whose direction changed and adjust time allocations."
    ),
    S.Q7_PROTECTION_CHECK: (
        "Your appreciating problems are your strengths. What threats could cause you to lose these advantages?"
    ),
    S.Q8_OPPORTUNITY_CHECK: (
        "What adjacent opportunities exist near your appreciating problems? What would 2x their value?"
    ),
    S.Q10_NEXT_BET: (
        "What is your bet for next quarter? State a specific prediction and what would prove it wrong."
    ),
}

# Free-text answers and the session field each one lands in.
ANSWER_FIELDS = {
    S.Q2_COMMITMENTS_VS_ACTUALS: "commitments_response",
    S.Q3_AVOIDED_DECISION: "avoided_decision",
    S.Q4_COMFORT_WORK: "comfort_work",
    S.Q5_PORTFOLIO_CHECK: "portfolio_check_response",
    S.Q7_PROTECTION_CHECK: "protection_response",
    S.Q8_OPPORTUNITY_CHECK: "opportunity_response",
}

BOARD_STATES = (S.CORE_BOARD_INTERROGATION, S.GROWTH_BOARD_INTERROGATION)


def review_context(data: QuarterlySessionData) -> str:
    """The answers a board member sees before asking a question."""
    lines = []
    if data.bet_evaluation:
        lines.append(f"Last bet: {data.bet_evaluation.prediction} ({data.bet_evaluation.status.value})")
    for state, field in ANSWER_FIELDS.items():
        value = getattr(data, field)
        if value:
            lines.append(f"{QUESTIONS[state]}\n{value}")
    if data.health_trend:
        lines.append(f"Health trend: {data.health_trend.trend_description}")
    if data.new_bet:
        lines.append(f"Next bet: {data.new_bet.prediction} (wrong if {data.new_bet.wrong_if})")
    return "\n\n".join(lines) or "No answers recorded."


class QuarterlyHandler(WorkflowHandler):
    machine = QUARTERLY_MACHINE
    kind = WorkflowKind.QUARTERLY

    def question_text(self, data: QuarterlySessionData, state) -> Optional[str]:
        match state:
            case S.RECENT_REPORT_WARNING:
                return (
                    f"Your last quarterly report was {data.days_since_last_report} days ago. "
                    "Reports are most useful once a quarter. Continue anyway?"
                )
            case S.Q1_LAST_BET_EVALUATION:
                if data.evaluable_prediction:
                    return f'Evaluate your last bet: "{data.evaluable_prediction.prediction}"'
                return None
            case S.Q9_TRIGGER_CHECK:
                lines = ["Have any of these re-setup triggers been met?"]
                lines += [f"{i}. {status.description}" for i, status in enumerate(data.trigger_statuses)]
                return "\n".join(lines)
            case S.CORE_BOARD_INTERROGATION | S.GROWTH_BOARD_INTERROGATION:
                return data.current_board_question
        return QUESTIONS.get(state) or super().question_text(data, state)

    def should_skip(self, ctx: WorkflowContext, data: QuarterlySessionData, state) -> bool:
        match state:
            case S.RECENT_REPORT_WARNING:
                return not data.showed_recent_warning
            case S.Q1_LAST_BET_EVALUATION:
                return data.evaluable_prediction is None
            case S.Q7_PROTECTION_CHECK | S.Q8_OPPORTUNITY_CHECK:
                return not data.growth_roles_active
            case S.CORE_BOARD_INTERROGATION:
                return not data.core_roster
            case S.GROWTH_BOARD_INTERROGATION:
                return not (data.growth_roles_active and data.growth_roster)
        return False

    # ==========================================================================
    # Prerequisites
    # ==========================================================================

    async def execute(self, ctx: WorkflowContext, data: QuarterlySessionData, state):
        if state == S.GATE0_PREREQUISITES:
            self._check_prerequisites(ctx, data)

    def _check_prerequisites(self, ctx: WorkflowContext, data: QuarterlySessionData):
        governance = ctx.governance
        board = [m for m in governance.get_board_members(ctx.user_id) if m.is_active]
        triggers = governance.get_triggers(ctx.user_id)

        violations = []
        if not governance.has_portfolio(ctx.user_id):
            violations.append(Violation("portfolio", "No portfolio. Complete Setup first."))
        if not board:
            violations.append(Violation("board", "No board members."))
        if not triggers:
            violations.append(Violation("triggers", "No re-setup triggers."))
        if violations:
            raise ValidationFailed(violations, "Prerequisites not met")

        data.problems = governance.get_problems(ctx.user_id)
        data.board_members = board
        data.triggers = triggers
        data.previous_health = governance.latest_health(ctx.user_id)
        data.evaluable_prediction = governance.latest_evaluable_prediction(ctx.user_id)
        data.growth_roles_active = any(p.direction == ProblemDirection.APPRECIATING for p in data.problems)
        data.prerequisites_passed = True

        last = ctx.sessions.latest_finalized(ctx.user_id, WorkflowKind.QUARTERLY)
        if last and last.completed_at:
            days = (ctx.now - last.completed_at).days
            data.days_since_last_report = days
            data.showed_recent_warning = days < settings.RECENT_REPORT_WARNING_DAYS

    # ==========================================================================
    # Free-text answers (Q2-Q5, Q7, Q8, board)
    # ==========================================================================

    async def accumulate(self, ctx: WorkflowContext, data: QuarterlySessionData, state, entry: QuestionAnswer):
        if state in ANSWER_FIELDS:
            setattr(data, ANSWER_FIELDS[state], entry.answer)
            return
        if state in BOARD_STATES:
            index = self._roster(data, state)[data.current_board_member_index]
            member = data.board_members[index]
            entry.context_index = index
            entry.role_type = member.role_type
            entry.persona_name = member.persona_name
            self._responses(data, state).append(
                BoardResponse(
                    member_index=index,
                    role_type=member.role_type,
                    persona_name=member.persona_name,
                    anchored_problem_id=member.anchored_problem_id,
                    anchored_demand=member.anchored_demand,
                    question=entry.question,
                    response=entry.answer,
                    was_vague=entry.was_vague,
                )
            )

    async def accumulate_clarification(
        self, ctx: WorkflowContext, data: QuarterlySessionData, state, entry: QuestionAnswer
    ):
        if state in ANSWER_FIELDS:
            field = ANSWER_FIELDS[state]
            setattr(data, field, f"{getattr(data, field)} Example: {entry.concrete_example}")
        elif state in BOARD_STATES:
            self._responses(data, state)[-1].concrete_example = entry.concrete_example

    async def accumulate_skip(self, ctx: WorkflowContext, data: QuarterlySessionData, state, entry: QuestionAnswer):
        if state in BOARD_STATES:
            self._responses(data, state)[-1].skipped = True

    async def resolve(self, ctx: WorkflowContext, data: QuarterlySessionData, state) -> Transition:
        if state not in BOARD_STATES:
            return Transition.ADVANCE

        data.current_board_question = None
        data.current_board_member_index += 1
        if data.current_board_member_index < len(self._roster(data, state)):
            return Transition.HOLD
        data.current_board_member_index = 0
        return Transition.ADVANCE

    # ==========================================================================
    # Board
    # ==========================================================================

    async def prepare(self, ctx: WorkflowContext, data: QuarterlySessionData):
        state = data.current_state
        if state == S.Q9_TRIGGER_CHECK and not data.trigger_statuses:
            data.trigger_statuses = self._trigger_statuses(ctx, data)
        elif state in BOARD_STATES and data.current_board_question is None:
            member = data.board_members[self._roster(data, state)[data.current_board_member_index]]
            data.current_board_question = await ctx.assistant.board_question(
                member,
                self._anchored_problem(data, member),
                review_context(data),
                data.abstraction_mode,
            )

    @staticmethod
    def _roster(data: QuarterlySessionData, state) -> List[int]:
        return data.core_roster if state == S.CORE_BOARD_INTERROGATION else data.growth_roster

    @staticmethod
    def _responses(data: QuarterlySessionData, state) -> List[BoardResponse]:
        if state == S.CORE_BOARD_INTERROGATION:
            return data.core_board_responses
        return data.growth_board_responses

    @staticmethod
    def _anchored_problem(data: QuarterlySessionData, member: BoardMember) -> Optional[Problem]:
        for problem in data.problems:
            if member.anchored_problem_id and problem.id == member.anchored_problem_id:
                return problem
        index = member.anchored_problem_index
        if index is not None and 0 <= index < len(data.problems):
            return data.problems[index]
        return None

    # ==========================================================================
    # Forms (Q1, Q6, Q9, Q10)
    # ==========================================================================

    def expected_form(self, data: QuarterlySessionData, state):
        match state:
            case S.Q1_LAST_BET_EVALUATION:
                return BetEvaluationForm
            case S.Q6_PORTFOLIO_HEALTH_UPDATE:
                return HealthUpdateForm
            case S.Q9_TRIGGER_CHECK:
                return TriggerCheckForm
            case S.Q10_NEXT_BET:
                return NewBetForm
        return super().expected_form(data, state)

    async def apply_form(self, ctx: WorkflowContext, data: QuarterlySessionData, state, form) -> Transition:
        question = self.question_text(data, state) or ""
        match form:
            case BetEvaluationForm():
                answer = self._evaluate_bet(data, form)
            case HealthUpdateForm():
                answer = self._update_health(ctx, data, form)
            case TriggerCheckForm():
                answer = self._mark_triggers(data, form)
            case NewBetForm():
                answer = self._record_new_bet(data, form)
            case _:
                return await super().apply_form(ctx, data, state, form)

        data.transcript.append(QuestionAnswer(question=question, answer=answer, state=state.value))
        return Transition.ADVANCE

    def _evaluate_bet(self, data: QuarterlySessionData, form: BetEvaluationForm) -> str:
        prediction = data.evaluable_prediction
        violations = prediction_transition_violations(prediction.status, form.status)
        if violations:
            raise ValidationFailed(violations)

        data.bet_evaluation = BetEvaluation(
            prediction_id=prediction.id,
            prediction=prediction.prediction,
            wrong_if=prediction.wrong_if,
            previous_status=prediction.status,
            status=form.status,
            rationale=form.rationale,
            evidence=[item.to_evidence() for item in form.evidence],
        )
        answer = form.status.display_name
        return f"{answer}: {form.rationale}" if form.rationale else answer

    def _update_health(self, ctx: WorkflowContext, data: QuarterlySessionData, form: HealthUpdateForm) -> str:
        problems = [p.model_copy(deep=True) for p in data.problems]
        violations = []
        direction_updates = []
        for change in form.direction_changes:
            if not 0 <= change.problem_index < len(problems):
                violations.append(Violation("direction_changes", f"No problem at position {change.problem_index}"))
                continue
            problem = problems[change.problem_index]
            if problem.direction != change.new_direction:
                direction_updates.append(
                    DirectionUpdate(
                        problem_id=problem.id,
                        problem_name=problem.name,
                        previous_direction=problem.direction,
                        new_direction=change.new_direction,
                        rationale=change.rationale,
                    )
                )
            problem.direction = change.new_direction
            if change.rationale:
                problem.direction_rationale = change.rationale

        allocation_updates = []
        if form.allocations is not None:
            violations += allocation_violations(form.allocations, len(problems))
            if not violations:
                check = check_allocation(form.allocations)
                if not check.can_proceed:
                    violations.append(Violation("allocations", check.message))
                else:
                    for problem, percent in zip(problems, form.allocations):
                        if problem.time_allocation_percent != percent:
                            allocation_updates.append(
                                AllocationUpdate(
                                    problem_id=problem.id,
                                    problem_name=problem.name,
                                    previous_percent=problem.time_allocation_percent,
                                    new_percent=percent,
                                )
                            )
                        problem.time_allocation_percent = percent
                    data.total_time_allocation = check.total
                    data.allocation_band = check.band
                    ctx.notices.append(check.message)
        if violations:
            raise ValidationFailed(violations)

        previous = data.previous_health or PortfolioHealth()
        data.problems = problems
        data.direction_updates = direction_updates
        data.allocation_updates = allocation_updates
        data.health_trend = HealthTrend.compare(previous, PortfolioHealth.from_problems(problems))

        trend = data.health_trend
        return (
            f"Appreciating: {trend.previous_appreciating}% -> {trend.current_appreciating}%, "
            f"Depreciating: {trend.previous_depreciating}% -> {trend.current_depreciating}%"
        )

    def _trigger_statuses(self, ctx: WorkflowContext, data: QuarterlySessionData) -> List[TriggerStatus]:
        statuses = []
        for trigger in data.triggers:
            overdue = trigger.due_at is not None and trigger.due_at <= ctx.now
            is_met = trigger.is_met or overdue
            statuses.append(
                TriggerStatus(
                    trigger_id=trigger.id,
                    trigger_type=trigger.trigger_type,
                    description=trigger.description,
                    is_met=is_met,
                    details=trigger.met_details or ("Due date reached" if overdue else None),
                )
            )
        return statuses

    def _mark_triggers(self, data: QuarterlySessionData, form: TriggerCheckForm) -> str:
        for mark in form.met:
            if not 0 <= mark.trigger_index < len(data.trigger_statuses):
                raise ValidationFailed([Violation("met", f"No trigger at position {mark.trigger_index}")])
            status = data.trigger_statuses[mark.trigger_index]
            status.is_met = True
            status.details = mark.details or status.details

        met = [s for s in data.trigger_statuses if s.is_met]
        return f"Warning: {len(met)} trigger(s) met" if met else "No triggers met"

    def _record_new_bet(self, data: QuarterlySessionData, form: NewBetForm) -> str:
        violations = []
        if not form.prediction.strip():
            violations.append(Violation("prediction", "Prediction is required"))
        if not form.wrong_if.strip():
            violations.append(Violation("wrong_if", "Wrong-if condition is required"))
        if violations:
            raise ValidationFailed(violations)

        data.new_bet = NewBet(
            prediction=form.prediction.strip(),
            wrong_if=form.wrong_if.strip(),
            duration_days=form.duration_days or settings.PREDICTION_DURATION_DAYS,
        )
        data.current_board_member_index = 0
        data.current_board_question = None
        return f"Prediction: {data.new_bet.prediction} | Wrong if: {data.new_bet.wrong_if}"

    # ==========================================================================
    # Finalize
    # ==========================================================================

    async def finalize(self, ctx: WorkflowContext, data: QuarterlySessionData) -> Changeset:
        data.output_markdown = await ctx.reports.quarterly(data)
        changeset = Changeset(user_id=ctx.user_id)

        evaluation = data.bet_evaluation
        if evaluation and evaluation.prediction_id:
            stored = ctx.governance.get_prediction(ctx.user_id, evaluation.prediction_id)
            if stored is not None:
                try:
                    changeset.predictions.append(stored.evaluate(evaluation.status, ctx.session_id, ctx.now))
                except ValueError as e:
                    raise ValidationFailed([Violation("status", str(e))]) from e

        if data.new_bet:
            prediction = Prediction.open(
                data.new_bet.prediction,
                data.new_bet.wrong_if,
                data.new_bet.duration_days,
                source_session_id=ctx.session_id,
                now=ctx.now,
            )
            prediction.id = data.created_prediction_id or new_id()
            data.created_prediction_id = prediction.id
            changeset.predictions.append(prediction)

        met = {s.trigger_id: s for s in data.trigger_statuses if s.is_met}
        for trigger in data.triggers:
            status = met.get(trigger.id)
            if status and not trigger.is_met:
                changeset.triggers.append(
                    trigger.model_copy(update={"is_met": True, "met_details": status.details})
                )

        if data.direction_updates or data.allocation_updates:
            changeset.problems = data.problems

        if data.health_trend:
            previous = data.previous_health or PortfolioHealth()
            health = PortfolioHealth.from_problems(data.problems)
            health.risk_statement = previous.risk_statement
            health.opportunity_statement = previous.opportunity_statement
            changeset.health = health

        return changeset
