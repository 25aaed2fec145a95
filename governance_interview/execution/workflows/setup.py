"""
Setup handler - problem portfolio, board roles and personas.

Problems arrive as forms and are checked by the validate state that follows
each collect state; a rejected problem leaves the session on its collect
state. The portfolio completeness gate is where problems are added (up to 5)
or removed (down to 3).
"""

import logging
from datetime import timedelta
from typing import List, Optional

from ...config import settings
from ...domain.enums import (
    CORE_ROLES,
    GROWTH_ROLES,
    ProblemDirection,
    RecommendedAction,
    TriggerType,
    WorkflowKind,
)
from ...domain.validation import (
    MAX_PROBLEMS,
    MIN_PROBLEMS,
    Violation,
    allocation_violations,
    can_add_problem,
    can_remove_problem,
    check_allocation,
    problem_count_violations,
)
from ...domain.workflows import SETUP_MACHINE, SetupState
from ...domain.workflows.setup import collect_state_for, problem_number_of
from ...repositories.governance import Changeset, new_id
from ...schemas.forms import AllocationForm, PersonaEdit, ProblemForm
from ...services.exceptions import InvalidSessionState, ValidationFailed
from ...state.models import BoardMember, PortfolioHealth, PortfolioVersion, Trigger
from ...state.sessions import SetupSessionData
from .base import Transition, WorkflowContext, WorkflowHandler

logger = logging.getLogger(__name__)

S = SetupState

# (type, description, condition, action)
DEFAULT_TRIGGERS = (
    (TriggerType.ROLE_CHANGE, "Role change detected", "Promotion, new job, or new team",
     RecommendedAction.FULL_RESETUP),
    (TriggerType.SCOPE_CHANGE, "Scope change detected", "Major project ends or new responsibility",
     RecommendedAction.FULL_RESETUP),
    (TriggerType.DIRECTION_SHIFT, "Problem direction shift", "Problem reclassified in 2+ quarterly reviews",
     RecommendedAction.UPDATE_PROBLEM),
    (TriggerType.TIME_DRIFT, "Time allocation drift", "20%+ shift in allocation vs setup",
     RecommendedAction.REVIEW_HEALTH),
    (TriggerType.ANNUAL, "Annual portfolio review", "12 months since last setup",
     RecommendedAction.FULL_RESETUP),
)


def default_triggers(ctx: WorkflowContext) -> List[Trigger]:
    triggers = []
    for trigger_type, description, condition, action in DEFAULT_TRIGGERS:
        due_at = None
        if trigger_type == TriggerType.ANNUAL:
            due_at = ctx.now + timedelta(days=settings.ANNUAL_TRIGGER_DAYS)
        triggers.append(
            Trigger(
                id=new_id(),
                trigger_type=trigger_type,
                description=description,
                condition=condition,
                recommended_action=action,
                due_at=due_at,
            )
        )
    return triggers


class SetupHandler(WorkflowHandler):
    machine = SETUP_MACHINE
    kind = WorkflowKind.SETUP

    def question_text(self, data: SetupSessionData, state) -> Optional[str]:
        number = problem_number_of(state)
        if number and self.machine.is_question(state):
            return (
                f"Problem {number}: What is a problem you are paid to solve? "
                "Name it, say what breaks if it is not solved, and give two scarcity signals "
                "(or say why they are unknown)."
            )
        match state:
            case S.PORTFOLIO_COMPLETENESS:
                return (
                    f"You have {data.problem_count} problems. Add another (up to {MAX_PROBLEMS}), "
                    f"remove one (minimum {MIN_PROBLEMS}), or continue."
                )
            case S.TIME_ALLOCATION:
                return "What percentage of your working time goes to each problem? The total should be close to 100%."
            case S.CREATE_PERSONAS:
                return "Meet your board. Edit any persona, reset it, or continue."
        return super().question_text(data, state)

    def should_skip(self, ctx: WorkflowContext, data: SetupSessionData, state) -> bool:
        if state == S.CREATE_GROWTH_ROLES:
            return not data.has_appreciating_problems
        return False

    # ==========================================================================
    # Problems
    # ==========================================================================

    def expected_form(self, data: SetupSessionData, state):
        if problem_number_of(state) and self.machine.is_question(state):
            return ProblemForm
        if state == S.TIME_ALLOCATION:
            return AllocationForm
        return super().expected_form(data, state)

    async def apply_form(self, ctx: WorkflowContext, data: SetupSessionData, state, form) -> Transition:
        if isinstance(form, ProblemForm):
            index = problem_number_of(state) - 1
            problem = form.to_problem()
            if index < len(data.problems):
                data.problems[index] = problem
            else:
                data.problems.append(problem)
            data.current_problem_index = index
            return Transition.ADVANCE

        if isinstance(form, AllocationForm):
            return self._apply_allocation(ctx, data, form)

        return await super().apply_form(ctx, data, state, form)

    def _apply_allocation(self, ctx: WorkflowContext, data: SetupSessionData, form: AllocationForm) -> Transition:
        violations = allocation_violations(form.allocations, data.problem_count)
        if violations:
            raise ValidationFailed(violations)

        check = check_allocation(form.allocations)
        if not check.can_proceed:
            raise ValidationFailed([Violation("allocations", check.message)])

        for problem, percent in zip(data.problems, form.allocations):
            problem.time_allocation_percent = percent
        data.total_time_allocation = check.total
        data.allocation_band = check.band
        ctx.notices.append(check.message)
        return Transition.ADVANCE

    async def _validate_problem(self, ctx: WorkflowContext, data: SetupSessionData, state):
        index = problem_number_of(state) - 1
        if index >= len(data.problems):
            raise InvalidSessionState(f"Problem {index + 1} was never submitted")

        problem = data.problems[index]
        violations = problem.violations()
        if violations:
            logger.info(f"Session {ctx.session_id}: problem {index + 1} rejected ({len(violations)} violations)")
            raise ValidationFailed(violations)

        if problem.id is None:
            problem.id = new_id()
        if problem.direction is None and problem.has_direction_evidence:
            assessment = await ctx.assistant.evaluate_direction(problem, data.abstraction_mode)
            problem.direction = assessment.direction
            problem.direction_rationale = assessment.rationale

    def add_problem(self, data: SetupSessionData):
        self._require_state(data, S.PORTFOLIO_COMPLETENESS)
        if not can_add_problem(data.problem_count):
            raise ValidationFailed([Violation("problems", f"Maximum {MAX_PROBLEMS} problems allowed")])
        data.current_state = collect_state_for(data.problem_count + 1)

    def remove_problem(self, data: SetupSessionData, index: int):
        self._require_state(data, S.PORTFOLIO_COMPLETENESS)
        if not can_remove_problem(data.problem_count):
            raise ValidationFailed([Violation("problems", f"At least {MIN_PROBLEMS} problems required")])
        if not 0 <= index < data.problem_count:
            raise ValidationFailed([Violation("index", f"No problem at position {index}")])
        data.problems.pop(index)

    async def proceed(self, ctx: WorkflowContext, data: SetupSessionData, state) -> Transition:
        if state == S.PORTFOLIO_COMPLETENESS:
            violations = problem_count_violations(data.problem_count)
            if violations:
                raise ValidationFailed(violations)
        return Transition.ADVANCE

    # ==========================================================================
    # System states
    # ==========================================================================

    async def execute(self, ctx: WorkflowContext, data: SetupSessionData, state):
        if problem_number_of(state):
            await self._validate_problem(ctx, data, state)
            return

        match state:
            case S.CALCULATE_HEALTH:
                health = PortfolioHealth.from_problems(data.problems)
                statements = await ctx.assistant.health_statements(data.problems, health, data.abstraction_mode)
                health.risk_statement = statements.risk_statement
                health.opportunity_statement = statements.opportunity_statement
                data.portfolio_health = health
            case S.CREATE_CORE_ROLES:
                members = await self._anchored_members(ctx, data, CORE_ROLES, default_index=0)
                data.board_members = members + [m for m in data.board_members if m.is_growth_role]
            case S.CREATE_GROWTH_ROLES:
                members = await self._anchored_members(
                    ctx, data, GROWTH_ROLES, default_index=self._strongest_appreciating(data)
                )
                data.board_members = [m for m in data.board_members if not m.is_growth_role] + members
            case S.DEFINE_RESETUP_TRIGGERS:
                data.triggers = default_triggers(ctx)

    async def _anchored_members(
        self, ctx: WorkflowContext, data: SetupSessionData, roles, default_index: int
    ) -> List[BoardMember]:
        plan = await ctx.assistant.anchor_roles(roles, data.problems, default_index, data.abstraction_mode)
        members = []
        for role in roles:
            anchoring = plan[role]
            problem = data.problems[anchoring.problem_index]
            members.append(
                BoardMember(
                    id=new_id(),
                    role_type=role,
                    is_growth_role=role.is_growth_role,
                    anchored_problem_index=anchoring.problem_index,
                    anchored_problem_id=problem.id,
                    anchored_demand=anchoring.demand,
                )
            )
        return members

    @staticmethod
    def _strongest_appreciating(data: SetupSessionData) -> int:
        """Index of the appreciating problem with the highest allocation."""
        candidates = [
            (problem.time_allocation_percent, -index, index)
            for index, problem in enumerate(data.problems)
            if problem.direction == ProblemDirection.APPRECIATING
        ]
        return max(candidates)[2] if candidates else 0

    # ==========================================================================
    # Personas
    # ==========================================================================

    async def prepare(self, ctx: WorkflowContext, data: SetupSessionData):
        if data.current_state != S.CREATE_PERSONAS:
            return
        for member in data.board_members:
            if member.persona is not None:
                continue
            problem = self._anchored_problem(data, member)
            persona = await ctx.assistant.generate_persona(member, problem)
            member.persona = persona
            member.original_persona = persona.model_copy()

    def update_persona(self, data: SetupSessionData, member_index: int, edit: PersonaEdit):
        member = self._persona_member(data, member_index)
        changes = edit.model_dump(exclude_none=True)
        member.persona = member.persona.model_copy(update=changes)

    def reset_persona(self, data: SetupSessionData, member_index: int):
        member = self._persona_member(data, member_index)
        if member.original_persona is not None:
            member.persona = member.original_persona.model_copy()

    def _persona_member(self, data: SetupSessionData, member_index: int) -> BoardMember:
        self._require_state(data, S.CREATE_PERSONAS)
        if not 0 <= member_index < len(data.board_members):
            raise ValidationFailed([Violation("member_index", f"No board member at position {member_index}")])
        member = data.board_members[member_index]
        if member.persona is None:
            raise InvalidSessionState("Personas have not been generated yet")
        return member

    @staticmethod
    def _anchored_problem(data: SetupSessionData, member: BoardMember):
        index = member.anchored_problem_index
        if index is not None and 0 <= index < len(data.problems):
            return data.problems[index]
        return None

    @staticmethod
    def _require_state(data: SetupSessionData, state: SetupState):
        if data.current_state != state:
            raise InvalidSessionState(
                f"Only allowed at '{state.value}', session is at '{data.current_state.value}'"
            )

    # ==========================================================================
    # Finalize
    # ==========================================================================

    async def finalize(self, ctx: WorkflowContext, data: SetupSessionData) -> Changeset:
        data.output_markdown = ctx.reports.setup(data)

        version = PortfolioVersion(
            id=data.portfolio_version_id or new_id(),
            problems=[p.model_copy(deep=True) for p in data.problems],
            health=data.portfolio_health,
            source_session_id=ctx.session_id,
            created_at=ctx.now,
        )
        data.portfolio_version_id = version.id
        data.created_problem_ids = [p.id for p in data.problems]
        data.created_board_member_ids = [m.id for m in data.board_members]
        data.created_trigger_ids = [t.id for t in data.triggers]

        return Changeset(
            user_id=ctx.user_id,
            replace_portfolio=True,
            problems=data.problems,
            board_members=data.board_members,
            triggers=data.triggers,
            health=data.portfolio_health,
            portfolio_version=version,
        )
