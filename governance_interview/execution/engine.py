"""
Engine - Interview Orchestration Layer

The InterviewEngine is the deterministic state machine that walks one
workflow's transition table. It delegates the meaning of each state to the
workflow's WorkflowHandler and never decides ordering on its own: every
successor comes from the table.
-----------------------------------------------

The Control Logic is "Momentum-Based":
1. After every user input the engine settles the session. System states are
    executed and passed through, states that do not apply to this session
    are skipped, until a state that waits for the user is reached.
2. The state whose successor is `finalized` is never executed by the loop.
    Reaching it means the session is ready to finalize, which the runner
    performs as its own all-or-nothing step.

All methods mutate the SessionData they are given. The caller owns rollback:
an exception leaves a half-applied copy that must be discarded.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from ..domain.machine import AnswerMode, InterviewMachine, StepKind
from ..domain.validation import MAX_VAGUENESS_SKIPS, Violation
from ..repositories.governance import Changeset
from ..schemas.forms import FORMS, PersonaEdit
from ..services.exceptions import InvalidSessionState, SkipNotAllowed, ValidationFailed
from ..state.models import QuestionAnswer
from ..state.sessions import SessionData
from .gate import VaguenessGate
from .workflows.base import Transition, WorkflowContext, WorkflowHandler

logger = logging.getLogger(__name__)

SKIPPED_ANSWER = "[example refused]"

GATE_BYPASSED_NOTICE = (
    "We could not check this answer for specifics right now, so it was accepted as given."
)


def form_name_of(form_type) -> Optional[str]:
    for name, candidate in FORMS.items():
        if candidate is form_type:
            return name
    return None


def violations_from(error: ValidationError) -> List[Violation]:
    violations = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"]) or "form"
        violations.append(Violation(field, detail["msg"]))
    return violations


class InterviewEngine:
    def __init__(self, handler: WorkflowHandler, gate: VaguenessGate):
        self.handler = handler
        self.gate = gate

    @property
    def machine(self) -> InterviewMachine:
        return self.handler.machine

    # ==========================================================================
    # Momentum Loop
    # ==========================================================================

    async def settle(self, ctx: WorkflowContext, data: SessionData):
        """
        Advances through system and non-applicable states until the session
        waits for the user, is ready to finalize, or is terminal.
        """
        machine = self.machine
        while True:
            state = data.current_state
            if machine.is_terminal(state) or machine.precedes_finalize(state):
                return

            if self.handler.should_skip(ctx, data, state):
                data.current_state = machine.next_state(state)
                logger.debug(f"Session {ctx.session_id}: passed over '{state.value}'")
                continue

            if machine.spec(state).kind == StepKind.SYSTEM:
                await self.handler.execute(ctx, data, state)
                data.current_state = machine.next_state(state)
                logger.debug(f"Session {ctx.session_id}: executed '{state.value}'")
                continue

            await self.handler.prepare(ctx, data)
            return

    async def _move(self, ctx: WorkflowContext, data: SessionData, state, transition: Transition):
        """Applies a handler's verdict on `state`, then settles."""
        data.clarify_prompt = None
        if transition == Transition.ADVANCE:
            data.current_state = self.machine.next_state(state)
        else:
            data.current_state = state
        await self.settle(ctx, data)

    def ready_to_finalize(self, data: SessionData) -> bool:
        return self.machine.precedes_finalize(data.current_state)

    # ==========================================================================
    # Free-text Answers
    # ==========================================================================

    async def submit_answer(self, ctx: WorkflowContext, data: SessionData, text: str):
        state = data.current_state
        spec = self.machine.spec(state)
        if not (spec.is_question or spec.is_clarify) or spec.answer_mode != AnswerMode.TEXT:
            raise InvalidSessionState(f"State '{state.value}' does not accept a free-text answer")

        answer = (text or "").strip()
        if not answer:
            raise ValidationFailed([Violation("answer", "Answer is required")])

        if spec.is_clarify:
            await self._submit_clarification(ctx, data, state, answer)
            return

        question = self.handler.question_text(data, state) or spec.display_name
        entry = QuestionAnswer(question=question, answer=answer, state=state.value)

        verdict = None
        if spec.requires_vagueness_check:
            verdict = await self.gate.evaluate(answer, question)
            entry.was_vague = verdict.is_vague
            if verdict.degraded:
                ctx.notices.append(GATE_BYPASSED_NOTICE)
            logger.info(
                f"Session {ctx.session_id}: gate on '{state.value}' vague={verdict.is_vague} "
                f"degraded={verdict.degraded} ({len(answer)} chars)"
            )

        await self.handler.accumulate(ctx, data, state, entry)
        data.transcript.append(entry)

        if verdict is not None and verdict.is_vague:
            data.clarify_prompt = verdict.concrete_example_suggestion
            data.current_state = spec.clarify_state
            return

        transition = await self.handler.resolve(ctx, data, state)
        await self._move(ctx, data, state, transition)

    async def _submit_clarification(self, ctx: WorkflowContext, data: SessionData, state, example: str):
        parent = self.machine.parent_question_state(state)
        entry = self._pending_entry(data, parent)
        entry.concrete_example = example

        await self.handler.accumulate_clarification(ctx, data, parent, entry)
        transition = await self.handler.resolve(ctx, data, parent)
        await self._move(ctx, data, parent, transition)

    async def skip(self, ctx: WorkflowContext, data: SessionData):
        """Declines the concrete example and continues with the vague answer."""
        state = data.current_state
        if not self.machine.is_clarify(state):
            raise SkipNotAllowed("Skip is only available when a concrete example is requested")
        if not data.can_skip:
            raise SkipNotAllowed(
                f"Maximum skips reached ({MAX_VAGUENESS_SKIPS}). You must provide a concrete example."
            )

        parent = self.machine.parent_question_state(state)
        original = self._pending_entry(data, parent)
        entry = QuestionAnswer(
            question=self.handler.question_text(data, state) or self.machine.display_name(state),
            answer=SKIPPED_ANSWER,
            was_vague=True,
            skipped=True,
            state=state.value,
            context_index=original.context_index,
            role_type=original.role_type,
            persona_name=original.persona_name,
        )
        data.transcript.append(entry)
        data.vagueness_skip_count += 1
        logger.info(f"Session {ctx.session_id}: clarification skipped ({data.vagueness_skip_count} used)")

        await self.handler.accumulate_skip(ctx, data, parent, entry)
        transition = await self.handler.resolve(ctx, data, parent)
        await self._move(ctx, data, parent, transition)

    @staticmethod
    def _pending_entry(data: SessionData, parent) -> QuestionAnswer:
        """The answer the current clarify state is asking about."""
        for entry in reversed(data.transcript):
            if entry.state == parent.value:
                return entry
        raise InvalidSessionState(f"No answer to clarify for '{parent.value}'")

    # ==========================================================================
    # Forms and Gates
    # ==========================================================================

    async def submit_form(self, ctx: WorkflowContext, data: SessionData, form_name: str, payload: dict):
        state = data.current_state
        form_type = self.handler.expected_form(data, state)
        if form_type is None:
            raise InvalidSessionState(f"State '{state.value}' does not accept a form")

        expected = form_name_of(form_type)
        if form_name != expected:
            raise InvalidSessionState(f"State '{state.value}' expects the '{expected}' form, got '{form_name}'")

        try:
            form: BaseModel = form_type.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed(violations_from(e)) from e

        transition = await self.handler.apply_form(ctx, data, state, form)
        await self._move(ctx, data, state, transition)

    async def proceed(self, ctx: WorkflowContext, data: SessionData):
        """Confirms a gate that takes no input (warnings, review screens)."""
        state = data.current_state
        spec = self.machine.spec(state)
        if spec.kind != StepKind.GATE or spec.answer_mode != AnswerMode.NONE:
            raise InvalidSessionState(f"State '{state.value}' cannot be confirmed without input")

        transition = await self.handler.proceed(ctx, data, state)
        await self._move(ctx, data, state, transition)

    # ==========================================================================
    # Setup Commands
    # ==========================================================================

    def _setup_handler(self):
        if not hasattr(self.handler, "add_problem"):
            raise InvalidSessionState(f"'{self.handler.kind.value}' sessions have no portfolio commands")
        return self.handler

    async def add_problem(self, ctx: WorkflowContext, data: SessionData):
        self._setup_handler().add_problem(data)
        await self.settle(ctx, data)

    async def remove_problem(self, ctx: WorkflowContext, data: SessionData, index: int):
        self._setup_handler().remove_problem(data, index)

    async def update_persona(self, ctx: WorkflowContext, data: SessionData, member_index: int, edit: PersonaEdit):
        self._setup_handler().update_persona(data, member_index, edit)

    async def reset_persona(self, ctx: WorkflowContext, data: SessionData, member_index: int):
        self._setup_handler().reset_persona(data, member_index)

    # ==========================================================================
    # Finalize
    # ==========================================================================

    async def finalize(self, ctx: WorkflowContext, data: SessionData) -> Changeset:
        """
        Generates the report and returns what to publish. The session is
        marked finalized in `data`; the caller publishes both together.
        """
        if not self.ready_to_finalize(data):
            raise InvalidSessionState(f"Session is at '{data.current_state.value}', not ready to finalize")

        changeset = await self.handler.finalize(ctx, data)
        data.current_state = self.machine.finalized
        data.clarify_prompt = None
        return changeset
