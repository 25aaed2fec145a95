"""
Workflow Handlers - the per-workflow half of the interview engine.

The InterviewEngine owns control flow: it walks the transition table, runs the
vagueness gate and routes clarify loops. A WorkflowHandler owns meaning: the
question text for each state, what an answer or form does to the session
data, what a system state computes, and what finalize publishes.

Handlers never move `current_state` forward themselves. They return a
Transition and the engine looks the successor up in the table.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import List, Optional, Type

from pydantic import BaseModel

from ...domain.enums import WorkflowKind
from ...domain.machine import InterviewMachine
from ...repositories.governance import Changeset, GovernanceRepository
from ...repositories.session import SessionRepository
from ...schemas.forms import PrivacyForm
from ...services.exceptions import InvalidSessionState
from ...state.models import QuestionAnswer, utc_now
from ...state.sessions import SessionData
from ..assistant import InterviewAssistant
from ..reports import ReportGenerator

SENSITIVITY_GATE = "sensitivity_gate"

CLARIFY_PROMPT = "Give one concrete example (who/what/when/result)."

PRIVACY_QUESTION = (
    "Should names of people, employers and clients be abstracted in your outputs?"
)


class Transition(Enum):
    """
    What a handler decided about the state it was asked to resolve.
    """

    HOLD = auto()  # Pointer stays; the same state asks its next sub-question
    ADVANCE = auto()  # Pointer moves to the table successor


@dataclass
class WorkflowContext:
    """Collaborators and identity for one engine operation."""
    session_id: str
    user_id: str
    assistant: InterviewAssistant
    reports: ReportGenerator
    governance: GovernanceRepository
    sessions: SessionRepository
    now: datetime = field(default_factory=utc_now)
    # Non-blocking messages for the user (allocation warning, gate bypassed...)
    notices: List[str] = field(default_factory=list)


class WorkflowHandler:
    machine: InterviewMachine
    kind: WorkflowKind

    # ==========================================================================
    # Presentation
    # ==========================================================================

    def question_text(self, data: SessionData, state) -> Optional[str]:
        if state.value == SENSITIVITY_GATE:
            return PRIVACY_QUESTION
        if self.machine.is_clarify(state):
            return CLARIFY_PROMPT
        return None

    # ==========================================================================
    # Momentum loop hooks
    # ==========================================================================

    def should_skip(self, ctx: WorkflowContext, data: SessionData, state) -> bool:
        """True when the state does not apply to this session and is passed through."""
        return False

    async def prepare(self, ctx: WorkflowContext, data: SessionData):
        """Runs whenever the engine stops at a waiting state. Must be idempotent."""
        pass

    async def execute(self, ctx: WorkflowContext, data: SessionData, state):
        """Work of a system state. May raise ValidationFailed to reject the step."""
        pass

    # ==========================================================================
    # Free-text answers
    # ==========================================================================

    async def accumulate(self, ctx: WorkflowContext, data: SessionData, state, entry: QuestionAnswer):
        """Stores the answer in the workflow's accumulators. May annotate the entry."""
        pass

    async def accumulate_clarification(
        self, ctx: WorkflowContext, data: SessionData, state, entry: QuestionAnswer
    ):
        """The concrete example for `state` was attached to `entry`."""
        pass

    async def accumulate_skip(self, ctx: WorkflowContext, data: SessionData, state, entry: QuestionAnswer):
        """The user declined to clarify `entry`; it stands as given."""
        pass

    async def resolve(self, ctx: WorkflowContext, data: SessionData, state) -> Transition:
        """Called once an answer to `state` is final (concrete, clarified or skipped)."""
        return Transition.ADVANCE

    # ==========================================================================
    # Forms and gates
    # ==========================================================================

    def expected_form(self, data: SessionData, state) -> Optional[Type[BaseModel]]:
        if state.value == SENSITIVITY_GATE:
            return PrivacyForm
        return None

    async def apply_form(self, ctx: WorkflowContext, data: SessionData, state, form: BaseModel) -> Transition:
        if isinstance(form, PrivacyForm):
            data.abstraction_mode = form.abstraction_mode
            return Transition.ADVANCE
        raise InvalidSessionState(f"No form handling for state '{state.value}'")

    async def proceed(self, ctx: WorkflowContext, data: SessionData, state) -> Transition:
        """Acknowledgement of a gate that takes no input."""
        return Transition.ADVANCE

    # ==========================================================================
    # Finalize
    # ==========================================================================

    async def finalize(self, ctx: WorkflowContext, data: SessionData) -> Changeset:
        """Generates the report into `data` and returns the entities to publish."""
        raise NotImplementedError
