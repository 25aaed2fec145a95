"""
State Layer - Session Snapshots

One SessionData variant per workflow. A snapshot is the whole model dumped
to JSON; it is the only shared mutable resource of a session and is written
after every transition.
"""

from enum import Enum
from typing import Annotated, ClassVar, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from ..domain.enums import ProblemDirection, WorkflowKind
from ..domain.machine import InterviewMachine
from ..domain.validation import MAX_VAGUENESS_SKIPS, AllocationBand, can_skip
from ..domain.workflows import QUARTERLY_MACHINE, QUICK_MACHINE, SETUP_MACHINE
from ..domain.workflows import QuarterlyState, QuickState, SetupState
from .models import (
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
    Trigger,
    TriggerStatus,
    UtcDatetime,
    utc_now,
)


class SessionData(BaseModel):
    """
    Fields common to every workflow.

    Subclasses declare `current_state` with their own state Enum and bind
    `machine`. Unknown state tags decode to the machine's initial state.
    """
    machine: ClassVar[InterviewMachine]

    abstraction_mode: bool = False
    vagueness_skip_count: int = 0
    transcript: List[QuestionAnswer] = Field(default_factory=list)

    # Suggestion from the Vagueness Gate, shown while in a clarify state.
    clarify_prompt: Optional[str] = None

    output_markdown: Optional[str] = None

    @field_validator("current_state", mode="before", check_fields=False)
    @classmethod
    def _decode_state(cls, value):
        return cls.machine.parse(value)

    @field_validator("vagueness_skip_count", mode="before")
    @classmethod
    def _cap_skip_count(cls, value):
        return max(0, min(int(value or 0), MAX_VAGUENESS_SKIPS))

    @property
    def can_skip(self) -> bool:
        return can_skip(self.vagueness_skip_count)

    @property
    def workflow_kind(self) -> WorkflowKind:
        return WorkflowKind(self.kind)


class QuickSessionData(SessionData):
    machine: ClassVar[InterviewMachine] = QUICK_MACHINE

    kind: Literal["quick"] = "quick"
    current_state: QuickState = QuickState.INITIAL

    role_context: Optional[str] = None
    problems: List[Problem] = Field(default_factory=list)
    current_problem_index: int = 0
    current_direction_sub_question: int = 0
    avoided_decision: Optional[str] = None
    avoided_decision_cost: Optional[str] = None
    comfort_work: Optional[str] = None

    assessment: Optional[str] = None
    bet_prediction: Optional[str] = None
    bet_wrong_if: Optional[str] = None
    created_prediction_id: Optional[str] = None

    @property
    def current_problem(self) -> Optional[Problem]:
        if 0 <= self.current_problem_index < len(self.problems):
            return self.problems[self.current_problem_index]
        return None


class SetupSessionData(SessionData):
    machine: ClassVar[InterviewMachine] = SETUP_MACHINE

    kind: Literal["setup"] = "setup"
    current_state: SetupState = SetupState.INITIAL

    problems: List[Problem] = Field(default_factory=list)
    current_problem_index: int = 0
    total_time_allocation: Optional[int] = None
    allocation_band: Optional[AllocationBand] = None
    portfolio_health: Optional[PortfolioHealth] = None
    board_members: List[BoardMember] = Field(default_factory=list)
    triggers: List[Trigger] = Field(default_factory=list)

    created_problem_ids: List[str] = Field(default_factory=list)
    created_board_member_ids: List[str] = Field(default_factory=list)
    created_trigger_ids: List[str] = Field(default_factory=list)
    portfolio_version_id: Optional[str] = None

    @property
    def problem_count(self) -> int:
        return len(self.problems)

    @property
    def has_appreciating_problems(self) -> bool:
        return any(p.direction == ProblemDirection.APPRECIATING for p in self.problems)


class QuarterlySessionData(SessionData):
    machine: ClassVar[InterviewMachine] = QUARTERLY_MACHINE

    kind: Literal["quarterly"] = "quarterly"
    current_state: QuarterlyState = QuarterlyState.INITIAL

    # Snapshot taken at the prerequisites gate
    prerequisites_passed: bool = False
    problems: List[Problem] = Field(default_factory=list)
    board_members: List[BoardMember] = Field(default_factory=list)
    triggers: List[Trigger] = Field(default_factory=list)
    previous_health: Optional[PortfolioHealth] = None
    evaluable_prediction: Optional[Prediction] = None
    growth_roles_active: bool = False

    showed_recent_warning: bool = False
    days_since_last_report: Optional[int] = None

    # Answers
    bet_evaluation: Optional[BetEvaluation] = None
    commitments_response: Optional[str] = None
    avoided_decision: Optional[str] = None
    comfort_work: Optional[str] = None
    portfolio_check_response: Optional[str] = None
    direction_updates: List[DirectionUpdate] = Field(default_factory=list)
    allocation_updates: List[AllocationUpdate] = Field(default_factory=list)
    total_time_allocation: Optional[int] = None
    allocation_band: Optional[AllocationBand] = None
    health_trend: Optional[HealthTrend] = None
    protection_response: Optional[str] = None
    opportunity_response: Optional[str] = None
    trigger_statuses: List[TriggerStatus] = Field(default_factory=list)
    new_bet: Optional[NewBet] = None

    # Board interrogation
    core_board_responses: List[BoardResponse] = Field(default_factory=list)
    growth_board_responses: List[BoardResponse] = Field(default_factory=list)
    current_board_member_index: int = 0
    current_board_question: Optional[str] = None

    created_prediction_id: Optional[str] = None

    @property
    def any_trigger_met(self) -> bool:
        return any(t.is_met for t in self.trigger_statuses)

    @property
    def core_roster(self) -> List[int]:
        """Indexes of active core members, in roster order."""
        return [
            i for i, m in enumerate(self.board_members)
            if m.is_active and not m.is_growth_role
        ]

    @property
    def growth_roster(self) -> List[int]:
        return [
            i for i, m in enumerate(self.board_members)
            if m.is_active and m.is_growth_role
        ]


AnySessionData = Annotated[
    Union[QuickSessionData, SetupSessionData, QuarterlySessionData],
    Field(discriminator="kind"),
]

_SESSION_ADAPTER = TypeAdapter(AnySessionData)

SESSION_DATA_TYPES = {
    WorkflowKind.QUICK: QuickSessionData,
    WorkflowKind.SETUP: SetupSessionData,
    WorkflowKind.QUARTERLY: QuarterlySessionData,
}


def new_session_data(kind: WorkflowKind) -> SessionData:
    return SESSION_DATA_TYPES[kind]()


def decode_session_data(payload: dict) -> SessionData:
    return _SESSION_ADAPTER.validate_python(payload)


# ==============================================================================
# Session Records
# ==============================================================================

class SessionStatus(str, Enum):
    ACTIVE = "active"
    FINALIZED = "finalized"
    ABANDONED = "abandoned"


class SessionRecord(BaseModel):
    """
    A persisted session: identity and lifecycle metadata plus the snapshot.
    """
    session_id: str
    user_id: str
    kind: WorkflowKind
    status: SessionStatus = SessionStatus.ACTIVE
    data: AnySessionData
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)
    completed_at: Optional[UtcDatetime] = None
