"""
State Layer - Runtime and Durable Records

Pydantic models shared by the session snapshots and the governance
repository: transcript entries, problems, board members, predictions,
triggers and the quarterly review records.

All models round-trip through `model_dump(mode="json")` / `model_validate`.
Enum fields in nested records are decoded leniently: an unrecognized value
falls back to the field's default instead of failing the whole snapshot.
Timestamps are timezone-aware UTC; naive input is taken to be UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, model_validator

from ..domain.enums import (
    BoardRoleType,
    EvidenceStrength,
    EvidenceType,
    PredictionStatus,
    ProblemDirection,
    RecommendedAction,
    TriggerType,
)
from ..domain.validation import Violation, problem_completeness_violations


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive values are read as UTC; some SQLite drivers drop the offset.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


def _fallback(enum_cls, default):
    def coerce(value):
        if value is None:
            return default
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(value)
        except ValueError:
            return default
    return BeforeValidator(coerce)


Direction = Annotated[Optional[ProblemDirection], _fallback(ProblemDirection, None)]
RoleType = Annotated[Optional[BoardRoleType], _fallback(BoardRoleType, None)]
Status = Annotated[PredictionStatus, _fallback(PredictionStatus, PredictionStatus.OPEN)]
EvidenceKind = Annotated[EvidenceType, _fallback(EvidenceType, EvidenceType.NONE)]
Strength = Annotated[Optional[EvidenceStrength], _fallback(EvidenceStrength, None)]
Role = Annotated[BoardRoleType, _fallback(BoardRoleType, BoardRoleType.ACCOUNTABILITY)]
TriggerKind = Annotated[TriggerType, _fallback(TriggerType, TriggerType.ROLE_CHANGE)]
Action = Annotated[RecommendedAction, _fallback(RecommendedAction, RecommendedAction.FULL_RESETUP)]


# ==============================================================================
# Transcript
# ==============================================================================

class QuestionAnswer(BaseModel):
    """
    One entry of the append-only transcript.

    Attributes:
        question: The question text as shown to the user.
        answer: The answer as submitted.
        was_vague: The Vagueness Gate flagged the answer (or it was skipped).
        concrete_example: The example supplied in the clarify state.
        skipped: The user skipped clarification.
        state: Tag of the state the question was asked in.
        context_index: Problem index (Quick Q3) or board member index.
        role_type / persona_name: Attribution for board interrogation.
    """
    question: str
    answer: str
    was_vague: bool = False
    concrete_example: Optional[str] = None
    skipped: bool = False
    state: str
    context_index: Optional[int] = None
    role_type: RoleType = None
    persona_name: Optional[str] = None


# ==============================================================================
# Portfolio
# ==============================================================================

class Problem(BaseModel):
    """
    A problem the user is paid to solve.

    Complete iff name + what_breaks + (2 scarcity signals OR unknown reason).
    """
    id: Optional[str] = None
    name: Optional[str] = None
    what_breaks: Optional[str] = None
    scarcity_signals: List[str] = Field(default_factory=list)
    scarcity_unknown_reason: Optional[str] = None

    # Direction evidence
    evidence_ai_cheaper: Optional[str] = None
    evidence_error_cost: Optional[str] = None
    evidence_trust_required: Optional[str] = None

    direction: Direction = None
    direction_rationale: Optional[str] = None
    time_allocation_percent: int = Field(default=0, ge=0, le=100)

    def violations(self) -> List[Violation]:
        return problem_completeness_violations(
            self.name,
            self.what_breaks,
            self.scarcity_signals,
            self.scarcity_unknown_reason,
        )

    @property
    def is_complete(self) -> bool:
        return not self.violations()

    @property
    def has_direction_evidence(self) -> bool:
        return all((self.evidence_ai_cheaper, self.evidence_error_cost, self.evidence_trust_required))


class PortfolioHealth(BaseModel):
    appreciating_percent: int = 0
    depreciating_percent: int = 0
    stable_percent: int = 0
    risk_statement: Optional[str] = None
    opportunity_statement: Optional[str] = None

    @classmethod
    def from_problems(cls, problems: List[Problem]) -> "PortfolioHealth":
        """Sums allocation per direction. Unclassified problems count as stable."""
        totals = {d: 0 for d in ProblemDirection}
        for problem in problems:
            totals[problem.direction or ProblemDirection.STABLE] += problem.time_allocation_percent
        return cls(
            appreciating_percent=totals[ProblemDirection.APPRECIATING],
            depreciating_percent=totals[ProblemDirection.DEPRECIATING],
            stable_percent=totals[ProblemDirection.STABLE],
        )


class PortfolioVersion(BaseModel):
    """Immutable snapshot of the portfolio written when Setup publishes."""
    id: Optional[str] = None
    version_number: int = 1
    problems: List[Problem] = Field(default_factory=list)
    health: Optional[PortfolioHealth] = None
    source_session_id: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)


# ==============================================================================
# Board
# ==============================================================================

class Persona(BaseModel):
    name: Optional[str] = None
    background: Optional[str] = None
    communication_style: Optional[str] = None
    signature_phrase: Optional[str] = None


class BoardMember(BaseModel):
    """
    A board seat. `original_persona` keeps the generated persona so user
    edits can be reset.
    """
    id: Optional[str] = None
    role_type: Role
    is_growth_role: bool = False
    is_active: bool = True
    anchored_problem_index: Optional[int] = None
    anchored_problem_id: Optional[str] = None
    anchored_demand: Optional[str] = None
    persona: Optional[Persona] = None
    original_persona: Optional[Persona] = None

    @property
    def persona_name(self) -> str:
        if self.persona and self.persona.name:
            return self.persona.name
        return self.role_type.display_name


# ==============================================================================
# Predictions
# ==============================================================================

class Prediction(BaseModel):
    """A falsifiable bet with a due date."""
    id: Optional[str] = None
    prediction: str
    wrong_if: str
    status: Status = PredictionStatus.OPEN
    source_session_id: Optional[str] = None
    evaluation_session_id: Optional[str] = None
    created_at: UtcDatetime = Field(default_factory=utc_now)
    due_at: Optional[UtcDatetime] = None
    evaluated_at: Optional[UtcDatetime] = None

    @classmethod
    def open(cls, prediction: str, wrong_if: str, duration_days: int,
             source_session_id: Optional[str] = None, now: Optional[datetime] = None) -> "Prediction":
        now = now or utc_now()
        return cls(
            prediction=prediction,
            wrong_if=wrong_if,
            source_session_id=source_session_id,
            created_at=now,
            due_at=now + timedelta(days=duration_days),
        )

    def is_overdue(self, now: datetime) -> bool:
        return self.status == PredictionStatus.OPEN and self.due_at is not None and self.due_at <= now

    def evaluate(self, new_status: PredictionStatus, session_id: Optional[str], at: datetime) -> "Prediction":
        """Returns a copy with the new status. Raises ValueError on a forbidden transition."""
        if not self.status.can_transition_to(new_status):
            raise ValueError(f"Prediction cannot move from {self.status.value} to {new_status.value}")
        return self.model_copy(
            update={
                "status": new_status,
                "evaluation_session_id": session_id,
                "evaluated_at": at if new_status.is_evaluated else self.evaluated_at,
            }
        )


class Evidence(BaseModel):
    """A receipt. Strength defaults from the evidence type."""
    description: str
    type: EvidenceKind = EvidenceType.NONE
    strength: Strength = None
    context: Optional[str] = None

    @model_validator(mode="after")
    def _default_strength(self):
        if self.strength is None:
            self.strength = self.type.default_strength
        return self


class BetEvaluation(BaseModel):
    prediction_id: Optional[str] = None
    prediction: str
    wrong_if: str
    previous_status: Status = PredictionStatus.OPEN
    status: Status = PredictionStatus.OPEN
    rationale: Optional[str] = None
    evidence: List[Evidence] = Field(default_factory=list)


class NewBet(BaseModel):
    prediction: str
    wrong_if: str
    duration_days: int = 90


# ==============================================================================
# Triggers
# ==============================================================================

class Trigger(BaseModel):
    """A condition that calls for re-running Setup."""
    id: Optional[str] = None
    trigger_type: TriggerKind
    description: str
    condition: str
    recommended_action: Action
    is_met: bool = False
    met_details: Optional[str] = None
    due_at: Optional[UtcDatetime] = None


class TriggerStatus(BaseModel):
    trigger_id: Optional[str] = None
    trigger_type: TriggerKind
    description: str
    is_met: bool = False
    details: Optional[str] = None


# ==============================================================================
# Quarterly review records
# ==============================================================================

class DirectionUpdate(BaseModel):
    problem_id: Optional[str] = None
    problem_name: str
    previous_direction: Direction = None
    new_direction: Direction = None
    rationale: Optional[str] = None


class AllocationUpdate(BaseModel):
    problem_id: Optional[str] = None
    problem_name: str
    previous_percent: int
    new_percent: int


class HealthTrend(BaseModel):
    previous_appreciating: int = 0
    current_appreciating: int = 0
    previous_depreciating: int = 0
    current_depreciating: int = 0
    previous_stable: int = 0
    current_stable: int = 0
    trend_description: Optional[str] = None

    @classmethod
    def compare(cls, previous: PortfolioHealth, current: PortfolioHealth) -> "HealthTrend":
        trend = cls(
            previous_appreciating=previous.appreciating_percent,
            current_appreciating=current.appreciating_percent,
            previous_depreciating=previous.depreciating_percent,
            current_depreciating=current.depreciating_percent,
            previous_stable=previous.stable_percent,
            current_stable=current.stable_percent,
        )
        trend.trend_description = trend.describe()
        return trend

    def describe(self) -> str:
        delta = self.current_appreciating - self.previous_appreciating
        if delta > 0:
            return f"Appreciating share up {delta} points"
        if delta < 0:
            return f"Appreciating share down {-delta} points"
        return "Appreciating share unchanged"


class BoardResponse(BaseModel):
    """One board member's question and the user's response."""
    member_index: int
    role_type: Role
    persona_name: str
    anchored_problem_id: Optional[str] = None
    anchored_demand: Optional[str] = None
    question: str
    response: str
    was_vague: bool = False
    concrete_example: Optional[str] = None
    skipped: bool = False
