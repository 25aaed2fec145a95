"""
Schemas - User Form Payloads

Structured inputs for gates and FORM questions. Free-text answers go through
`submit_answer`; everything else arrives as one of these models.
"""

from typing import Dict, List, Optional, Type

from pydantic import BaseModel, Field

from ..domain.enums import EvidenceType, PredictionStatus, ProblemDirection
from ..state.models import Evidence, Problem


class PrivacyForm(BaseModel):
    """Sensitivity gate: whether to abstract names and employers in outputs."""
    abstraction_mode: bool = False


class ProblemForm(BaseModel):
    name: Optional[str] = None
    what_breaks: Optional[str] = None
    scarcity_signals: List[str] = Field(default_factory=list)
    scarcity_unknown_reason: Optional[str] = None
    evidence_ai_cheaper: Optional[str] = None
    evidence_error_cost: Optional[str] = None
    evidence_trust_required: Optional[str] = None
    direction: Optional[ProblemDirection] = None
    direction_rationale: Optional[str] = None

    def to_problem(self) -> Problem:
        return Problem(**self.model_dump())


class AllocationForm(BaseModel):
    """One integer percent per problem, in portfolio order."""
    allocations: List[int]


class EvidenceItem(BaseModel):
    description: str
    type: EvidenceType = EvidenceType.NONE
    context: Optional[str] = None

    def to_evidence(self) -> Evidence:
        return Evidence(description=self.description, type=self.type, context=self.context)


class BetEvaluationForm(BaseModel):
    status: PredictionStatus
    rationale: Optional[str] = None
    evidence: List[EvidenceItem] = Field(default_factory=list)


class DirectionChange(BaseModel):
    problem_index: int
    new_direction: ProblemDirection
    rationale: Optional[str] = None


class HealthUpdateForm(BaseModel):
    """Q6: direction reclassifications and, optionally, a new allocation per problem."""
    direction_changes: List[DirectionChange] = Field(default_factory=list)
    allocations: Optional[List[int]] = None


class TriggerMark(BaseModel):
    trigger_index: int
    details: Optional[str] = None


class TriggerCheckForm(BaseModel):
    met: List[TriggerMark] = Field(default_factory=list)


class NewBetForm(BaseModel):
    prediction: str
    wrong_if: str
    duration_days: Optional[int] = Field(None, gt=0)


class PersonaEdit(BaseModel):
    """Partial persona update. Omitted fields are left unchanged."""
    name: Optional[str] = None
    background: Optional[str] = None
    communication_style: Optional[str] = None
    signature_phrase: Optional[str] = None


FORMS: Dict[str, Type[BaseModel]] = {
    "privacy": PrivacyForm,
    "problem": ProblemForm,
    "allocation": AllocationForm,
    "bet_evaluation": BetEvaluationForm,
    "health_update": HealthUpdateForm,
    "trigger_check": TriggerCheckForm,
    "next_bet": NewBetForm,
}
