"""
Domain Layer - Static Definitions

Closed value sets, the generic interview state machine, the three workflow
transition tables and the pure validation rules.
"""

from governance_interview.domain.enums import (
    BoardRoleType,
    EvidenceStrength,
    EvidenceType,
    PredictionStatus,
    ProblemDirection,
    RecommendedAction,
    TriggerType,
    WorkflowKind,
)
from governance_interview.domain.machine import (
    AnswerMode,
    InterviewMachine,
    MachineDefinitionError,
    StateSpec,
    StepKind,
)
from governance_interview.domain.validation import (
    AllocationBand,
    AllocationCheck,
    Violation,
    allocation_band,
    check_allocation,
    problem_completeness_violations,
)

__all__ = [
    # Enums
    "BoardRoleType",
    "EvidenceStrength",
    "EvidenceType",
    "PredictionStatus",
    "ProblemDirection",
    "RecommendedAction",
    "TriggerType",
    "WorkflowKind",
    # Machine
    "AnswerMode",
    "InterviewMachine",
    "MachineDefinitionError",
    "StateSpec",
    "StepKind",
    # Validation
    "AllocationBand",
    "AllocationCheck",
    "Violation",
    "allocation_band",
    "check_allocation",
    "problem_completeness_violations",
]
