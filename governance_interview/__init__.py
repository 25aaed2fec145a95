"""
Governed Interview Engine

Three deterministic interview workflows (Quick audit, portfolio Setup and
Quarterly review) driven by one generic state machine, with an LLM-backed
vagueness gate, clarification loops, domain validation and resumable
session snapshots.
"""

from governance_interview.domain import (
    AnswerMode,
    BoardRoleType,
    InterviewMachine,
    PredictionStatus,
    ProblemDirection,
    StepKind,
    WorkflowKind,
)
from governance_interview.state import (
    QuarterlySessionData,
    QuickSessionData,
    SessionData,
    SessionRecord,
    SetupSessionData,
)
from governance_interview.execution import (
    InterviewAssistant,
    InterviewEngine,
    ReportGenerator,
    VaguenessGate,
)

__all__ = [
    # Domain Layer
    "AnswerMode",
    "BoardRoleType",
    "InterviewMachine",
    "PredictionStatus",
    "ProblemDirection",
    "StepKind",
    "WorkflowKind",
    # State Layer
    "QuarterlySessionData",
    "QuickSessionData",
    "SessionData",
    "SessionRecord",
    "SetupSessionData",
    # Execution Layer
    "InterviewAssistant",
    "InterviewEngine",
    "ReportGenerator",
    "VaguenessGate",
]
