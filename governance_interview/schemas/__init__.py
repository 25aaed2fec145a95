"""
Schemas - Structured Output Models and Form Payloads

Defines the Pydantic models used for structured LLM outputs and for the
structured user inputs accepted by gates and form questions.
"""

from governance_interview.schemas.decisions import (
    AnchoringPlan,
    BoardQuestion,
    DirectionAssessment,
    GeneratedPersona,
    GovernanceReport,
    HealthStatements,
    ParsedProblems,
    QuickReport,
    RoleAnchoring,
    VaguenessVerdict,
)
from governance_interview.schemas.forms import FORMS

__all__ = [
    "AnchoringPlan",
    "BoardQuestion",
    "DirectionAssessment",
    "GeneratedPersona",
    "GovernanceReport",
    "HealthStatements",
    "ParsedProblems",
    "QuickReport",
    "RoleAnchoring",
    "VaguenessVerdict",
    "FORMS",
]
