"""
Schemas - Structured Output Models for LLM Responses

Pydantic models used as `response_format` for structured LLM outputs. Each
model is the strict JSON shape one interview assistant call must return.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from ..domain.enums import BoardRoleType, ProblemDirection


class VaguenessVerdict(BaseModel):
    """
    The LLM's judgement on one free-text answer.
    Only consulted when the heuristic pre-screen is inconclusive.
    """
    is_vague: bool = Field(
        ...,
        description="True only if the answer lacks a named instance, uses generic qualifiers AND has no timeline, stakeholder or observable outcome."
    )
    concrete_example_suggestion: Optional[str] = Field(
        None,
        description="When vague: a short prompt telling the user what kind of concrete example is missing."
    )
    reasoning: str = Field(
        ...,
        description="Brief explanation of why the answer is or isn't vague."
    )


class ParsedProblems(BaseModel):
    problems: List[str] = Field(
        ...,
        description="Up to 3 distinct problems, each a concise phrase of 2-8 words."
    )


class DirectionAssessment(BaseModel):
    direction: ProblemDirection = Field(
        ...,
        description="appreciating, depreciating or stable (mixed signals)."
    )
    rationale: str = Field(
        ...,
        description="One sentence referencing the user's own answers."
    )


class HealthStatements(BaseModel):
    risk_statement: str = Field(..., description="One sentence: where is this person most exposed?")
    opportunity_statement: str = Field(
        ..., description="One sentence: where might they be under-investing in appreciating skills?"
    )


class RoleAnchoring(BaseModel):
    role_type: BoardRoleType
    problem_index: Optional[int] = Field(None, description="0-based index of the problem this role focuses on.")
    demand: str = Field(..., description="Specific, actionable demand (10-30 words) referencing the problem.")


class AnchoringPlan(BaseModel):
    anchorings: List[RoleAnchoring]


class GeneratedPersona(BaseModel):
    name: str = Field(..., description="Realistic first and last name.")
    background: str = Field(..., description="Brief professional history, 20-50 words.")
    communication_style: str = Field(..., description="How they communicate, 10-25 words.")
    signature_phrase: Optional[str] = Field(None, description="Catchphrase or common opening, 5-15 words.")


class BoardQuestion(BaseModel):
    question: str = Field(..., description="ONE direct question, 10-30 words, in the persona's voice.")


class QuickReport(BaseModel):
    """Final output of the 15-minute audit."""
    markdown: str = Field(..., description="Complete formatted markdown output.")
    assessment: str = Field(..., description="Exactly two sentences, blunt but warm.")
    bet_prediction: str = Field(..., description="'In 90 days, ...' specific and falsifiable.")
    bet_wrong_if: str = Field(..., description="'Wrong if ...' observable evidence.")


class GovernanceReport(BaseModel):
    """Final output of Setup and Quarterly sessions."""
    markdown: str = Field(..., description="Complete formatted markdown report.")
