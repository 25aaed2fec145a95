"""
API Layer - Request/Response Schemas

Pydantic models for API request and response validation. Operation
responses are the runner's InterviewView as-is.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from ..domain.enums import WorkflowKind
from ..services.runner import InterviewView


class StartSessionRequest(BaseModel):
    user_id: str = Field(min_length=1)
    kind: WorkflowKind
    # Answers the privacy gate immediately when given
    abstraction_mode: Optional[bool] = None


class AnswerRequest(BaseModel):
    text: str


class PrivacyRequest(BaseModel):
    abstraction_mode: bool


class TranscriptEntry(BaseModel):
    question: str
    answer: str
    was_vague: bool = False
    concrete_example: Optional[str] = None
    skipped: bool = False
    persona_name: Optional[str] = None


class SessionRead(BaseModel):
    """Full session resource: the current view plus the transcript."""
    view: InterviewView
    user_id: str
    status: str
    transcript: List[TranscriptEntry]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    snapshot: Optional[dict[str, Any]] = None


class ViolationRead(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    detail: str
    violations: List[ViolationRead] = Field(default_factory=list)
    session_id: Optional[str] = None
    retryable: bool = False
