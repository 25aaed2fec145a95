"""
State Layer - Runtime Data Models

Defines the session snapshots for the three governed interviews and the
records they accumulate and eventually publish.
"""

from governance_interview.state.models import (
    BoardMember,
    Evidence,
    Persona,
    PortfolioHealth,
    PortfolioVersion,
    Prediction,
    Problem,
    QuestionAnswer,
    Trigger,
)
from governance_interview.state.sessions import (
    QuarterlySessionData,
    QuickSessionData,
    SessionData,
    SessionRecord,
    SessionStatus,
    SetupSessionData,
    decode_session_data,
    new_session_data,
)

__all__ = [
    "BoardMember",
    "Evidence",
    "Persona",
    "PortfolioHealth",
    "PortfolioVersion",
    "Prediction",
    "Problem",
    "QuestionAnswer",
    "Trigger",
    "QuarterlySessionData",
    "QuickSessionData",
    "SessionData",
    "SessionRecord",
    "SessionStatus",
    "SetupSessionData",
    "decode_session_data",
    "new_session_data",
]
