"""
Database Table Definitions.

This module defines the SQL schema using SQLModel.
We use the 'DBModel' suffix to distinguish these persistence models
from the Pydantic state models (SessionRecord, Problem, BoardMember...).

Each row stores the full pydantic dump in a JSON column (JSONB on
PostgreSQL) next to the few columns the repositories filter on.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from ...state.models import utc_now

JSONDocument = JSON().with_variant(JSONB(), "postgresql")
# Every timestamp is stored with its UTC offset.
Timestamp = DateTime(timezone=True)


class SessionDBModel(SQLModel, table=True):
    """
    Persistence model for interview sessions.
    The snapshot column holds the whole SessionData variant.
    """

    __tablename__ = "interview_sessions"

    session_id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    kind: str = Field(index=True)
    status: str = Field(index=True)

    state: Dict[str, Any] = Field(sa_column=Column(JSONDocument, nullable=False))

    created_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)
    completed_at: Optional[datetime] = Field(default=None, sa_type=Timestamp)


class ProblemDBModel(SQLModel, table=True):
    __tablename__ = "problems"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    position: int = 0
    data: Dict[str, Any] = Field(sa_column=Column(JSONDocument, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)


class BoardMemberDBModel(SQLModel, table=True):
    __tablename__ = "board_members"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    position: int = 0
    role_type: str
    is_active: bool = True
    data: Dict[str, Any] = Field(sa_column=Column(JSONDocument, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)


class TriggerDBModel(SQLModel, table=True):
    __tablename__ = "resetup_triggers"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    position: int = 0
    trigger_type: str
    data: Dict[str, Any] = Field(sa_column=Column(JSONDocument, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)


class PredictionDBModel(SQLModel, table=True):
    __tablename__ = "predictions"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    status: str = Field(index=True)
    data: Dict[str, Any] = Field(sa_column=Column(JSONDocument, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)


class PortfolioHealthDBModel(SQLModel, table=True):
    """Append-only: the latest row per user is the current health."""

    __tablename__ = "portfolio_health"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    portfolio_version: int = 1
    data: Dict[str, Any] = Field(sa_column=Column(JSONDocument, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)


class PortfolioVersionDBModel(SQLModel, table=True):
    __tablename__ = "portfolio_versions"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    version_number: int
    data: Dict[str, Any] = Field(sa_column=Column(JSONDocument, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_type=Timestamp)
