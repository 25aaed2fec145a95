"""
Governance Repository - durable entities produced by finalized sessions.

Problems, board members, triggers, predictions, portfolio health and
portfolio versions. Reads are scoped to one user. Writes only happen through
`publish`, which applies a Changeset and the finalized session record as one
unit: either everything is stored or nothing is.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from ..infrastructure.database.connection import engine as default_engine
from ..infrastructure.database.tables import (
    BoardMemberDBModel,
    PortfolioHealthDBModel,
    PortfolioVersionDBModel,
    PredictionDBModel,
    ProblemDBModel,
    TriggerDBModel,
)
from ..state.models import BoardMember, PortfolioHealth, PortfolioVersion, Prediction, Problem, Trigger
from ..state.sessions import SessionRecord
from .session import InMemorySessionRepository, write_record


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Changeset:
    """
    Everything one finalize writes besides the session record.

    Attributes:
        replace_portfolio: Setup replaces the user's problems, board and
            triggers. Otherwise problems and triggers are upserted by id.
        predictions: Upserted by id (new bets and evaluated bets).
        health: Appended as the user's latest portfolio health.
        portfolio_version: Appended; numbered by the repository.

    Every entity carries its id before publish; ids are assigned by the
    workflow handler so the session snapshot can reference them.
    """
    user_id: str
    replace_portfolio: bool = False
    problems: List[Problem] = field(default_factory=list)
    board_members: List[BoardMember] = field(default_factory=list)
    triggers: List[Trigger] = field(default_factory=list)
    predictions: List[Prediction] = field(default_factory=list)
    health: Optional[PortfolioHealth] = None
    portfolio_version: Optional[PortfolioVersion] = None


class GovernanceRepository(ABC):

    @abstractmethod
    def get_problems(self, user_id: str) -> List[Problem]:
        pass

    @abstractmethod
    def get_board_members(self, user_id: str) -> List[BoardMember]:
        pass

    @abstractmethod
    def get_triggers(self, user_id: str) -> List[Trigger]:
        pass

    @abstractmethod
    def latest_health(self, user_id: str) -> Optional[PortfolioHealth]:
        pass

    @abstractmethod
    def has_portfolio(self, user_id: str) -> bool:
        """True once any portfolio version exists."""
        pass

    @abstractmethod
    def list_predictions(self, user_id: str) -> List[Prediction]:
        """Newest first."""
        pass

    @abstractmethod
    def get_prediction(self, user_id: str, prediction_id: str) -> Optional[Prediction]:
        pass

    @abstractmethod
    def publish(self, changeset: Changeset, record: SessionRecord) -> SessionRecord:
        """
        Atomically stores the changeset and overwrites the session record.
        Raises on failure with nothing applied.
        """
        pass

    def latest_evaluable_prediction(self, user_id: str) -> Optional[Prediction]:
        """Most recent open or expired prediction."""
        for prediction in self.list_predictions(user_id):
            if prediction.status.can_evaluate:
                return prediction
        return None


# ==============================================================================
# In-Memory
# ==============================================================================

class InMemoryGovernanceRepository(GovernanceRepository):
    """
    Dictionary storage for testing/dev purposes. Publishes the session record
    through the in-memory session repository it is paired with.
    """

    def __init__(self, session_repository: InMemorySessionRepository):
        self.sessions = session_repository
        self._problems: Dict[str, List[Problem]] = {}
        self._board: Dict[str, List[BoardMember]] = {}
        self._triggers: Dict[str, List[Trigger]] = {}
        self._predictions: Dict[str, List[Prediction]] = {}
        self._health: Dict[str, List[PortfolioHealth]] = {}
        self._versions: Dict[str, List[PortfolioVersion]] = {}

    def get_problems(self, user_id: str) -> List[Problem]:
        return [p.model_copy(deep=True) for p in self._problems.get(user_id, [])]

    def get_board_members(self, user_id: str) -> List[BoardMember]:
        return [m.model_copy(deep=True) for m in self._board.get(user_id, [])]

    def get_triggers(self, user_id: str) -> List[Trigger]:
        return [t.model_copy(deep=True) for t in self._triggers.get(user_id, [])]

    def latest_health(self, user_id: str) -> Optional[PortfolioHealth]:
        history = self._health.get(user_id)
        return history[-1].model_copy(deep=True) if history else None

    def has_portfolio(self, user_id: str) -> bool:
        return bool(self._versions.get(user_id))

    def list_predictions(self, user_id: str) -> List[Prediction]:
        predictions = sorted(self._predictions.get(user_id, []), key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in predictions]

    def get_prediction(self, user_id: str, prediction_id: str) -> Optional[Prediction]:
        for prediction in self._predictions.get(user_id, []):
            if prediction.id == prediction_id:
                return prediction.model_copy(deep=True)
        return None

    def versions(self, user_id: str) -> List[PortfolioVersion]:
        return [v.model_copy(deep=True) for v in self._versions.get(user_id, [])]

    def publish(self, changeset: Changeset, record: SessionRecord) -> SessionRecord:
        user_id = changeset.user_id
        # Build every new collection first, then swap them in together.
        problems = self._merge(self._problems.get(user_id, []), changeset.problems, changeset.replace_portfolio)
        triggers = self._merge(self._triggers.get(user_id, []), changeset.triggers, changeset.replace_portfolio)
        board = self._merge(self._board.get(user_id, []), changeset.board_members, changeset.replace_portfolio)
        predictions = self._merge(self._predictions.get(user_id, []), changeset.predictions, False)
        health = list(self._health.get(user_id, []))
        if changeset.health:
            health.append(changeset.health.model_copy(deep=True))
        versions = list(self._versions.get(user_id, []))
        if changeset.portfolio_version:
            versions.append(
                changeset.portfolio_version.model_copy(update={"version_number": len(versions) + 1}, deep=True)
            )

        self.sessions.save(record)
        self._problems[user_id] = problems
        self._triggers[user_id] = triggers
        self._board[user_id] = board
        self._predictions[user_id] = predictions
        self._health[user_id] = health
        self._versions[user_id] = versions
        return record

    @staticmethod
    def _merge(existing, incoming, replace: bool):
        merged = [] if replace else [item.model_copy(deep=True) for item in existing]
        index = {item.id: i for i, item in enumerate(merged)}
        for item in incoming:
            if item.id in index:
                merged[index[item.id]] = item.model_copy(deep=True)
            else:
                merged.append(item.model_copy(deep=True))
        return merged


# ==============================================================================
# SQL
# ==============================================================================

class SqlGovernanceRepository(GovernanceRepository):
    """
    SQL storage. Each entity row keeps its pydantic dump in a JSON(B) column.
    """

    def __init__(self, engine: Engine = default_engine):
        self.engine = engine

    def get_problems(self, user_id: str) -> List[Problem]:
        with Session(self.engine) as db:
            statement = select(ProblemDBModel).where(ProblemDBModel.user_id == user_id).order_by(ProblemDBModel.position)
            return [Problem.model_validate(row.data) for row in db.exec(statement)]

    def get_board_members(self, user_id: str) -> List[BoardMember]:
        with Session(self.engine) as db:
            statement = (
                select(BoardMemberDBModel)
                .where(BoardMemberDBModel.user_id == user_id)
                .order_by(BoardMemberDBModel.position)
            )
            return [BoardMember.model_validate(row.data) for row in db.exec(statement)]

    def get_triggers(self, user_id: str) -> List[Trigger]:
        with Session(self.engine) as db:
            statement = select(TriggerDBModel).where(TriggerDBModel.user_id == user_id).order_by(TriggerDBModel.position)
            return [Trigger.model_validate(row.data) for row in db.exec(statement)]

    def latest_health(self, user_id: str) -> Optional[PortfolioHealth]:
        with Session(self.engine) as db:
            statement = (
                select(PortfolioHealthDBModel)
                .where(PortfolioHealthDBModel.user_id == user_id)
                .order_by(PortfolioHealthDBModel.created_at.desc(), PortfolioHealthDBModel.portfolio_version.desc())
            )
            row = db.exec(statement).first()
            return PortfolioHealth.model_validate(row.data) if row else None

    def has_portfolio(self, user_id: str) -> bool:
        with Session(self.engine) as db:
            statement = select(PortfolioVersionDBModel.id).where(PortfolioVersionDBModel.user_id == user_id)
            return db.exec(statement).first() is not None

    def list_predictions(self, user_id: str) -> List[Prediction]:
        with Session(self.engine) as db:
            statement = (
                select(PredictionDBModel)
                .where(PredictionDBModel.user_id == user_id)
                .order_by(PredictionDBModel.created_at.desc())
            )
            return [Prediction.model_validate(row.data) for row in db.exec(statement)]

    def get_prediction(self, user_id: str, prediction_id: str) -> Optional[Prediction]:
        with Session(self.engine) as db:
            row = db.get(PredictionDBModel, prediction_id)
            if row is None or row.user_id != user_id:
                return None
            return Prediction.model_validate(row.data)

    def publish(self, changeset: Changeset, record: SessionRecord) -> SessionRecord:
        user_id = changeset.user_id
        now = record.updated_at
        with Session(self.engine) as db:
            if changeset.replace_portfolio:
                db.execute(delete(ProblemDBModel).where(ProblemDBModel.user_id == user_id))
                db.execute(delete(BoardMemberDBModel).where(BoardMemberDBModel.user_id == user_id))
                db.execute(delete(TriggerDBModel).where(TriggerDBModel.user_id == user_id))

            for position, problem in enumerate(changeset.problems):
                row = db.get(ProblemDBModel, problem.id) or ProblemDBModel(id=problem.id, user_id=user_id)
                row.position = position
                row.data = problem.model_dump(mode="json")
                row.updated_at = now
                db.add(row)

            for position, member in enumerate(changeset.board_members):
                row = db.get(BoardMemberDBModel, member.id) or BoardMemberDBModel(
                    id=member.id, user_id=user_id, role_type=member.role_type.value
                )
                row.position = position
                row.is_active = member.is_active
                row.data = member.model_dump(mode="json")
                row.updated_at = now
                db.add(row)

            for position, trigger in enumerate(changeset.triggers):
                row = db.get(TriggerDBModel, trigger.id) or TriggerDBModel(
                    id=trigger.id, user_id=user_id, trigger_type=trigger.trigger_type.value
                )
                if changeset.replace_portfolio:
                    row.position = position
                row.data = trigger.model_dump(mode="json")
                row.updated_at = now
                db.add(row)

            for prediction in changeset.predictions:
                row = db.get(PredictionDBModel, prediction.id) or PredictionDBModel(
                    id=prediction.id, user_id=user_id, status=prediction.status.value, created_at=prediction.created_at
                )
                row.status = prediction.status.value
                row.data = prediction.model_dump(mode="json")
                row.updated_at = now
                db.add(row)

            version_number = None
            if changeset.portfolio_version:
                count = db.exec(
                    select(func.count()).select_from(PortfolioVersionDBModel).where(
                        PortfolioVersionDBModel.user_id == user_id
                    )
                ).one()
                version_number = count + 1
                version = changeset.portfolio_version.model_copy(update={"version_number": version_number})
                db.add(
                    PortfolioVersionDBModel(
                        id=version.id or new_id(),
                        user_id=user_id,
                        version_number=version_number,
                        data=version.model_dump(mode="json"),
                        created_at=now,
                    )
                )

            if changeset.health:
                db.add(
                    PortfolioHealthDBModel(
                        id=new_id(),
                        user_id=user_id,
                        portfolio_version=version_number or 1,
                        data=changeset.health.model_dump(mode="json"),
                        created_at=now,
                    )
                )

            write_record(db, record)
            db.commit()
        return record
