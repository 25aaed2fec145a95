import copy
from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

# Domain & Infra Imports
from ..domain.enums import WorkflowKind
from ..infrastructure.database.connection import engine as default_engine
from ..infrastructure.database.tables import SessionDBModel
from ..state.sessions import SessionRecord, SessionStatus, decode_session_data


class SessionRepository(ABC):
    """
    Defines how the runner accesses interview session snapshots.
    This allows us change how data is accessed (Memory -> SQL -> API) later
    without changing the InterviewRunner code.
    """

    @abstractmethod
    def create(self, record: SessionRecord) -> SessionRecord:
        """Persists a new session record."""
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionRecord]:
        """Retrieves a session by ID."""
        pass

    @abstractmethod
    def get_status(self, session_id: str) -> Optional[SessionStatus]:
        """Reads only the lifecycle status of a stored session."""
        pass

    @abstractmethod
    def save(self, record: SessionRecord):
        """Overwrites the stored snapshot and metadata."""
        pass

    @abstractmethod
    def find_active(self, user_id: str, kind: WorkflowKind) -> Optional[SessionRecord]:
        """The single existence query behind the one-active-session-per-kind rule."""
        pass

    @abstractmethod
    def latest_finalized(self, user_id: str, kind: WorkflowKind) -> Optional[SessionRecord]:
        """Most recently completed session of a kind."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Deletes a session. Returns True if found and deleted."""
        pass


class InMemorySessionRepository(SessionRepository):
    """
    Uses in-memory dictionary for session storage for testing/dev purposes.
    Records are copied in and out so callers never share a live snapshot.
    """

    def __init__(self):
        self._store: Dict[str, SessionRecord] = {}

    def create(self, record: SessionRecord) -> SessionRecord:
        if record.session_id in self._store:
            raise ValueError(f"Session {record.session_id} already exists.")
        self._store[record.session_id] = record.model_copy(deep=True)
        return record

    def get(self, session_id: str) -> Optional[SessionRecord]:
        record = self._store.get(session_id)
        return record.model_copy(deep=True) if record else None

    def get_status(self, session_id: str) -> Optional[SessionStatus]:
        record = self._store.get(session_id)
        return record.status if record else None

    def save(self, record: SessionRecord):
        if record.session_id not in self._store:
            raise ValueError(f"Session {record.session_id} does not exist.")
        self._store[record.session_id] = record.model_copy(deep=True)

    def find_active(self, user_id: str, kind: WorkflowKind) -> Optional[SessionRecord]:
        for record in self._store.values():
            if record.user_id == user_id and record.kind == kind and record.status == SessionStatus.ACTIVE:
                return record.model_copy(deep=True)
        return None

    def latest_finalized(self, user_id: str, kind: WorkflowKind) -> Optional[SessionRecord]:
        finalized = [
            r for r in self._store.values()
            if r.user_id == user_id and r.kind == kind and r.status == SessionStatus.FINALIZED
        ]
        if not finalized:
            return None
        latest = max(finalized, key=lambda r: r.completed_at or r.updated_at)
        return latest.model_copy(deep=True)

    def delete(self, session_id: str) -> bool:
        if session_id in self._store:
            del self._store[session_id]
            return True
        return False


# ==============================================================================
# SQL
# ==============================================================================

def to_record(row: SessionDBModel) -> SessionRecord:
    return SessionRecord(
        session_id=row.session_id,
        user_id=row.user_id,
        kind=WorkflowKind(row.kind),
        status=SessionStatus(row.status),
        data=decode_session_data(copy.deepcopy(row.state)),
        created_at=row.created_at,
        updated_at=row.updated_at,
        completed_at=row.completed_at,
    )


def write_record(db: Session, record: SessionRecord):
    """
    Stages an update of an existing session row on an open DB session.
    Shared with the governance repository so publish can commit both together.
    """
    row = db.get(SessionDBModel, record.session_id)
    if row is None:
        raise ValueError(f"Session {record.session_id} does not exist in DB.")
    # Update the JSON blob and the metadata columns
    row.state = record.data.model_dump(mode="json")
    row.status = record.status.value
    row.updated_at = record.updated_at
    row.completed_at = record.completed_at
    db.add(row)


class SqlSessionRepository(SessionRepository):
    """
    SQL + JSON(B) storage for session snapshots.
    """

    def __init__(self, engine: Engine = default_engine):
        self.engine = engine

    def create(self, record: SessionRecord) -> SessionRecord:
        db_model = SessionDBModel(
            session_id=record.session_id,
            user_id=record.user_id,
            kind=record.kind.value,
            status=record.status.value,
            state=record.data.model_dump(mode="json"),
            created_at=record.created_at,
            updated_at=record.updated_at,
            completed_at=record.completed_at,
        )
        with Session(self.engine) as db:
            db.add(db_model)
            db.commit()
        return record

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with Session(self.engine) as db:
            result = db.get(SessionDBModel, session_id)
            if not result:
                return None
            return to_record(result)

    def get_status(self, session_id: str) -> Optional[SessionStatus]:
        with Session(self.engine) as db:
            statement = select(SessionDBModel.status).where(SessionDBModel.session_id == session_id)
            status = db.exec(statement).first()
            return SessionStatus(status) if status else None

    def save(self, record: SessionRecord):
        with Session(self.engine) as db:
            write_record(db, record)
            db.commit()

    def find_active(self, user_id: str, kind: WorkflowKind) -> Optional[SessionRecord]:
        with Session(self.engine) as db:
            statement = select(SessionDBModel).where(
                SessionDBModel.user_id == user_id,
                SessionDBModel.kind == kind.value,
                SessionDBModel.status == SessionStatus.ACTIVE.value,
            )
            result = db.exec(statement).first()
            return to_record(result) if result else None

    def latest_finalized(self, user_id: str, kind: WorkflowKind) -> Optional[SessionRecord]:
        with Session(self.engine) as db:
            statement = (
                select(SessionDBModel)
                .where(
                    SessionDBModel.user_id == user_id,
                    SessionDBModel.kind == kind.value,
                    SessionDBModel.status == SessionStatus.FINALIZED.value,
                )
                .order_by(SessionDBModel.completed_at.desc())
            )
            result = db.exec(statement).first()
            return to_record(result) if result else None

    def delete(self, session_id: str) -> bool:
        with Session(self.engine) as db:
            result = db.get(SessionDBModel, session_id)
            if result:
                db.delete(result)
                db.commit()
                return True
            return False
