"""
Interview Runner - Application Orchestration Layer

This service is the entry point for all interview operations. It loads a
session, lets the InterviewEngine apply one operation to a private copy of
the snapshot, and commits the copy only when everything succeeded:

1. Load the committed record (must be active)
2. Apply the operation to a deep copy
3. Re-check that the session was not abandoned meanwhile
4. Save the copy (the new committed snapshot)
5. If the session now waits on its finalize step, generate the report and
   publish the entities together with the finalized snapshot

A failure at any step leaves the committed snapshot untouched, so the same
call can simply be retried. Operations on one session are serialized in
submission order.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ..config import settings
from ..domain.enums import WorkflowKind
from ..domain.machine import AnswerMode
from ..execution.assistant import InterviewAssistant
from ..execution.engine import InterviewEngine, form_name_of
from ..execution.gate import VaguenessGate
from ..execution.reports import ReportGenerator
from ..execution.workflows import WorkflowContext, handler_for
from ..repositories.governance import GovernanceRepository, new_id
from ..repositories.session import SessionRepository
from ..schemas.forms import PersonaEdit
from ..state.models import utc_now
from ..state.sessions import SessionData, SessionRecord, SessionStatus, new_session_data
from .exceptions import (
    AlreadyInProgress,
    InterviewError,
    InvalidSessionState,
    PersistenceWriteFailed,
    SessionNotFound,
)

logger = logging.getLogger(__name__)

Operation = Callable[[InterviewEngine, WorkflowContext, SessionData], Awaitable[None]]


class InterviewPhase(str, Enum):
    """Lifecycle of a session as seen by the presentation layer."""
    IDLE = "idle"
    ACTIVE = "active"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"
    ABANDONED = "abandoned"


class InterviewView(BaseModel):
    """Everything the presentation layer needs to render the current state."""
    session_id: str
    kind: WorkflowKind
    phase: InterviewPhase
    state: str
    display_name: str
    progress_percent: int
    question_text: Optional[str] = None
    question_number: int = 0
    answer_mode: AnswerMode = AnswerMode.NONE
    expected_form: Optional[str] = None
    can_skip: bool = False
    vagueness_skip_count: int = 0
    is_processing: bool = False
    clarify_suggestion: Optional[str] = None
    notices: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    output_markdown: Optional[str] = None


class InterviewRunner:
    def __init__(
        self,
        session_repository: SessionRepository,
        governance_repository: GovernanceRepository,
        gate: VaguenessGate,
        assistant: InterviewAssistant,
        reports: ReportGenerator,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sessions = session_repository
        self.governance = governance_repository
        self.gate = gate
        self.assistant = assistant
        self.reports = reports
        self.clock = clock

        self._engines: Dict[WorkflowKind, InterviewEngine] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._errors: Dict[str, str] = {}

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def start(
        self, user_id: str, kind: WorkflowKind, abstraction_mode: Optional[bool] = None
    ) -> InterviewView:
        """
        Creates a session at its first waiting state. When `abstraction_mode`
        is given the privacy gate is answered immediately.
        """
        existing = self.sessions.find_active(user_id, kind)
        if existing:
            raise AlreadyInProgress(existing.session_id)

        session_id = new_id()
        now = self.clock()
        engine = self._engine(kind)
        ctx = self._context(session_id, user_id, now)
        data = new_session_data(kind)

        await engine.settle(ctx, data)
        if abstraction_mode is not None:
            await engine.submit_form(ctx, data, "privacy", {"abstraction_mode": abstraction_mode})

        record = SessionRecord(
            session_id=session_id,
            user_id=user_id,
            kind=kind,
            data=data,
            created_at=now,
            updated_at=now,
        )
        try:
            self.sessions.create(record)
        except Exception as e:
            logger.error(f"Could not create session {session_id}: {e}")
            raise PersistenceWriteFailed(f"Could not create session {session_id}") from e

        logger.info(f"Started {kind.value} session {session_id} for user {user_id}")
        return self._view(record, ctx.notices)

    def resume(self, session_id: str) -> InterviewView:
        """Loads the last committed snapshot."""
        record = self._load(session_id)
        logger.info(f"Resumed session {session_id} at '{record.data.current_state.value}'")
        return self._view(record)

    def view(self, session_id: str) -> InterviewView:
        return self._view(self._load(session_id))

    def get_record(self, session_id: str) -> SessionRecord:
        return self._load(session_id)

    def abandon(self, session_id: str) -> InterviewView:
        """
        Moves the session to its abandoned terminal state. Safe while another
        operation is running: that operation discards its result.
        """
        record = self._load(session_id)
        if record.status != SessionStatus.ACTIVE:
            raise InvalidSessionState(f"Session {session_id} is already {record.status.value}")

        now = self.clock()
        record.status = SessionStatus.ABANDONED
        record.data.current_state = record.data.machine.abandoned
        record.data.clarify_prompt = None
        record.updated_at = now
        record.completed_at = now

        if settings.PURGE_ABANDONED_SESSIONS:
            self.sessions.delete(session_id)
            logger.info(f"Abandoned and purged session {session_id}")
        else:
            self._save(record)
            logger.info(f"Abandoned session {session_id}")

        self._errors.pop(session_id, None)
        if not self._locks[session_id].locked():
            self._locks.pop(session_id, None)
        return self._view(record)

    # ==========================================================================
    # Interview Operations
    # ==========================================================================

    async def submit_answer(self, session_id: str, text: str) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.submit_answer(ctx, data, text)
        return await self._operate(session_id, operation)

    async def skip(self, session_id: str) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.skip(ctx, data)
        return await self._operate(session_id, operation)

    async def submit_form(self, session_id: str, form_name: str, payload: dict) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.submit_form(ctx, data, form_name, payload)
        return await self._operate(session_id, operation)

    async def set_privacy(self, session_id: str, abstraction_mode: bool) -> InterviewView:
        return await self.submit_form(session_id, "privacy", {"abstraction_mode": abstraction_mode})

    async def proceed(self, session_id: str) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.proceed(ctx, data)
        return await self._operate(session_id, operation)

    async def finalize(self, session_id: str) -> InterviewView:
        """Retries the finalize step of a session waiting on it."""
        async def operation(engine, ctx, data):
            if not engine.ready_to_finalize(data):
                raise InvalidSessionState(
                    f"Session is at '{data.current_state.value}', not ready to finalize"
                )
        return await self._operate(session_id, operation)

    # --------------------------------------------------------------------------
    # Setup portfolio commands
    # --------------------------------------------------------------------------

    async def add_problem(self, session_id: str) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.add_problem(ctx, data)
        return await self._operate(session_id, operation)

    async def remove_problem(self, session_id: str, index: int) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.remove_problem(ctx, data, index)
        return await self._operate(session_id, operation)

    async def update_persona(self, session_id: str, member_index: int, edit: PersonaEdit) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.update_persona(ctx, data, member_index, edit)
        return await self._operate(session_id, operation)

    async def reset_persona(self, session_id: str, member_index: int) -> InterviewView:
        async def operation(engine, ctx, data):
            await engine.reset_persona(ctx, data, member_index)
        return await self._operate(session_id, operation)

    # ==========================================================================
    # Commit Discipline
    # ==========================================================================

    async def _operate(self, session_id: str, operation: Operation) -> InterviewView:
        async with self._locks[session_id]:
            record = self._load(session_id)
            if record.status != SessionStatus.ACTIVE:
                raise InvalidSessionState(f"Session {session_id} is {record.status.value}")

            engine = self._engine(record.kind)
            ctx = self._context(session_id, record.user_id, self.clock())
            working = record.model_copy(deep=True)

            try:
                await operation(engine, ctx, working.data)
                self._ensure_still_active(session_id)
                working.updated_at = ctx.now
                self._save(working)

                if engine.ready_to_finalize(working.data):
                    working = await self._finalize(engine, ctx, working)
            except InterviewError as e:
                self._errors[session_id] = str(e)
                raise

            self._errors.pop(session_id, None)
        return self._view(working, ctx.notices)

    async def _finalize(self, engine: InterviewEngine, ctx: WorkflowContext, record: SessionRecord) -> SessionRecord:
        """
        Report generation and publish. `record` is the committed pre-finalize
        checkpoint and is left untouched on failure.
        """
        finalizing = record.model_copy(deep=True)
        logger.info(f"Finalizing session {record.session_id}")

        changeset = await engine.finalize(ctx, finalizing.data)
        self._ensure_still_active(record.session_id)

        finalizing.status = SessionStatus.FINALIZED
        finalizing.completed_at = ctx.now
        finalizing.updated_at = ctx.now
        try:
            self.governance.publish(changeset, finalizing)
        except Exception as e:
            logger.error(f"Publish failed for session {record.session_id}: {e}")
            raise PersistenceWriteFailed(
                f"Could not publish session {record.session_id}; finalize can be retried"
            ) from e

        logger.info(f"Finalized {record.kind.value} session {record.session_id}")
        return finalizing

    def _ensure_still_active(self, session_id: str):
        status = self.sessions.get_status(session_id)
        if status != SessionStatus.ACTIVE:
            logger.info(f"Session {session_id} left the active state mid-operation; result discarded")
            raise InvalidSessionState(f"Session {session_id} is no longer active")

    def _save(self, record: SessionRecord):
        try:
            self.sessions.save(record)
        except Exception as e:
            logger.error(f"Snapshot write failed for session {record.session_id}: {e}")
            raise PersistenceWriteFailed(f"Could not save session {record.session_id}") from e

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _load(self, session_id: str) -> SessionRecord:
        record = self.sessions.get(session_id)
        if record is None:
            raise SessionNotFound(f"Session {session_id} not found")
        return record

    def _engine(self, kind: WorkflowKind) -> InterviewEngine:
        if kind not in self._engines:
            self._engines[kind] = InterviewEngine(handler_for(kind), self.gate)
        return self._engines[kind]

    def _context(self, session_id: str, user_id: str, now: datetime) -> WorkflowContext:
        return WorkflowContext(
            session_id=session_id,
            user_id=user_id,
            assistant=self.assistant,
            reports=self.reports,
            governance=self.governance,
            sessions=self.sessions,
            now=now,
        )

    def _view(self, record: SessionRecord, notices: Optional[List[str]] = None) -> InterviewView:
        data = record.data
        machine = data.machine
        state = data.current_state
        spec = machine.spec(state)
        handler = self._engine(record.kind).handler

        match record.status:
            case SessionStatus.FINALIZED:
                phase = InterviewPhase.FINALIZED
            case SessionStatus.ABANDONED:
                phase = InterviewPhase.ABANDONED
            case _:
                phase = InterviewPhase.FINALIZING if machine.precedes_finalize(state) else InterviewPhase.ACTIVE

        waiting = phase == InterviewPhase.ACTIVE and spec.waits_for_user
        form_type = handler.expected_form(data, state) if waiting else None
        lock = self._locks.get(record.session_id)

        return InterviewView(
            session_id=record.session_id,
            kind=record.kind,
            phase=phase,
            state=state.value,
            display_name=spec.display_name,
            progress_percent=spec.progress_percent,
            question_text=handler.question_text(data, state) if waiting else None,
            question_number=spec.question_number,
            answer_mode=spec.answer_mode if waiting else AnswerMode.NONE,
            expected_form=form_name_of(form_type) if form_type else None,
            can_skip=waiting and spec.is_clarify and data.can_skip,
            vagueness_skip_count=data.vagueness_skip_count,
            is_processing=lock is not None and lock.locked(),
            clarify_suggestion=data.clarify_prompt,
            notices=list(notices or []),
            error=self._errors.get(record.session_id),
            output_markdown=data.output_markdown,
        )
