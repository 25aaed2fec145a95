import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request, status
from fastapi.responses import JSONResponse

from ..config import settings
from ..infrastructure.database.connection import init_db
from ..schemas.forms import PersonaEdit
from ..services.exceptions import (
    AlreadyInProgress,
    ExternalGenerationFailed,
    InterviewError,
    InvalidSessionState,
    PersistenceWriteFailed,
    SessionNotFound,
    ValidationFailed,
)
from ..services.runner import InterviewRunner, InterviewView
from .dependencies import get_interview_runner
from .schemas import (
    AnswerRequest,
    ErrorResponse,
    PrivacyRequest,
    SessionRead,
    StartSessionRequest,
    TranscriptEntry,
    ViolationRead,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(title="Governed Interview Engine", lifespan=lifespan)


# --- Error Mapping ---

@app.exception_handler(InterviewError)
async def interview_error_handler(request: Request, exc: InterviewError):
    match exc:
        case SessionNotFound():
            code, body = status.HTTP_404_NOT_FOUND, ErrorResponse(detail=str(exc))
        case AlreadyInProgress():
            code, body = status.HTTP_409_CONFLICT, ErrorResponse(detail=str(exc), session_id=exc.session_id)
        case InvalidSessionState():
            code = status.HTTP_409_CONFLICT
            body = ErrorResponse(detail=f"Cannot continue: {exc}. Resume or restart the session.")
        case ValidationFailed():
            code = status.HTTP_422_UNPROCESSABLE_ENTITY
            body = ErrorResponse(
                detail=str(exc),
                violations=[ViolationRead(field=v.field, message=v.message) for v in exc.violations],
            )
        case ExternalGenerationFailed() | PersistenceWriteFailed():
            code, body = status.HTTP_503_SERVICE_UNAVAILABLE, ErrorResponse(detail=str(exc), retryable=True)
        case _:
            logger.error(f"Unmapped interview error on {request.url.path}: {exc}")
            code, body = status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse(detail=str(exc))
    return JSONResponse(status_code=code, content=body.model_dump())


# --- Endpoints ---

@app.post(
    "/sessions",
    response_model=InterviewView,
    status_code=status.HTTP_201_CREATED
)
async def start_session(
    request: StartSessionRequest,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    """Starts a session. Fails with 409 if one of this kind is already active."""
    return await runner.start(request.user_id, request.kind, request.abstraction_mode)


@app.get("/sessions/{session_id}", response_model=SessionRead)
def get_session(
    session_id: str,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    """
    Resumes a session from its last committed snapshot.
    """
    view = runner.resume(session_id)
    record = runner.get_record(session_id)

    # Transcript entries are mapped explicitly into the API shape.
    transcript_dto = [
        TranscriptEntry(
            question=entry.question,
            answer=entry.answer,
            was_vague=entry.was_vague,
            concrete_example=entry.concrete_example,
            skipped=entry.skipped,
            persona_name=entry.persona_name,
        )
        for entry in record.data.transcript
    ]

    return SessionRead(
        view=view,
        user_id=record.user_id,
        status=record.status.value,
        transcript=transcript_dto,
        created_at=record.created_at,
        updated_at=record.updated_at,
        completed_at=record.completed_at,
        snapshot=record.data.model_dump(mode="json"),
    )


@app.post("/sessions/{session_id}/answers", response_model=InterviewView)
async def submit_answer(
    session_id: str,
    answer: AnswerRequest,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.submit_answer(session_id, answer.text)


@app.post("/sessions/{session_id}/skip", response_model=InterviewView)
async def skip_clarification(
    session_id: str,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    """Continues with the vague answer. At most two skips per session."""
    return await runner.skip(session_id)


@app.post("/sessions/{session_id}/privacy", response_model=InterviewView)
async def set_privacy(
    session_id: str,
    request: PrivacyRequest,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.set_privacy(session_id, request.abstraction_mode)


@app.post("/sessions/{session_id}/proceed", response_model=InterviewView)
async def proceed(
    session_id: str,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.proceed(session_id)


@app.post("/sessions/{session_id}/forms/{form_name}", response_model=InterviewView)
async def submit_form(
    session_id: str,
    form_name: str,
    payload: dict,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.submit_form(session_id, form_name, payload)


@app.post("/sessions/{session_id}/finalize", response_model=InterviewView)
async def finalize(
    session_id: str,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    """Retries report generation and publish after a 503."""
    return await runner.finalize(session_id)


@app.post("/sessions/{session_id}/abandon", response_model=InterviewView)
def abandon(
    session_id: str,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return runner.abandon(session_id)


# --- Setup portfolio commands ---

@app.post("/sessions/{session_id}/problems", response_model=InterviewView)
async def add_problem(
    session_id: str,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.add_problem(session_id)


@app.delete("/sessions/{session_id}/problems/{index}", response_model=InterviewView)
async def remove_problem(
    session_id: str,
    index: int,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.remove_problem(session_id, index)


@app.patch("/sessions/{session_id}/personas/{member_index}", response_model=InterviewView)
async def update_persona(
    session_id: str,
    member_index: int,
    edit: PersonaEdit,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.update_persona(session_id, member_index, edit)


@app.post("/sessions/{session_id}/personas/{member_index}/reset", response_model=InterviewView)
async def reset_persona(
    session_id: str,
    member_index: int,
    runner: InterviewRunner = Depends(get_interview_runner)
):
    return await runner.reset_persona(session_id, member_index)
