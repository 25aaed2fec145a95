"""
Service Layer Exceptions

Errors raised by the InterviewRunner and the execution layer beneath it.
The HTTP layer maps each kind to a status code.
"""

from typing import List, Optional

from ..domain.validation import Violation


class InterviewError(Exception):
    """Base class for all interview errors."""
    pass


class InvalidSessionState(InterviewError):
    """Operation attempted in the wrong lifecycle phase or the wrong state."""
    pass


class AlreadyInProgress(InterviewError):
    """An active session of this kind already exists for the user."""

    def __init__(self, session_id: str):
        super().__init__(f"An active session already exists: {session_id}")
        self.session_id = session_id


class SessionNotFound(InterviewError):
    """The session does not exist or was purged."""
    pass


class ValidationFailed(InterviewError):
    """A domain rule was violated. Carries every violated field."""

    def __init__(self, violations: List[Violation], message: Optional[str] = None):
        self.violations = list(violations)
        super().__init__(message or "; ".join(v.message for v in self.violations))


class SkipNotAllowed(ValidationFailed):
    """Skip budget exhausted, or the current state is not a clarify state."""

    def __init__(self, reason: str):
        super().__init__([Violation("skip", reason)])


class VaguenessGateUnavailable(InterviewError):
    """The LLM vagueness check failed. The gate converts this into a bypass."""
    pass


class PersistenceWriteFailed(InterviewError):
    """The snapshot could not be written. In-memory state was not advanced."""
    pass


class ExternalGenerationFailed(InterviewError):
    """An LLM-backed generation step failed. The session can retry it."""
    pass
