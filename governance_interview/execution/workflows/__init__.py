"""
Workflow Handlers - one per governed interview, keyed by WorkflowKind.
"""

from governance_interview.domain.enums import WorkflowKind
from governance_interview.execution.workflows.base import (
    Transition,
    WorkflowContext,
    WorkflowHandler,
)
from governance_interview.execution.workflows.quarterly import QuarterlyHandler
from governance_interview.execution.workflows.quick import QuickHandler
from governance_interview.execution.workflows.setup import SetupHandler

HANDLERS = {
    WorkflowKind.QUICK: QuickHandler,
    WorkflowKind.SETUP: SetupHandler,
    WorkflowKind.QUARTERLY: QuarterlyHandler,
}


def handler_for(kind: WorkflowKind) -> WorkflowHandler:
    return HANDLERS[kind]()


__all__ = [
    "HANDLERS",
    "handler_for",
    "QuarterlyHandler",
    "QuickHandler",
    "SetupHandler",
    "Transition",
    "WorkflowContext",
    "WorkflowHandler",
]
