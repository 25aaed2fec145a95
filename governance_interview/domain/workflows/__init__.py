"""
Workflow transition tables.

One state Enum + table + InterviewMachine per governed interview.
"""

from governance_interview.domain.enums import WorkflowKind
from governance_interview.domain.machine import InterviewMachine
from governance_interview.domain.workflows.quick import QUICK_MACHINE, QuickState
from governance_interview.domain.workflows.setup import SETUP_MACHINE, SetupState
from governance_interview.domain.workflows.quarterly import QUARTERLY_MACHINE, QuarterlyState

MACHINES = {
    WorkflowKind.QUICK: QUICK_MACHINE,
    WorkflowKind.SETUP: SETUP_MACHINE,
    WorkflowKind.QUARTERLY: QUARTERLY_MACHINE,
}


def machine_for(kind: WorkflowKind) -> InterviewMachine:
    return MACHINES[kind]


__all__ = [
    "MACHINES",
    "machine_for",
    "QUICK_MACHINE",
    "QuickState",
    "SETUP_MACHINE",
    "SetupState",
    "QUARTERLY_MACHINE",
    "QuarterlyState",
]
