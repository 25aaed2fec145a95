"""
Execution Layer - Interview Orchestration

Defines the InterviewEngine (deterministic state machine), the per-workflow
handlers it delegates to, and the LLM-backed collaborators they use: the
VaguenessGate, the InterviewAssistant and the ReportGenerator.
"""

from governance_interview.execution.assistant import InterviewAssistant
from governance_interview.execution.engine import InterviewEngine
from governance_interview.execution.gate import GateVerdict, VaguenessGate
from governance_interview.execution.reports import ReportGenerator
from governance_interview.execution.workflows import handler_for


__all__ = [
    "GateVerdict",
    "InterviewAssistant",
    "InterviewEngine",
    "ReportGenerator",
    "VaguenessGate",
    "handler_for",
]
