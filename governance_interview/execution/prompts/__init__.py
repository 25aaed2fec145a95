from governance_interview.execution.prompts.loader import build_messages, render, render_document
from governance_interview.execution.prompts.templates import Template

__all__ = [
    "Template",
    "build_messages",
    "render",
    "render_document",
]
