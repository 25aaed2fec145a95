"""
Report Generator

Invoked once per session, at finalize. Quick and Quarterly reports are
written by the LLM; the Setup summary is rendered from a markdown template.

Unlike the interview assistant there is no fallback here: a failed
generation raises ExternalGenerationFailed and the session stays at its
pre-finalize checkpoint so finalize can be retried.
"""

import logging
from typing import List

from ..config import settings
from ..llm.interface import LLMProvider
from ..schemas.decisions import GovernanceReport, QuickReport
from ..services.exceptions import ExternalGenerationFailed
from ..state.models import QuestionAnswer
from ..state.sessions import QuarterlySessionData, QuickSessionData, SetupSessionData
from .prompts import Template, build_messages, render_document

logger = logging.getLogger(__name__)


def format_transcript(transcript: List[QuestionAnswer]) -> str:
    lines = []
    for entry in transcript:
        speaker = f" [{entry.persona_name}]" if entry.persona_name else ""
        lines.append(f"Q{speaker}: {entry.question}")
        lines.append(f"A: {entry.answer}")
        if entry.concrete_example:
            lines.append(f"Concrete example: {entry.concrete_example}")
        if entry.skipped:
            lines.append("(flagged vague, clarification skipped)")
        lines.append("")
    return "\n".join(lines).strip()


def quick_report_input(data: QuickSessionData) -> str:
    lines = [f"ROLE CONTEXT: {data.role_context or 'not answered'}", "", "PROBLEMS:"]
    for problem in data.problems:
        direction = problem.direction.value if problem.direction else "unclassified"
        lines.append(f"- {problem.name} ({direction})")
        lines.append(f"  AI cheaper?: {problem.evidence_ai_cheaper or 'not answered'}")
        lines.append(f"  Error cost?: {problem.evidence_error_cost or 'not answered'}")
        lines.append(f"  Trust required?: {problem.evidence_trust_required or 'not answered'}")
        if problem.direction_rationale:
            lines.append(f"  Rationale: {problem.direction_rationale}")
    lines += [
        "",
        f"AVOIDED DECISION: {data.avoided_decision or 'not answered'}",
        f"COST OF WAITING: {data.avoided_decision_cost or 'not stated'}",
        f"COMFORT WORK: {data.comfort_work or 'not answered'}",
        "",
        "TRANSCRIPT:",
        format_transcript(data.transcript),
    ]
    return "\n".join(lines)


def quarterly_report_input(data: QuarterlySessionData) -> str:
    lines = []
    evaluation = data.bet_evaluation
    if evaluation:
        lines.append(f"LAST BET: {evaluation.prediction}")
        lines.append(f"WRONG IF: {evaluation.wrong_if}")
        lines.append(f"STATUS: {evaluation.previous_status.value} -> {evaluation.status.value}")
        if evaluation.rationale:
            lines.append(f"RATIONALE: {evaluation.rationale}")
        for item in evaluation.evidence:
            lines.append(f"- Evidence ({item.type.value}, {item.strength.value}): {item.description}")
    else:
        lines.append("LAST BET: none to evaluate")

    lines.append("")
    lines.append("DIRECTION CHANGES:")
    for update in data.direction_updates:
        previous = update.previous_direction.value if update.previous_direction else "unclassified"
        new = update.new_direction.value if update.new_direction else "unclassified"
        lines.append(f"- {update.problem_name}: {previous} -> {new}")
    lines.append("ALLOCATION CHANGES:")
    for update in data.allocation_updates:
        lines.append(f"- {update.problem_name}: {update.previous_percent}% -> {update.new_percent}%")
    if data.health_trend:
        lines.append(f"HEALTH TREND: {data.health_trend.trend_description}")

    met = [t for t in data.trigger_statuses if t.is_met]
    lines.append("")
    lines.append("TRIGGERS MET:" if met else "TRIGGERS MET: none")
    for trigger in met:
        lines.append(f"- {trigger.description}: {trigger.details or 'no details'}")

    if data.new_bet:
        lines.append("")
        lines.append(f"NEXT BET: {data.new_bet.prediction}")
        lines.append(f"WRONG IF: {data.new_bet.wrong_if}")
        lines.append(f"DURATION: {data.new_bet.duration_days} days")

    lines.append("")
    lines.append("TRANSCRIPT:")
    lines.append(format_transcript(data.transcript))
    return "\n".join(lines)


class ReportGenerator:
    def __init__(self, llm_provider: LLMProvider, temperature: float = settings.LLM_TEMPERATURE):
        self.llm = llm_provider
        self.temperature = temperature

    async def quick(self, data: QuickSessionData, duration_days: int) -> QuickReport:
        messages = build_messages(
            Template.QUICK_REPORT,
            user_content=quick_report_input(data),
            duration_days=duration_days,
            abstraction_mode=data.abstraction_mode,
        )
        try:
            return await self.llm.generate_structured_output(
                messages=messages,
                response_model=QuickReport,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"Quick report generation failed: {e}")
            raise ExternalGenerationFailed("Could not generate the audit report") from e

    async def quarterly(self, data: QuarterlySessionData) -> str:
        messages = build_messages(
            Template.QUARTERLY_REPORT,
            user_content=quarterly_report_input(data),
            growth_roles_active=data.growth_roles_active,
            abstraction_mode=data.abstraction_mode,
        )
        try:
            report = await self.llm.generate_structured_output(
                messages=messages,
                response_model=GovernanceReport,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"Quarterly report generation failed: {e}")
            raise ExternalGenerationFailed("Could not generate the quarterly report") from e
        return report.markdown

    def setup(self, data: SetupSessionData) -> str:
        return render_document(
            Template.SETUP_SUMMARY,
            problems=data.problems,
            health=data.portfolio_health,
            board_members=data.board_members,
            triggers=data.triggers,
        )
