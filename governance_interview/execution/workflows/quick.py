"""
Quick Version handler - the 15-minute audit.

Q3 is a single table state asked repeatedly: three sub-questions per parsed
problem. The handler HOLDs on Q3 until the last sub-question of the last
problem has been answered.
"""

import logging
import re
from typing import Optional, Tuple

from ...config import settings
from ...domain.enums import WorkflowKind
from ...domain.workflows import QUICK_MACHINE, QuickState
from ...repositories.governance import Changeset, new_id
from ...state.models import Prediction, Problem, QuestionAnswer
from ...state.sessions import QuickSessionData
from .base import Transition, WorkflowContext, WorkflowHandler

logger = logging.getLogger(__name__)

S = QuickState

QUESTIONS = {
    S.Q1_ROLE_CONTEXT: "In 1-2 sentences, what is your current role and work context?",
    S.Q2_PAID_PROBLEMS: "What are the 3 problems you are paid to solve? List them briefly.",
    S.Q4_AVOIDED_DECISION: "What decision or conversation have you been avoiding? What's the cost of waiting?",
    S.Q5_COMFORT_WORK: "Where are you doing comfort work - tasks that feel productive but don't advance your goals?",
}

# (question template, Problem field) per Q3 sub-question
DIRECTION_SUB_QUESTIONS = (
    ('For "{name}": Is AI getting cheaper at solving this? How so?', "evidence_ai_cheaper"),
    ('For "{name}": What\'s the cost if you get this wrong?', "evidence_error_cost"),
    ('For "{name}": Is trust or special access required to solve this?', "evidence_trust_required"),
)

COST_PATTERNS = [
    re.compile(r"cost[:\s]+(.+)", re.IGNORECASE),
    re.compile(r"consequence[s]?[:\s]+(.+)", re.IGNORECASE),
    re.compile(r"impact[:\s]+(.+)", re.IGNORECASE),
    re.compile(r"risk[:\s]+(.+)", re.IGNORECASE),
]

SENTENCE_SPLIT = re.compile(r"[.!?]\s+")


def split_avoided_decision(answer: str) -> Tuple[str, Optional[str]]:
    """Separates the avoided decision from the stated cost of waiting."""
    for pattern in COST_PATTERNS:
        match = pattern.search(answer)
        if match:
            return answer[:match.start()].strip(), match.group(1).strip()

    sentences = SENTENCE_SPLIT.split(answer)
    if len(sentences) >= 2:
        return sentences[0].strip(), ". ".join(sentences[1:]).strip()
    return answer, None


def with_example(text: Optional[str], example: str) -> str:
    return f"{text} Example: {example}" if text else example


class QuickHandler(WorkflowHandler):
    machine = QUICK_MACHINE
    kind = WorkflowKind.QUICK

    def question_text(self, data: QuickSessionData, state) -> Optional[str]:
        if state == S.Q3_DIRECTION_LOOP:
            problem = data.current_problem
            if problem is None:
                return None
            template, _ = DIRECTION_SUB_QUESTIONS[data.current_direction_sub_question]
            return template.format(name=problem.name)
        return QUESTIONS.get(state) or super().question_text(data, state)

    # ==========================================================================
    # Answers
    # ==========================================================================

    async def accumulate(self, ctx: WorkflowContext, data: QuickSessionData, state, entry: QuestionAnswer):
        answer = entry.answer
        match state:
            case S.Q1_ROLE_CONTEXT:
                data.role_context = answer
            case S.Q2_PAID_PROBLEMS:
                await self._set_problems(ctx, data, answer)
            case S.Q3_DIRECTION_LOOP:
                entry.context_index = data.current_problem_index
                _, field = DIRECTION_SUB_QUESTIONS[data.current_direction_sub_question]
                setattr(data.current_problem, field, answer)
            case S.Q4_AVOIDED_DECISION:
                data.avoided_decision, data.avoided_decision_cost = split_avoided_decision(answer)
            case S.Q5_COMFORT_WORK:
                data.comfort_work = answer

    async def accumulate_clarification(
        self, ctx: WorkflowContext, data: QuickSessionData, state, entry: QuestionAnswer
    ):
        example = entry.concrete_example
        match state:
            case S.Q1_ROLE_CONTEXT:
                data.role_context = with_example(data.role_context, example)
            case S.Q2_PAID_PROBLEMS:
                # The vague list is replaced, not extended.
                await self._set_problems(ctx, data, example)
            case S.Q3_DIRECTION_LOOP:
                _, field = DIRECTION_SUB_QUESTIONS[data.current_direction_sub_question]
                problem = data.current_problem
                setattr(problem, field, with_example(getattr(problem, field), example))
            case S.Q4_AVOIDED_DECISION:
                data.avoided_decision = with_example(data.avoided_decision, example)
            case S.Q5_COMFORT_WORK:
                data.comfort_work = with_example(data.comfort_work, example)

    async def _set_problems(self, ctx: WorkflowContext, data: QuickSessionData, text: str):
        names = await ctx.assistant.parse_problems(text, data.abstraction_mode)
        data.problems = [Problem(name=name) for name in names]
        data.current_problem_index = 0
        data.current_direction_sub_question = 0
        logger.info(f"Session {ctx.session_id}: parsed {len(names)} problems")

    async def resolve(self, ctx: WorkflowContext, data: QuickSessionData, state) -> Transition:
        if state != S.Q3_DIRECTION_LOOP:
            return Transition.ADVANCE

        if data.current_direction_sub_question < len(DIRECTION_SUB_QUESTIONS) - 1:
            data.current_direction_sub_question += 1
            return Transition.HOLD

        problem = data.current_problem
        assessment = await ctx.assistant.evaluate_direction(problem, data.abstraction_mode)
        problem.direction = assessment.direction
        problem.direction_rationale = assessment.rationale

        if data.current_problem_index < len(data.problems) - 1:
            data.current_problem_index += 1
            data.current_direction_sub_question = 0
            return Transition.HOLD
        return Transition.ADVANCE

    # ==========================================================================
    # Finalize
    # ==========================================================================

    async def finalize(self, ctx: WorkflowContext, data: QuickSessionData) -> Changeset:
        duration = settings.PREDICTION_DURATION_DAYS
        report = await ctx.reports.quick(data, duration)

        data.output_markdown = report.markdown
        data.assessment = report.assessment
        data.bet_prediction = report.bet_prediction
        data.bet_wrong_if = report.bet_wrong_if

        prediction = Prediction.open(
            report.bet_prediction,
            report.bet_wrong_if,
            duration,
            source_session_id=ctx.session_id,
            now=ctx.now,
        )
        prediction.id = data.created_prediction_id or new_id()
        data.created_prediction_id = prediction.id

        return Changeset(user_id=ctx.user_id, predictions=[prediction])
