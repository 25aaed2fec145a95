"""
Interview Assistant - LLM Helpers

The structured-output calls the workflow handlers make between questions:
problem parsing, direction evaluation, health statements, board anchoring,
personas and board questions.

None of these may block an interview. Each call falls back to a deterministic
default when the provider fails, and logs the degradation.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence

from ..config import settings
from ..domain.enums import BoardRoleType, ProblemDirection
from ..llm.interface import LLMProvider
from ..schemas.decisions import (
    AnchoringPlan,
    BoardQuestion,
    DirectionAssessment,
    GeneratedPersona,
    HealthStatements,
    ParsedProblems,
    RoleAnchoring,
)
from ..state.models import BoardMember, Persona, PortfolioHealth, Problem
from .prompts import Template, build_messages

logger = logging.getLogger(__name__)

MAX_PARSED_PROBLEMS = 3

# Tried in order; the first pattern yielding two or more parts wins.
LIST_SPLIT_PATTERNS = [
    re.compile(r"\d+[.)]\s*"),
    re.compile(r"[-•]\s*"),
    re.compile(r",\s*(?=\w)"),
]

DIRECTION_FALLBACK_RATIONALE = "Could not evaluate direction"

# (name, background, communication style)
DEFAULT_PERSONAS = {
    BoardRoleType.ACCOUNTABILITY: (
        "Maya Chen",
        "Former executive coach with 15 years in high-performance environments. "
        "Known for holding leaders to their word.",
        "Direct and evidence-focused. Asks for proof before accepting claims.",
    ),
    BoardRoleType.MARKET_REALITY: (
        "Marcus Webb",
        "Tech industry veteran who has seen multiple disruption cycles. "
        "Data-driven and skeptical of narratives.",
        "Skeptical but fair. Backs up challenges with data and examples.",
    ),
    BoardRoleType.AVOIDANCE: (
        "Sarah Blackwell",
        "Organizational psychologist specializing in leadership blind spots. "
        "Comfortable with uncomfortable conversations.",
        "Persistent and uncomfortable. Does not let you off the hook easily.",
    ),
    BoardRoleType.LONG_TERM_POSITIONING: (
        "David Park",
        "Strategy consultant who has guided dozens of career pivots. "
        "Always thinking about the long game.",
        "Forward-looking and strategic. Always connects today to tomorrow.",
    ),
    BoardRoleType.DEVILS_ADVOCATE: (
        "Alexandra Reyes",
        "Former debate champion turned executive advisor. "
        "Questions everything to find the truth.",
        "Contrarian. Challenges your assumptions constructively.",
    ),
    BoardRoleType.PORTFOLIO_DEFENDER: (
        "James Morrison",
        "Investment mindset applied to careers. "
        "Believes in protecting and compounding advantages.",
        "Protective and growth-focused. Helps you see what you have to lose.",
    ),
    BoardRoleType.OPPORTUNITY_SCOUT: (
        "Priya Sharma",
        "Serial career changer who has found success in adjacent opportunities. "
        "Always curious about what is next.",
        "Exploratory and curious. Sees connections you might miss.",
    ),
}


def default_persona(role: BoardRoleType) -> Persona:
    name, background, style = DEFAULT_PERSONAS[role]
    return Persona(name=name, background=background, communication_style=style)


def split_problems(answer: str) -> List[str]:
    """Deterministic list splitting used when the LLM parse fails."""
    for pattern in LIST_SPLIT_PATTERNS:
        parts = [p.strip() for p in pattern.split(answer) if p.strip()]
        if len(parts) >= 2:
            return parts[:MAX_PARSED_PROBLEMS]

    lines = [line.strip() for line in answer.split("\n") if line.strip()]
    if len(lines) >= 2:
        return lines[:MAX_PARSED_PROBLEMS]

    return [answer.strip()]


def fallback_health_statements(health: PortfolioHealth) -> HealthStatements:
    return HealthStatements(
        risk_statement=(
            f"{health.depreciating_percent}% of your time goes to depreciating problems."
        ),
        opportunity_statement=(
            f"{health.appreciating_percent}% of your time goes to appreciating problems."
        ),
    )


class InterviewAssistant:
    def __init__(self, llm_provider: LLMProvider, temperature: float = settings.LLM_TEMPERATURE):
        self.llm = llm_provider
        self.temperature = temperature

    async def _generate(self, template: str, user_content: str, response_model, **context):
        messages = build_messages(template, user_content=user_content, **context)
        return await self.llm.generate_structured_output(
            messages=messages,
            response_model=response_model,
            temperature=self.temperature,
        )

    # ==========================================================================
    # Quick
    # ==========================================================================

    async def parse_problems(self, answer: str, abstraction_mode: bool = False) -> List[str]:
        try:
            parsed = await self._generate(
                Template.PARSE_PROBLEMS,
                answer,
                ParsedProblems,
                abstraction_mode=abstraction_mode,
            )
            problems = [p.strip() for p in parsed.problems if p.strip()]
            if problems:
                return problems[:MAX_PARSED_PROBLEMS]
            logger.warning("Problem parse returned nothing, splitting locally")
        except Exception as e:
            logger.warning(f"Problem parse failed, splitting locally: {e}")
        return split_problems(answer)

    async def evaluate_direction(
        self,
        problem: Problem,
        abstraction_mode: bool = False,
    ) -> DirectionAssessment:
        user_content = (
            f'Is AI getting cheaper at this?\n"{problem.evidence_ai_cheaper or "not answered"}"\n\n'
            f'What is the cost of errors?\n"{problem.evidence_error_cost or "not answered"}"\n\n'
            f'Is trust/access required?\n"{problem.evidence_trust_required or "not answered"}"'
        )
        try:
            return await self._generate(
                Template.DIRECTION_EVALUATION,
                user_content,
                DirectionAssessment,
                problem_name=problem.name,
                abstraction_mode=abstraction_mode,
            )
        except Exception as e:
            logger.warning(f"Direction evaluation failed, defaulting to stable: {e}")
            return DirectionAssessment(
                direction=ProblemDirection.STABLE,
                rationale=DIRECTION_FALLBACK_RATIONALE,
            )

    # ==========================================================================
    # Setup
    # ==========================================================================

    async def health_statements(
        self,
        problems: List[Problem],
        health: PortfolioHealth,
        abstraction_mode: bool = False,
    ) -> HealthStatements:
        try:
            return await self._generate(
                Template.HEALTH_STATEMENTS,
                "Write the risk and opportunity statements for this portfolio.",
                HealthStatements,
                problems=problems,
                health=health,
                abstraction_mode=abstraction_mode,
            )
        except Exception as e:
            logger.warning(f"Health statements failed, using computed defaults: {e}")
            return fallback_health_statements(health)

    async def anchor_roles(
        self,
        roles: Sequence[BoardRoleType],
        problems: List[Problem],
        default_index: int = 0,
        abstraction_mode: bool = False,
    ) -> Dict[BoardRoleType, RoleAnchoring]:
        """
        One anchoring per requested role. Roles the model skipped, or anchored
        to an index outside the portfolio, get `default_index` and the role's
        signature question as demand.
        """
        plan: Dict[BoardRoleType, RoleAnchoring] = {}
        try:
            result = await self._generate(
                Template.BOARD_ANCHORING,
                "Anchor every role listed above.",
                AnchoringPlan,
                roles=list(roles),
                problems=problems,
                abstraction_mode=abstraction_mode,
            )
            for anchoring in result.anchorings:
                if anchoring.role_type in roles:
                    plan[anchoring.role_type] = anchoring
        except Exception as e:
            logger.warning(f"Board anchoring failed, using default anchors: {e}")

        for role in roles:
            anchoring = plan.get(role)
            if anchoring is None:
                plan[role] = RoleAnchoring(
                    role_type=role,
                    problem_index=default_index,
                    demand=role.signature_question,
                )
            elif anchoring.problem_index is None or not 0 <= anchoring.problem_index < len(problems):
                plan[role] = anchoring.model_copy(update={"problem_index": default_index})
        return plan

    async def generate_persona(
        self,
        member: BoardMember,
        anchored_problem: Optional[Problem],
    ) -> Persona:
        role = member.role_type
        try:
            generated = await self._generate(
                Template.PERSONA,
                f"Create the persona for the {role.display_name} seat.",
                GeneratedPersona,
                role=role,
                anchored_problem=anchored_problem.name if anchored_problem else None,
                demand=member.anchored_demand,
            )
            return Persona(**generated.model_dump())
        except Exception as e:
            logger.warning(f"Persona generation failed for {role.value}, using default: {e}")
            return default_persona(role)

    # ==========================================================================
    # Quarterly
    # ==========================================================================

    async def board_question(
        self,
        member: BoardMember,
        anchored_problem: Optional[Problem],
        review_context: str,
        abstraction_mode: bool = False,
    ) -> str:
        persona = member.persona or Persona()
        try:
            result = await self._generate(
                Template.BOARD_QUESTION,
                review_context,
                BoardQuestion,
                persona_name=member.persona_name,
                role=member.role_type,
                communication_style=persona.communication_style,
                anchored_problem=anchored_problem.name if anchored_problem else None,
                demand=member.anchored_demand,
                abstraction_mode=abstraction_mode,
            )
            if result.question.strip():
                return result.question.strip()
        except Exception as e:
            logger.warning(f"Board question failed for {member.role_type.value}, using fallback: {e}")
        return member.anchored_demand or member.role_type.signature_question
