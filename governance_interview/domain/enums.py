"""
Domain Layer - Closed Value Sets

Enumerations shared by the three interview workflows and the durable
entities they produce: prediction statuses, board roles, problem directions,
evidence labels and re-setup trigger vocabularies.
"""

from enum import Enum
from typing import List


class WorkflowKind(str, Enum):
    """
    The three governed interviews.

    QUICK: 15-minute, five question audit.
    SETUP: Problem portfolio + board roles + personas.
    QUARTERLY: Full quarterly review with board interrogation.
    """
    QUICK = "quick"
    SETUP = "setup"
    QUARTERLY = "quarterly"

    @property
    def display_name(self) -> str:
        match self:
            case WorkflowKind.QUICK:
                return "Quick Version"
            case WorkflowKind.SETUP:
                return "Setup"
            case WorkflowKind.QUARTERLY:
                return "Quarterly Report"


class PredictionStatus(str, Enum):
    """
    Lifecycle of a prediction ("bet").

    OPEN: Active, due date not reached.
    CORRECT: User verified the prediction came true.
    WRONG: User verified the prediction was wrong.
    EXPIRED: Due date passed without evaluation.

    There is no "partially correct".
    """
    OPEN = "open"
    CORRECT = "correct"
    WRONG = "wrong"
    EXPIRED = "expired"

    @property
    def display_name(self) -> str:
        return self.value.title()

    @property
    def is_evaluated(self) -> bool:
        return self in (PredictionStatus.CORRECT, PredictionStatus.WRONG)

    @property
    def can_evaluate(self) -> bool:
        return self in (PredictionStatus.OPEN, PredictionStatus.EXPIRED)

    def can_transition_to(self, new_status: "PredictionStatus") -> bool:
        return new_status in PREDICTION_TRANSITIONS[self]


# Explicit 4x4 transition matrix. Rows are the current status.
# expired -> expired is an allowed no-op; correct/wrong are terminal.
PREDICTION_TRANSITIONS = {
    PredictionStatus.OPEN: frozenset(
        {PredictionStatus.CORRECT, PredictionStatus.WRONG, PredictionStatus.EXPIRED}
    ),
    PredictionStatus.EXPIRED: frozenset(
        {PredictionStatus.CORRECT, PredictionStatus.WRONG, PredictionStatus.EXPIRED}
    ),
    PredictionStatus.CORRECT: frozenset(),
    PredictionStatus.WRONG: frozenset(),
}


class ProblemDirection(str, Enum):
    """
    Whether a problem (skill) is gaining or losing value over time.

    APPRECIATING: AI can't easily do it, errors are costly, trust is required.
    DEPRECIATING: AI is getting better at it, errors are cheap, no access needed.
    STABLE: Unclear, revisit next quarter.
    """
    APPRECIATING = "appreciating"
    DEPRECIATING = "depreciating"
    STABLE = "stable"

    @property
    def display_name(self) -> str:
        return self.value.title()


class BoardRoleType(str, Enum):
    """Five core roles (always active) and two growth roles."""
    ACCOUNTABILITY = "accountability"
    MARKET_REALITY = "market_reality"
    AVOIDANCE = "avoidance"
    LONG_TERM_POSITIONING = "long_term_positioning"
    DEVILS_ADVOCATE = "devils_advocate"
    PORTFOLIO_DEFENDER = "portfolio_defender"
    OPPORTUNITY_SCOUT = "opportunity_scout"

    @property
    def display_name(self) -> str:
        return ROLE_PROFILES[self][0]

    @property
    def function(self) -> str:
        return ROLE_PROFILES[self][1]

    @property
    def interaction_style(self) -> str:
        return ROLE_PROFILES[self][2]

    @property
    def signature_question(self) -> str:
        return ROLE_PROFILES[self][3]

    @property
    def is_growth_role(self) -> bool:
        return self in GROWTH_ROLES

    @classmethod
    def core_roles(cls) -> List["BoardRoleType"]:
        return list(CORE_ROLES)

    @classmethod
    def growth_roles(cls) -> List["BoardRoleType"]:
        return list(GROWTH_ROLES)


# (display name, function, interaction style, signature question)
ROLE_PROFILES = {
    BoardRoleType.ACCOUNTABILITY: (
        "Accountability",
        "Demands receipts for stated commitments",
        "Direct, evidence-focused",
        "Show me the proof.",
    ),
    BoardRoleType.MARKET_REALITY: (
        "Market Reality",
        "Challenges direction classifications",
        "Skeptical, data-driven",
        "Is this actually true?",
    ),
    BoardRoleType.AVOIDANCE: (
        "Avoidance",
        "Probes avoided decisions",
        "Persistent, uncomfortable",
        "Have you actually done this?",
    ),
    BoardRoleType.LONG_TERM_POSITIONING: (
        "Long-term Positioning",
        "Asks 5-year strategic questions",
        "Forward-looking, strategic",
        "What are you doing to own more of this?",
    ),
    BoardRoleType.DEVILS_ADVOCATE: (
        "Devil's Advocate",
        "Argues against the user's path",
        "Contrarian, challenging",
        "What if you're wrong about this?",
    ),
    BoardRoleType.PORTFOLIO_DEFENDER: (
        "Portfolio Defender",
        "Protects and compounds strengths",
        "Protective, growth-focused",
        "What would cause you to lose this edge?",
    ),
    BoardRoleType.OPPORTUNITY_SCOUT: (
        "Opportunity Scout",
        "Identifies adjacent opportunities",
        "Exploratory, curious",
        "What adjacent skill would 2x this value?",
    ),
}

CORE_ROLES = (
    BoardRoleType.ACCOUNTABILITY,
    BoardRoleType.MARKET_REALITY,
    BoardRoleType.AVOIDANCE,
    BoardRoleType.LONG_TERM_POSITIONING,
    BoardRoleType.DEVILS_ADVOCATE,
)

GROWTH_ROLES = (
    BoardRoleType.PORTFOLIO_DEFENDER,
    BoardRoleType.OPPORTUNITY_SCOUT,
)


class EvidenceStrength(str, Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"
    NONE = "none"


class EvidenceType(str, Enum):
    """
    "Receipts" backing a claim.

    Decision/Artifact are strong, Calendar/Proxy are medium, None is recorded as such.
    """
    DECISION = "decision"
    ARTIFACT = "artifact"
    CALENDAR = "calendar"
    PROXY = "proxy"
    NONE = "none"

    @property
    def default_strength(self) -> EvidenceStrength:
        match self:
            case EvidenceType.DECISION | EvidenceType.ARTIFACT:
                return EvidenceStrength.STRONG
            case EvidenceType.CALENDAR | EvidenceType.PROXY:
                return EvidenceStrength.MEDIUM
            case EvidenceType.NONE:
                return EvidenceStrength.NONE


class TriggerType(str, Enum):
    """Conditions that call for re-running Setup."""
    ROLE_CHANGE = "role_change"
    SCOPE_CHANGE = "scope_change"
    DIRECTION_SHIFT = "direction_shift"
    TIME_DRIFT = "time_drift"
    ANNUAL = "annual"


class RecommendedAction(str, Enum):
    FULL_RESETUP = "full_resetup"
    UPDATE_PROBLEM = "update_problem"
    REVIEW_HEALTH = "review_health"
