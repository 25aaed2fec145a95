"""
Setup - problem portfolio, board roles and personas.

Problems 1-3 are on the canonical path. Problems 4 and 5 are an optional
branch entered from the portfolio completeness gate; both validate states
return to that gate.
"""

from enum import Enum

from ..machine import AnswerMode, InterviewMachine, gate, question, system, terminal


class SetupState(str, Enum):
    INITIAL = "initial"
    SENSITIVITY_GATE = "sensitivity_gate"
    COLLECT_PROBLEM_1 = "collect_problem_1"
    VALIDATE_PROBLEM_1 = "validate_problem_1"
    COLLECT_PROBLEM_2 = "collect_problem_2"
    VALIDATE_PROBLEM_2 = "validate_problem_2"
    COLLECT_PROBLEM_3 = "collect_problem_3"
    VALIDATE_PROBLEM_3 = "validate_problem_3"
    COLLECT_PROBLEM_4 = "collect_problem_4"
    VALIDATE_PROBLEM_4 = "validate_problem_4"
    COLLECT_PROBLEM_5 = "collect_problem_5"
    VALIDATE_PROBLEM_5 = "validate_problem_5"
    PORTFOLIO_COMPLETENESS = "portfolio_completeness"
    TIME_ALLOCATION = "time_allocation"
    CALCULATE_HEALTH = "calculate_health"
    CREATE_CORE_ROLES = "create_core_roles"
    CREATE_GROWTH_ROLES = "create_growth_roles"
    CREATE_PERSONAS = "create_personas"
    DEFINE_RESETUP_TRIGGERS = "define_resetup_triggers"
    PUBLISH_PORTFOLIO = "publish_portfolio"
    FINALIZED = "finalized"
    ABANDONED = "abandoned"


S = SetupState

# Index i holds (collect, validate) for problem i + 1.
PROBLEM_STATES = (
    (S.COLLECT_PROBLEM_1, S.VALIDATE_PROBLEM_1),
    (S.COLLECT_PROBLEM_2, S.VALIDATE_PROBLEM_2),
    (S.COLLECT_PROBLEM_3, S.VALIDATE_PROBLEM_3),
    (S.COLLECT_PROBLEM_4, S.VALIDATE_PROBLEM_4),
    (S.COLLECT_PROBLEM_5, S.VALIDATE_PROBLEM_5),
)


def collect_state_for(problem_number: int) -> SetupState:
    return PROBLEM_STATES[problem_number - 1][0]


def problem_number_of(state: SetupState) -> int:
    """1-based problem number for collect/validate states, 0 otherwise."""
    for index, pair in enumerate(PROBLEM_STATES):
        if state in pair:
            return index + 1
    return 0


SETUP_TABLE = {
    S.INITIAL: system("Starting", 0, S.SENSITIVITY_GATE),
    S.SENSITIVITY_GATE: gate("Privacy Settings", 5, S.COLLECT_PROBLEM_1),
    S.COLLECT_PROBLEM_1: question("Problem 1", 10, S.VALIDATE_PROBLEM_1, 1, answer_mode=AnswerMode.FORM),
    S.VALIDATE_PROBLEM_1: system("Problem 1", 10, S.COLLECT_PROBLEM_2),
    S.COLLECT_PROBLEM_2: question("Problem 2", 20, S.VALIDATE_PROBLEM_2, 2, answer_mode=AnswerMode.FORM),
    S.VALIDATE_PROBLEM_2: system("Problem 2", 20, S.COLLECT_PROBLEM_3),
    S.COLLECT_PROBLEM_3: question("Problem 3", 30, S.VALIDATE_PROBLEM_3, 3, answer_mode=AnswerMode.FORM),
    S.VALIDATE_PROBLEM_3: system("Problem 3", 30, S.PORTFOLIO_COMPLETENESS),
    S.COLLECT_PROBLEM_4: question("Problem 4", 35, S.VALIDATE_PROBLEM_4, 4, answer_mode=AnswerMode.FORM),
    S.VALIDATE_PROBLEM_4: system("Problem 4", 35, S.PORTFOLIO_COMPLETENESS),
    S.COLLECT_PROBLEM_5: question("Problem 5", 40, S.VALIDATE_PROBLEM_5, 5, answer_mode=AnswerMode.FORM),
    S.VALIDATE_PROBLEM_5: system("Problem 5", 40, S.PORTFOLIO_COMPLETENESS),
    S.PORTFOLIO_COMPLETENESS: gate("Portfolio Review", 45, S.TIME_ALLOCATION, answer_mode=AnswerMode.NONE),
    S.TIME_ALLOCATION: gate("Time Allocation", 55, S.CALCULATE_HEALTH),
    S.CALCULATE_HEALTH: system("Portfolio Health", 65, S.CREATE_CORE_ROLES),
    S.CREATE_CORE_ROLES: system("Core Roles", 70, S.CREATE_GROWTH_ROLES),
    S.CREATE_GROWTH_ROLES: system("Growth Roles", 75, S.CREATE_PERSONAS),
    S.CREATE_PERSONAS: gate("Personas", 85, S.DEFINE_RESETUP_TRIGGERS, answer_mode=AnswerMode.NONE),
    S.DEFINE_RESETUP_TRIGGERS: system("Triggers", 90, S.PUBLISH_PORTFOLIO),
    S.PUBLISH_PORTFOLIO: system("Publishing", 95, S.FINALIZED),
    S.FINALIZED: terminal("Complete", 100, S.FINALIZED),
    S.ABANDONED: terminal("Abandoned", 0, S.ABANDONED),
}

SETUP_MACHINE = InterviewMachine(
    name="setup",
    states=SetupState,
    table=SETUP_TABLE,
    initial=S.INITIAL,
    finalized=S.FINALIZED,
    abandoned=S.ABANDONED,
)
