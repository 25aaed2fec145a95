"""
Quick Version - 15-minute audit.

Five questions, each vagueness-checked with its own clarify state.
"""

from enum import Enum

from ..machine import InterviewMachine, clarify, gate, question, system, terminal


class QuickState(str, Enum):
    INITIAL = "initial"
    SENSITIVITY_GATE = "sensitivity_gate"
    Q1_ROLE_CONTEXT = "q1_role_context"
    Q1_CLARIFY = "q1_clarify"
    Q2_PAID_PROBLEMS = "q2_paid_problems"
    Q2_CLARIFY = "q2_clarify"
    Q3_DIRECTION_LOOP = "q3_direction_loop"
    Q3_CLARIFY = "q3_clarify"
    Q4_AVOIDED_DECISION = "q4_avoided_decision"
    Q4_CLARIFY = "q4_clarify"
    Q5_COMFORT_WORK = "q5_comfort_work"
    Q5_CLARIFY = "q5_clarify"
    GENERATE_OUTPUT = "generate_output"
    FINALIZED = "finalized"
    ABANDONED = "abandoned"


S = QuickState

QUICK_TABLE = {
    S.INITIAL: system("Starting", 0, S.SENSITIVITY_GATE),
    S.SENSITIVITY_GATE: gate("Privacy Settings", 5, S.Q1_ROLE_CONTEXT),
    S.Q1_ROLE_CONTEXT: question("Role Context", 15, S.Q2_PAID_PROBLEMS, 1, clarify_state=S.Q1_CLARIFY),
    S.Q1_CLARIFY: clarify("Role Context", 15, S.Q2_PAID_PROBLEMS, 1, parent=S.Q1_ROLE_CONTEXT),
    S.Q2_PAID_PROBLEMS: question("Paid Problems", 30, S.Q3_DIRECTION_LOOP, 2, clarify_state=S.Q2_CLARIFY),
    S.Q2_CLARIFY: clarify("Paid Problems", 30, S.Q3_DIRECTION_LOOP, 2, parent=S.Q2_PAID_PROBLEMS),
    S.Q3_DIRECTION_LOOP: question("Problem Directions", 50, S.Q4_AVOIDED_DECISION, 3, clarify_state=S.Q3_CLARIFY),
    S.Q3_CLARIFY: clarify("Problem Directions", 50, S.Q4_AVOIDED_DECISION, 3, parent=S.Q3_DIRECTION_LOOP),
    S.Q4_AVOIDED_DECISION: question("Avoided Decision", 70, S.Q5_COMFORT_WORK, 4, clarify_state=S.Q4_CLARIFY),
    S.Q4_CLARIFY: clarify("Avoided Decision", 70, S.Q5_COMFORT_WORK, 4, parent=S.Q4_AVOIDED_DECISION),
    S.Q5_COMFORT_WORK: question("Comfort Work", 85, S.GENERATE_OUTPUT, 5, clarify_state=S.Q5_CLARIFY),
    S.Q5_CLARIFY: clarify("Comfort Work", 85, S.GENERATE_OUTPUT, 5, parent=S.Q5_COMFORT_WORK),
    S.GENERATE_OUTPUT: system("Generating Output", 95, S.FINALIZED),
    S.FINALIZED: terminal("Complete", 100, S.FINALIZED),
    S.ABANDONED: terminal("Abandoned", 0, S.ABANDONED),
}

QUICK_MACHINE = InterviewMachine(
    name="quick",
    states=QuickState,
    table=QUICK_TABLE,
    initial=S.INITIAL,
    finalized=S.FINALIZED,
    abandoned=S.ABANDONED,
)
