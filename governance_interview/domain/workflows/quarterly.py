"""
Quarterly Review - ten questions followed by board interrogation.

Core and growth interrogation each own a clarify state so that every clarify
state has exactly one parent.
"""

from enum import Enum

from ..machine import AnswerMode, InterviewMachine, clarify, gate, question, system, terminal


class QuarterlyState(str, Enum):
    INITIAL = "initial"
    SENSITIVITY_GATE = "sensitivity_gate"
    GATE0_PREREQUISITES = "gate0_prerequisites"
    RECENT_REPORT_WARNING = "recent_report_warning"
    Q1_LAST_BET_EVALUATION = "q1_last_bet_evaluation"
    Q2_COMMITMENTS_VS_ACTUALS = "q2_commitments_vs_actuals"
    Q2_CLARIFY = "q2_clarify"
    Q3_AVOIDED_DECISION = "q3_avoided_decision"
    Q3_CLARIFY = "q3_clarify"
    Q4_COMFORT_WORK = "q4_comfort_work"
    Q4_CLARIFY = "q4_clarify"
    Q5_PORTFOLIO_CHECK = "q5_portfolio_check"
    Q5_CLARIFY = "q5_clarify"
    Q6_PORTFOLIO_HEALTH_UPDATE = "q6_portfolio_health_update"
    Q7_PROTECTION_CHECK = "q7_protection_check"
    Q7_CLARIFY = "q7_clarify"
    Q8_OPPORTUNITY_CHECK = "q8_opportunity_check"
    Q8_CLARIFY = "q8_clarify"
    Q9_TRIGGER_CHECK = "q9_trigger_check"
    Q10_NEXT_BET = "q10_next_bet"
    CORE_BOARD_INTERROGATION = "core_board_interrogation"
    CORE_BOARD_CLARIFY = "core_board_clarify"
    GROWTH_BOARD_INTERROGATION = "growth_board_interrogation"
    GROWTH_BOARD_CLARIFY = "growth_board_clarify"
    GENERATE_REPORT = "generate_report"
    FINALIZED = "finalized"
    ABANDONED = "abandoned"


S = QuarterlyState
FORM = AnswerMode.FORM

QUARTERLY_TABLE = {
    S.INITIAL: system("Starting", 0, S.SENSITIVITY_GATE),
    S.SENSITIVITY_GATE: gate("Privacy Settings", 2, S.GATE0_PREREQUISITES),
    S.GATE0_PREREQUISITES: system("Prerequisites Check", 4, S.RECENT_REPORT_WARNING),
    S.RECENT_REPORT_WARNING: gate("Recent Report Warning", 5, S.Q1_LAST_BET_EVALUATION, answer_mode=AnswerMode.NONE),
    S.Q1_LAST_BET_EVALUATION: question("Bet Evaluation", 8, S.Q2_COMMITMENTS_VS_ACTUALS, 1, answer_mode=FORM),
    S.Q2_COMMITMENTS_VS_ACTUALS: question("Commitments Review", 14, S.Q3_AVOIDED_DECISION, 2, clarify_state=S.Q2_CLARIFY),
    S.Q2_CLARIFY: clarify("Commitments Review", 14, S.Q3_AVOIDED_DECISION, 2, parent=S.Q2_COMMITMENTS_VS_ACTUALS),
    S.Q3_AVOIDED_DECISION: question("Avoided Decision", 20, S.Q4_COMFORT_WORK, 3, clarify_state=S.Q3_CLARIFY),
    S.Q3_CLARIFY: clarify("Avoided Decision", 20, S.Q4_COMFORT_WORK, 3, parent=S.Q3_AVOIDED_DECISION),
    S.Q4_COMFORT_WORK: question("Comfort Work", 26, S.Q5_PORTFOLIO_CHECK, 4, clarify_state=S.Q4_CLARIFY),
    S.Q4_CLARIFY: clarify("Comfort Work", 26, S.Q5_PORTFOLIO_CHECK, 4, parent=S.Q4_COMFORT_WORK),
    S.Q5_PORTFOLIO_CHECK: question("Portfolio Check", 32, S.Q6_PORTFOLIO_HEALTH_UPDATE, 5, clarify_state=S.Q5_CLARIFY),
    S.Q5_CLARIFY: clarify("Portfolio Check", 32, S.Q6_PORTFOLIO_HEALTH_UPDATE, 5, parent=S.Q5_PORTFOLIO_CHECK),
    S.Q6_PORTFOLIO_HEALTH_UPDATE: question("Portfolio Health", 38, S.Q7_PROTECTION_CHECK, 6, answer_mode=FORM),
    S.Q7_PROTECTION_CHECK: question("Protection Check", 44, S.Q8_OPPORTUNITY_CHECK, 7, clarify_state=S.Q7_CLARIFY),
    S.Q7_CLARIFY: clarify("Protection Check", 44, S.Q8_OPPORTUNITY_CHECK, 7, parent=S.Q7_PROTECTION_CHECK),
    S.Q8_OPPORTUNITY_CHECK: question("Opportunity Check", 50, S.Q9_TRIGGER_CHECK, 8, clarify_state=S.Q8_CLARIFY),
    S.Q8_CLARIFY: clarify("Opportunity Check", 50, S.Q9_TRIGGER_CHECK, 8, parent=S.Q8_OPPORTUNITY_CHECK),
    S.Q9_TRIGGER_CHECK: question("Trigger Check", 56, S.Q10_NEXT_BET, 9, answer_mode=FORM),
    S.Q10_NEXT_BET: question("New Bet", 62, S.CORE_BOARD_INTERROGATION, 10, answer_mode=FORM),
    S.CORE_BOARD_INTERROGATION: question(
        "Core Board Review", 75, S.GROWTH_BOARD_INTERROGATION, 0, clarify_state=S.CORE_BOARD_CLARIFY
    ),
    S.CORE_BOARD_CLARIFY: clarify(
        "Core Board Review", 75, S.GROWTH_BOARD_INTERROGATION, 0, parent=S.CORE_BOARD_INTERROGATION
    ),
    S.GROWTH_BOARD_INTERROGATION: question(
        "Growth Board Review", 88, S.GENERATE_REPORT, 0, clarify_state=S.GROWTH_BOARD_CLARIFY
    ),
    S.GROWTH_BOARD_CLARIFY: clarify(
        "Growth Board Review", 88, S.GENERATE_REPORT, 0, parent=S.GROWTH_BOARD_INTERROGATION
    ),
    S.GENERATE_REPORT: system("Generating Report", 95, S.FINALIZED),
    S.FINALIZED: terminal("Complete", 100, S.FINALIZED),
    S.ABANDONED: terminal("Abandoned", 0, S.ABANDONED),
}

QUARTERLY_MACHINE = InterviewMachine(
    name="quarterly",
    states=QuarterlyState,
    table=QUARTERLY_TABLE,
    initial=S.INITIAL,
    finalized=S.FINALIZED,
    abandoned=S.ABANDONED,
)
