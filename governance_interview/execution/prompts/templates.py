"""
Template name constants.

Pure constants - no I/O or file system knowledge.
"""


class Template:
    """Template name constants. Use these instead of raw strings."""

    VAGUENESS_CHECK = "vagueness_check"
    PARSE_PROBLEMS = "parse_problems"
    DIRECTION_EVALUATION = "direction_evaluation"
    HEALTH_STATEMENTS = "health_statements"
    BOARD_ANCHORING = "board_anchoring"
    PERSONA = "persona"
    BOARD_QUESTION = "board_question"
    QUICK_REPORT = "quick_report"
    SETUP_SUMMARY = "setup_summary"
    QUARTERLY_REPORT = "quarterly_report"
