"""Unit tests for the generic interview machine and the three transition tables."""

from __future__ import annotations

from enum import Enum

import pytest

from governance_interview.domain.machine import (
    InterviewMachine,
    MachineDefinitionError,
    StateSpec,
    StepKind,
    clarify,
    question,
    system,
    terminal,
)
from governance_interview.domain.workflows import (
    MACHINES,
    QUARTERLY_MACHINE,
    QUICK_MACHINE,
    SETUP_MACHINE,
    QuarterlyState,
    QuickState,
    SetupState,
)
from governance_interview.domain.workflows.setup import collect_state_for, problem_number_of


class Tiny(str, Enum):
    INITIAL = "initial"
    ASK = "ask"
    ASK_CLARIFY = "ask_clarify"
    DONE = "done"
    FINALIZED = "finalized"
    ABANDONED = "abandoned"


def tiny_table() -> dict:
    return {
        Tiny.INITIAL: system("Start", 0, Tiny.ASK),
        Tiny.ASK: question("Ask", 50, Tiny.DONE, 1, clarify_state=Tiny.ASK_CLARIFY),
        Tiny.ASK_CLARIFY: clarify("Ask", 50, Tiny.DONE, 1, parent=Tiny.ASK),
        Tiny.DONE: system("Done", 90, Tiny.FINALIZED),
        Tiny.FINALIZED: terminal("Complete", 100, Tiny.FINALIZED),
        Tiny.ABANDONED: terminal("Abandoned", 0, Tiny.ABANDONED),
    }


def build(table: dict) -> InterviewMachine:
    return InterviewMachine("tiny", Tiny, table, Tiny.INITIAL, Tiny.FINALIZED, Tiny.ABANDONED)


class TestMachineValidation:
    """A broken table fails at construction."""

    def test_valid_table_builds(self) -> None:
        """The reference table passes every structural check."""
        machine = build(tiny_table())
        assert machine.canonical_path() == [Tiny.INITIAL, Tiny.ASK, Tiny.DONE, Tiny.FINALIZED]

    def test_missing_state_rejected(self) -> None:
        """Every enum member needs a spec."""
        table = tiny_table()
        del table[Tiny.DONE]
        with pytest.raises(MachineDefinitionError, match="no spec"):
            build(table)

    def test_clarify_must_share_parent_successor(self) -> None:
        """A clarify state resumes where its parent would have gone."""
        table = tiny_table()
        table[Tiny.ASK_CLARIFY] = clarify("Ask", 50, Tiny.FINALIZED, 1, parent=Tiny.ASK)
        with pytest.raises(MachineDefinitionError, match="share its parent's successor"):
            build(table)

    def test_orphan_clarify_rejected(self) -> None:
        """A clarify state must be the clarify state of its parent."""
        table = tiny_table()
        table[Tiny.ASK] = question("Ask", 50, Tiny.DONE, 1)
        with pytest.raises(MachineDefinitionError):
            build(table)

    def test_decreasing_progress_rejected(self) -> None:
        """Progress never goes backwards along the canonical path."""
        table = tiny_table()
        table[Tiny.DONE] = system("Done", 10, Tiny.FINALIZED)
        with pytest.raises(MachineDefinitionError, match="progress decreases"):
            build(table)

    def test_terminal_must_map_to_itself(self) -> None:
        """Terminal states are fixed points."""
        table = tiny_table()
        table[Tiny.ABANDONED] = terminal("Abandoned", 0, Tiny.FINALIZED)
        with pytest.raises(MachineDefinitionError, match="must map to itself"):
            build(table)

    def test_numbered_gate_rejected(self) -> None:
        """Only questions and clarify states carry a question number."""
        table = tiny_table()
        table[Tiny.INITIAL] = StateSpec(StepKind.GATE, "Gate", 0, Tiny.ASK, question_number=3)
        with pytest.raises(MachineDefinitionError, match="numbered"):
            build(table)


class TestMachineLookups:
    """Lookups used by the engine."""

    def test_unknown_tag_falls_back_to_initial(self) -> None:
        """A persisted tag that no longer exists decodes to the initial state."""
        assert QUICK_MACHINE.parse("q9_removed") == QuickState.INITIAL
        assert QUICK_MACHINE.parse(None) == QuickState.INITIAL
        assert QUICK_MACHINE.parse("q4_clarify") == QuickState.Q4_CLARIFY

    def test_precedes_finalize(self) -> None:
        """Only the report step sits right before finalized."""
        assert QUICK_MACHINE.precedes_finalize(QuickState.GENERATE_OUTPUT)
        assert not QUICK_MACHINE.precedes_finalize(QuickState.Q5_COMFORT_WORK)
        assert not QUICK_MACHINE.precedes_finalize(QuickState.FINALIZED)

    def test_terminal_states(self) -> None:
        """finalized and abandoned are terminal in every workflow."""
        for machine in MACHINES.values():
            assert machine.is_terminal(machine.finalized)
            assert machine.is_terminal(machine.abandoned)
            assert not machine.is_terminal(machine.initial)


class TestWorkflowTables:
    """The built-in tables."""

    def test_quick_has_five_numbered_questions(self) -> None:
        """Quick asks Q1-Q5, each with its own clarify state."""
        questions = [s for s in QuickState if QUICK_MACHINE.is_question(s)]
        assert [QUICK_MACHINE.question_number(s) for s in questions] == [1, 2, 3, 4, 5]
        for state in questions:
            clarify_state = QUICK_MACHINE.clarify_state(state)
            assert QUICK_MACHINE.parent_question_state(clarify_state) == state

    def test_setup_optional_problems_return_to_completeness(self) -> None:
        """Problems 4 and 5 are off the canonical path and rejoin at the review gate."""
        path = SETUP_MACHINE.canonical_path()
        assert SetupState.COLLECT_PROBLEM_4 not in path
        assert SETUP_MACHINE.next_state(SetupState.VALIDATE_PROBLEM_4) == SetupState.PORTFOLIO_COMPLETENESS
        assert SETUP_MACHINE.next_state(SetupState.VALIDATE_PROBLEM_5) == SetupState.PORTFOLIO_COMPLETENESS

    def test_setup_problem_numbering(self) -> None:
        """Collect and validate states map to their 1-based problem number."""
        assert collect_state_for(4) == SetupState.COLLECT_PROBLEM_4
        assert problem_number_of(SetupState.VALIDATE_PROBLEM_2) == 2
        assert problem_number_of(SetupState.TIME_ALLOCATION) == 0

    def test_quarterly_board_states_have_distinct_clarify(self) -> None:
        """Core and growth interrogation each own a clarify state."""
        core = QUARTERLY_MACHINE.clarify_state(QuarterlyState.CORE_BOARD_INTERROGATION)
        growth = QUARTERLY_MACHINE.clarify_state(QuarterlyState.GROWTH_BOARD_INTERROGATION)
        assert core != growth
        assert QUARTERLY_MACHINE.next_state(core) == QuarterlyState.GROWTH_BOARD_INTERROGATION

    def test_progress_bounds(self) -> None:
        """Initial and abandoned show 0%, finalized shows 100%."""
        for machine in MACHINES.values():
            assert machine.progress_percent(machine.initial) == 0
            assert machine.progress_percent(machine.abandoned) == 0
            assert machine.progress_percent(machine.finalized) == 100
