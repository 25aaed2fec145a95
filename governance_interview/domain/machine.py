"""
Domain Layer - Generic Interview State Machine

A single interview engine definition parameterized by a workflow-specific
transition table. Each workflow declares a closed Enum of state tags and a
table mapping every tag to a StateSpec. The table is the only source of
ordering: successors are looked up, never computed.

The machine validates its table at construction (import time for the three
built-in workflows), so a missing state, a dangling successor or a broken
clarify/parent link fails fast instead of surfacing mid-session.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Generic, Iterator, List, Optional, Type, TypeVar

S = TypeVar("S", bound=Enum)


class StepKind(str, Enum):
    """
    How the engine treats a state.

    SYSTEM: Executed automatically by the engine, never waits for the user.
    GATE: Waits for a confirmation or form, but is not a numbered question.
    QUESTION: Waits for an answer to a numbered question.
    CLARIFY: Waits for one concrete example after a vague answer.
    TERMINAL: finalized / abandoned.
    """
    SYSTEM = "system"
    GATE = "gate"
    QUESTION = "question"
    CLARIFY = "clarify"
    TERMINAL = "terminal"


class AnswerMode(str, Enum):
    """What kind of input a waiting state accepts."""
    TEXT = "text"
    FORM = "form"
    NONE = "none"


class MachineDefinitionError(ValueError):
    """Raised when a transition table violates a structural invariant."""
    pass


@dataclass(frozen=True)
class StateSpec(Generic[S]):
    """
    Static attributes of one state.

    Attributes:
        kind: StepKind
        display_name: Label for the progress indicator.
        progress_percent: 0-100.
        next_state: Successor tag. Terminal states point at themselves.
            Clarify states point at their parent's successor.
        question_number: 1-based question number, 0 for non-question states
            and unnumbered questions (board interrogation).
        answer_mode: Input accepted while waiting in this state.
        requires_vagueness_check: Answers go through the Vagueness Gate.
        clarify_state: For vagueness-checked questions, the clarify state.
        parent_question_state: For clarify states, the question they clarify.
    """
    kind: StepKind
    display_name: str
    progress_percent: int
    next_state: S
    question_number: int = 0
    answer_mode: AnswerMode = AnswerMode.NONE
    requires_vagueness_check: bool = False
    clarify_state: Optional[S] = None
    parent_question_state: Optional[S] = None

    @property
    def is_question(self) -> bool:
        return self.kind == StepKind.QUESTION

    @property
    def is_clarify(self) -> bool:
        return self.kind == StepKind.CLARIFY

    @property
    def waits_for_user(self) -> bool:
        return self.kind in (StepKind.GATE, StepKind.QUESTION, StepKind.CLARIFY)


# ==============================================================================
# Table-building helpers
# ==============================================================================

def system(display_name: str, progress: int, next_state) -> StateSpec:
    return StateSpec(StepKind.SYSTEM, display_name, progress, next_state)


def gate(display_name: str, progress: int, next_state,
         answer_mode: AnswerMode = AnswerMode.FORM) -> StateSpec:
    return StateSpec(StepKind.GATE, display_name, progress, next_state, answer_mode=answer_mode)


def question(display_name: str, progress: int, next_state, number: int,
             clarify_state=None, answer_mode: AnswerMode = AnswerMode.TEXT) -> StateSpec:
    return StateSpec(
        StepKind.QUESTION,
        display_name,
        progress,
        next_state,
        question_number=number,
        answer_mode=answer_mode,
        requires_vagueness_check=clarify_state is not None,
        clarify_state=clarify_state,
    )


def clarify(display_name: str, progress: int, next_state, number: int, parent) -> StateSpec:
    return StateSpec(
        StepKind.CLARIFY,
        display_name,
        progress,
        next_state,
        question_number=number,
        answer_mode=AnswerMode.TEXT,
        parent_question_state=parent,
    )


def terminal(display_name: str, progress: int, state) -> StateSpec:
    return StateSpec(StepKind.TERMINAL, display_name, progress, state)


# ==============================================================================
# The Machine
# ==============================================================================

class InterviewMachine(Generic[S]):
    """
    Total, deterministic state machine over one workflow's state Enum.
    """

    def __init__(
        self,
        name: str,
        states: Type[S],
        table: Dict[S, StateSpec],
        initial: S,
        finalized: S,
        abandoned: S,
    ):
        self.name = name
        self.states = states
        self.table = dict(table)
        self.initial = initial
        self.finalized = finalized
        self.abandoned = abandoned
        self._validate()

    # --------------------------------------------------------------------------
    # Lookups
    # --------------------------------------------------------------------------

    def spec(self, state: S) -> StateSpec:
        return self.table[state]

    def next_state(self, state: S) -> S:
        return self.table[state].next_state

    def is_question(self, state: S) -> bool:
        return self.table[state].is_question

    def is_clarify(self, state: S) -> bool:
        return self.table[state].is_clarify

    def requires_vagueness_check(self, state: S) -> bool:
        return self.table[state].requires_vagueness_check

    def clarify_state(self, state: S) -> Optional[S]:
        return self.table[state].clarify_state

    def parent_question_state(self, state: S) -> Optional[S]:
        return self.table[state].parent_question_state

    def display_name(self, state: S) -> str:
        return self.table[state].display_name

    def question_number(self, state: S) -> int:
        return self.table[state].question_number

    def progress_percent(self, state: S) -> int:
        return self.table[state].progress_percent

    def is_terminal(self, state: S) -> bool:
        return state in (self.finalized, self.abandoned)

    def precedes_finalize(self, state: S) -> bool:
        """True for the state whose successor is finalized (report + publish step)."""
        return not self.is_terminal(state) and self.next_state(state) == self.finalized

    def parse(self, tag: Optional[str]) -> S:
        """Decodes a persisted state tag. Unrecognized tags fall back to initial."""
        try:
            return self.states(tag)
        except ValueError:
            return self.initial

    def canonical_path(self) -> List[S]:
        """Follows next_state from initial to finalized."""
        return list(self._walk(self.initial))

    def _walk(self, state: S) -> Iterator[S]:
        seen = set()
        while state not in seen:
            seen.add(state)
            yield state
            if state == self.finalized:
                return
            state = self.next_state(state)
        raise MachineDefinitionError(f"{self.name}: cycle reached at '{state.value}'")

    # --------------------------------------------------------------------------
    # Structural validation
    # --------------------------------------------------------------------------

    def _validate(self):
        missing = [s.value for s in self.states if s not in self.table]
        if missing:
            raise MachineDefinitionError(f"{self.name}: no spec for states {missing}")

        for state, spec in self.table.items():
            if spec.next_state not in self.table:
                raise MachineDefinitionError(f"{self.name}: '{state.value}' has unknown successor")
            if not 0 <= spec.progress_percent <= 100:
                raise MachineDefinitionError(f"{self.name}: '{state.value}' progress out of range")
            if spec.question_number > 0 and not (spec.is_question or spec.is_clarify):
                raise MachineDefinitionError(f"{self.name}: '{state.value}' is numbered but not a question")
            if spec.kind == StepKind.TERMINAL and spec.next_state != state:
                raise MachineDefinitionError(f"{self.name}: terminal '{state.value}' must map to itself")
            if spec.kind != StepKind.TERMINAL and spec.next_state == state:
                raise MachineDefinitionError(f"{self.name}: '{state.value}' maps to itself")
            self._validate_clarify_links(state, spec)

        for state in (self.finalized, self.abandoned):
            if self.table[state].kind != StepKind.TERMINAL:
                raise MachineDefinitionError(f"{self.name}: '{state.value}' must be terminal")

        if self.progress_percent(self.initial) != 0:
            raise MachineDefinitionError(f"{self.name}: initial progress must be 0")
        if self.progress_percent(self.finalized) != 100:
            raise MachineDefinitionError(f"{self.name}: finalized progress must be 100")
        if self.progress_percent(self.abandoned) != 0:
            raise MachineDefinitionError(f"{self.name}: abandoned progress must be 0")

        path = self.canonical_path()
        if path[-1] != self.finalized:
            raise MachineDefinitionError(f"{self.name}: canonical path does not reach finalized")
        progress = [self.progress_percent(s) for s in path]
        if progress != sorted(progress):
            raise MachineDefinitionError(f"{self.name}: progress decreases along canonical path")

    def _validate_clarify_links(self, state: S, spec: StateSpec):
        if spec.requires_vagueness_check:
            target = spec.clarify_state
            if target is None or target not in self.table:
                raise MachineDefinitionError(f"{self.name}: '{state.value}' lacks a clarify state")
            target_spec = self.table[target]
            if not target_spec.is_clarify or target_spec.parent_question_state != state:
                raise MachineDefinitionError(f"{self.name}: '{target.value}' is not clarified by '{state.value}'")
            if target_spec.next_state != spec.next_state:
                raise MachineDefinitionError(f"{self.name}: '{target.value}' must share its parent's successor")
        elif spec.clarify_state is not None:
            raise MachineDefinitionError(f"{self.name}: '{state.value}' has a clarify state without a vagueness check")

        if spec.is_clarify:
            parent = spec.parent_question_state
            if parent is None or self.table[parent].clarify_state != state:
                raise MachineDefinitionError(f"{self.name}: clarify '{state.value}' has no matching parent")
