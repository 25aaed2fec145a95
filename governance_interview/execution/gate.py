"""
Vagueness Gate

Decides whether a free-text answer must be routed to its clarify state.

A heuristic pre-screen settles the obvious cases without an LLM call:
- fewer than three words is vague, unless the answer is "none" / "n/a"
- "none" / "n/a" is an explicit, acceptable answer
- concrete indicators (dates, quarters, proper nouns, numbers, delivery
  verbs) mean concrete
- vague qualifiers without concrete indicators mean vague

Everything else goes to the LLM. If the LLM is unavailable the gate is
bypassed (not vague) and the verdict is flagged `degraded` so the caller can
tell the user the check was skipped.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..llm.interface import LLMProvider
from ..schemas.decisions import VaguenessVerdict
from ..services.exceptions import VaguenessGateUnavailable
from .prompts import Template, build_messages

logger = logging.getLogger(__name__)

EXPLICIT_NONE = ("none", "n/a")

DATE_PATTERNS = [
    re.compile(r"\b(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"),
    re.compile(r"\b(january|february|march|april|may|june|july|august|september|october|november|december)\b"),
    re.compile(r"\b(last|this|next)\s+(week|month|quarter|year)\b"),
    re.compile(r"\b\d{1,2}[/\-]\d{1,2}\b"),
    re.compile(r"\b(q[1-4]|h[12])\b"),
    re.compile(r"\b(yesterday|today|tomorrow)\b"),
]

METRIC_PATTERN = re.compile(r"\b\d+%|\$\d+|\b\d+\s*(people|users|customers|hours|days|meetings)\b")

SPECIFIC_PATTERNS = [
    re.compile(r"\b(completed|delivered|shipped|launched|presented|submitted)\b"),
    re.compile(r"\b(met with|talked to|emailed|called|messaged)\b"),
    re.compile(r"\bthe\s+\w+\s+(project|team|meeting|report|document|proposal|presentation)\b"),
]

VAGUE_QUALIFIERS = (
    "stuff", "things", "various", "several", "some", "a lot", "many", "lots of",
    "kind of", "sort of", "basically", "essentially", "generally", "usually",
    "sometimes", "often", "pretty much", "more or less", "helped", "improved",
    "worked on", "dealt with", "handled", "took care of", "etc", "and so on",
    "and stuff",
)

DEFAULT_SUGGESTION = "Name a specific project, person, date or measurable result."


@dataclass(frozen=True)
class GateVerdict:
    is_vague: bool
    concrete_example_suggestion: Optional[str] = None
    reason: str = ""
    degraded: bool = False


def has_concrete_indicators(answer: str) -> bool:
    lower = answer.lower()
    if any(p.search(lower) for p in DATE_PATTERNS):
        return True

    # Capitalized word that does not start a sentence
    words = answer.split()
    for previous, word in zip(words, words[1:]):
        if word[:1].isupper() and not previous.endswith((".", "?", "!")):
            return True

    if METRIC_PATTERN.search(lower):
        return True
    return any(p.search(lower) for p in SPECIFIC_PATTERNS)


def has_vague_indicators(answer: str) -> bool:
    lower = answer.lower()
    return any(q in lower for q in VAGUE_QUALIFIERS)


def prescreen(answer: str) -> Optional[GateVerdict]:
    """Heuristic verdict, or None when the LLM has to decide."""
    normalized = answer.strip().lower()

    if normalized in EXPLICIT_NONE:
        return GateVerdict(is_vague=False, reason="Explicitly stated none/n/a")

    if len(answer.split()) < 3:
        return GateVerdict(
            is_vague=True,
            concrete_example_suggestion=DEFAULT_SUGGESTION,
            reason="Answer is too brief to contain concrete details",
        )

    if has_concrete_indicators(answer):
        return GateVerdict(is_vague=False, reason="Contains concrete indicators")

    if has_vague_indicators(answer):
        return GateVerdict(
            is_vague=True,
            concrete_example_suggestion=DEFAULT_SUGGESTION,
            reason="Uses vague language without concrete specifics",
        )
    return None


class VaguenessGate:
    def __init__(self, llm_provider: LLMProvider):
        self.llm = llm_provider

    async def evaluate(self, answer: str, question: str) -> GateVerdict:
        verdict = prescreen(answer)
        if verdict is not None:
            logger.debug(f"Vagueness prescreen: vague={verdict.is_vague} ({verdict.reason})")
            return verdict

        try:
            decision = await self._ask_llm(answer, question)
        except VaguenessGateUnavailable as e:
            logger.warning(f"Vagueness gate bypassed: {e}")
            return GateVerdict(
                is_vague=False,
                reason="Could not verify answer specificity",
                degraded=True,
            )

        return GateVerdict(
            is_vague=decision.is_vague,
            concrete_example_suggestion=(
                decision.concrete_example_suggestion or DEFAULT_SUGGESTION
            ) if decision.is_vague else None,
            reason=decision.reasoning,
        )

    async def _ask_llm(self, answer: str, question: str) -> VaguenessVerdict:
        messages = build_messages(
            Template.VAGUENESS_CHECK,
            user_content=f'Question asked: "{question}"\n\nUser\'s answer: "{answer}"',
        )
        try:
            return await self.llm.generate_structured_output(
                messages=messages,
                response_model=VaguenessVerdict,
            )
        except Exception as e:
            raise VaguenessGateUnavailable(str(e)) from e
