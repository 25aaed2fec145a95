"""
Domain Layer - Validation Rules

Pure functions over plain values. No I/O, no session knowledge.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from .enums import PredictionStatus

MIN_PROBLEMS = 3
MAX_PROBLEMS = 5
MAX_VAGUENESS_SKIPS = 2

# Allocation bands, inclusive.
VALID_RANGE = (95, 105)
WARNING_RANGE = (90, 110)


@dataclass(frozen=True)
class Violation:
    """A single violated rule, keyed by the offending field."""
    field: str
    message: str


# ==============================================================================
# Time allocation
# ==============================================================================

class AllocationBand(str, Enum):
    """
    VALID: 95-105%.
    WARNING: 90-94% or 106-110%. The user may proceed.
    ERROR: below 90% or above 110%. Must be fixed.
    """
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"

    @property
    def can_proceed(self) -> bool:
        return self != AllocationBand.ERROR


def allocation_band(total: int) -> AllocationBand:
    if VALID_RANGE[0] <= total <= VALID_RANGE[1]:
        return AllocationBand.VALID
    if WARNING_RANGE[0] <= total <= WARNING_RANGE[1]:
        return AllocationBand.WARNING
    return AllocationBand.ERROR


def allocation_message(band: AllocationBand, total: int) -> str:
    match band:
        case AllocationBand.VALID:
            return f"Time allocation is {total}%. Looking good!"
        case AllocationBand.WARNING:
            return (
                f"Time allocation is {total}%. This is outside the ideal range (95-105%) "
                "but you can continue."
            )
        case AllocationBand.ERROR:
            return f"Time allocation is {total}%. Must be between 90% and 110% to proceed."


@dataclass(frozen=True)
class AllocationCheck:
    total: int
    band: AllocationBand
    message: str

    @property
    def can_proceed(self) -> bool:
        return self.band.can_proceed


def check_allocation(allocations: Iterable[int]) -> AllocationCheck:
    total = sum(allocations)
    band = allocation_band(total)
    return AllocationCheck(total=total, band=band, message=allocation_message(band, total))


def allocation_violations(allocations: Sequence[int], problem_count: int) -> List[Violation]:
    """Structural checks on an allocation submission, before banding."""
    violations = []
    if len(allocations) != problem_count:
        violations.append(Violation("allocations", "Allocation count must match problem count"))
    for index, value in enumerate(allocations):
        if not 0 <= value <= 100:
            violations.append(Violation(f"allocations[{index}]", "Allocation must be between 0 and 100"))
    return violations


# ==============================================================================
# Problem rules
# ==============================================================================

def _present(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def problem_completeness_violations(
    name: Optional[str],
    what_breaks: Optional[str],
    scarcity_signals: Sequence[str],
    scarcity_unknown_reason: Optional[str],
) -> List[Violation]:
    """
    A problem is complete when it has a name, a what-breaks statement and
    either two non-empty scarcity signals or an "unknown" reason.

    Returns every violated field, empty when complete.
    """
    violations = []
    if not _present(name):
        violations.append(Violation("name", "Problem name is required"))
    if not _present(what_breaks):
        violations.append(Violation("what_breaks", "What breaks if not solved is required"))

    signals = [s for s in scarcity_signals if _present(s)]
    if len(signals) < 2 and not _present(scarcity_unknown_reason):
        violations.append(
            Violation("scarcity_signals", 'Either 2 scarcity signals or "Unknown + reason" is required')
        )
    return violations


def can_add_problem(count: int) -> bool:
    return count < MAX_PROBLEMS


def can_remove_problem(count: int) -> bool:
    return count > MIN_PROBLEMS


def problem_count_violations(count: int) -> List[Violation]:
    if count < MIN_PROBLEMS:
        return [Violation("problems", f"At least {MIN_PROBLEMS} problems required")]
    if count > MAX_PROBLEMS:
        return [Violation("problems", f"Maximum {MAX_PROBLEMS} problems allowed")]
    return []


# ==============================================================================
# Predictions
# ==============================================================================

def can_transition_to(current: PredictionStatus, new_status: PredictionStatus) -> bool:
    return current.can_transition_to(new_status)


def prediction_transition_violations(current: PredictionStatus, new_status: PredictionStatus) -> List[Violation]:
    if can_transition_to(current, new_status):
        return []
    return [
        Violation(
            "status",
            f"Cannot change prediction status from {current.value} to {new_status.value}",
        )
    ]


# ==============================================================================
# Vagueness skip budget
# ==============================================================================

def can_skip(skip_count: int) -> bool:
    return skip_count < MAX_VAGUENESS_SKIPS
