"""Termination decision for repeated runs.

The decision is a pure function of a counter snapshot. A snapshot is taken
when an attempt is issued and evaluated before that attempt runs, so the
outcome of attempt k-1 always gates attempt k.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Verdict(str, Enum):
    """Decision for the run as a whole"""

    CONTINUE = "continue"
    PASSED = "passed"
    FAILED = "failed"


@dataclass(frozen=True)
class ConditionResult:
    """Whether the host may execute an issued attempt"""

    enabled: bool
    reason: str

    @classmethod
    def enable(cls, reason: str) -> "ConditionResult":
        return cls(True, reason)

    @classmethod
    def disable(cls, reason: str) -> "ConditionResult":
        return cls(False, reason)


@dataclass(frozen=True)
class TerminationCondition:
    """Snapshot of the run counters after ``completed`` attempts"""

    completed: int
    total_attempts: int
    min_successes: int
    successes: int
    tolerable_faults: int
    tolerable_fault_seen: bool

    @property
    def failures(self) -> int:
        """Attempts that did not finish as clean successes"""
        return self.completed - self.successes

    @property
    def ultimately_failed(self) -> bool:
        # A fault without any tolerable fault means nothing was allowed to retry
        if self.failures > 0 and not self.tolerable_fault_seen:
            return True
        return self.total_attempts - self.failures < self.min_successes

    @property
    def ultimately_passed(self) -> bool:
        return self.successes >= self.min_successes

    def verdict(self) -> Verdict:
        if self.ultimately_failed:
            return Verdict.FAILED
        if self.ultimately_passed:
            return Verdict.PASSED
        return Verdict.CONTINUE

    def resolve(self) -> ConditionResult:
        """Map the verdict to the enabled/disabled contract of the host"""
        verdict = self.verdict()
        if verdict is Verdict.FAILED:
            return ConditionResult.disable(
                "Turn off the remaining repetitions as the test ultimately failed"
            )
        if verdict is Verdict.PASSED:
            return ConditionResult.disable(
                "Turn off the remaining repetitions as the test ultimately passed"
            )
        return ConditionResult.enable("Repeat the test")


def evaluate_termination(
    completed: int,
    total_attempts: int,
    min_successes: int,
    successes: int,
    tolerable_faults: int,
    tolerable_fault_seen: bool,
) -> Verdict:
    """Decide whether another attempt may run after ``completed`` attempts"""
    return TerminationCondition(
        completed=completed,
        total_attempts=total_attempts,
        min_successes=min_successes,
        successes=successes,
        tolerable_faults=tolerable_faults,
        tolerable_fault_seen=tolerable_fault_seen,
    ).verdict()
