"""RunState model - counters shared by the attempts of one run"""

from __future__ import annotations

import threading
from typing import Optional

from reprise.domain.termination import TerminationCondition


class RunState:
    """Mutable counters of a single repeated run.

    Attempts only ever update the state one after another. Increments take a
    lock because host runners may call back from different worker threads
    across attempts.
    """

    def __init__(self, total_attempts: int, min_successes: int):
        self.total_attempts = total_attempts
        self.min_successes = min_successes
        self._lock = threading.Lock()
        self._attempts = 0
        self._successes = 0
        self._tolerable_faults = 0
        self._non_tolerable_fault_seen = False
        self._last_fault: Optional[BaseException] = None

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def successes(self) -> int:
        return self._successes

    @property
    def tolerable_faults(self) -> int:
        return self._tolerable_faults

    @property
    def tolerable_fault_seen(self) -> bool:
        return self._tolerable_faults > 0

    @property
    def non_tolerable_fault_seen(self) -> bool:
        return self._non_tolerable_fault_seen

    @property
    def last_fault(self) -> Optional[BaseException]:
        """Last real fault reported (never a skip signal)"""
        return self._last_fault

    def record_attempt(self) -> int:
        """Count an issued attempt and return its 1-based index"""
        with self._lock:
            if self._attempts >= self.total_attempts:
                raise RuntimeError(f"All {self.total_attempts} attempts were already issued")
            self._attempts += 1
            return self._attempts

    def record_success(self) -> None:
        with self._lock:
            self._successes += 1

    def record_tolerable_fault(self, fault: Optional[BaseException] = None) -> int:
        """Count a tolerable fault

        Returns:
            Tolerable faults counted before this one
        """
        with self._lock:
            prior = self._tolerable_faults
            self._tolerable_faults += 1
            if fault is not None:
                self._last_fault = fault
            return prior

    def record_non_tolerable_fault(self, fault: BaseException) -> None:
        with self._lock:
            self._non_tolerable_fault_seen = True
            self._last_fault = fault

    def snapshot(self) -> TerminationCondition:
        """Termination condition over the counters as they are now"""
        with self._lock:
            return TerminationCondition(
                completed=self._attempts,
                total_attempts=self.total_attempts,
                min_successes=self.min_successes,
                successes=self._successes,
                tolerable_faults=self._tolerable_faults,
                tolerable_fault_seen=self._tolerable_faults > 0,
            )
