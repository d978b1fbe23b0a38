"""Lazy sequence of attempts for one repeated run"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Iterator, Optional

from tenacity.nap import sleep_using_event

from reprise.domain.config.policy import RetryPolicy
from reprise.domain.display import DisplayFormatter
from reprise.domain.models.attempt import AttemptDescriptor
from reprise.domain.models.run_state import RunState
from reprise.domain.termination import Verdict

logger = logging.getLogger(__name__)


class SequencePhase(str, Enum):
    """Lifecycle of an attempt sequence"""

    START = "start"
    PRODUCING = "producing"
    EXHAUSTED = "exhausted"


class AttemptSequence(Iterator[AttemptDescriptor]):
    """Issues attempts one at a time until the run is decided.

    The first attempt is always issued. Every further attempt is issued only
    when the counters recorded so far leave the run undecided. Once exhausted
    the sequence stays exhausted; a new run needs a new RunState.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        state: RunState,
        formatter: DisplayFormatter,
        sleeper: Optional[Callable[[float], None]] = None,
    ):
        """Initialize attempt sequence

        Args:
            policy: Retry policy of the run
            state: Counters of the run
            formatter: Label renderer for issued attempts
            sleeper: Wait function taking seconds (defaults to an interruptible wait)
        """
        self.policy = policy
        self.state = state
        self.formatter = formatter
        self._interrupted = threading.Event()
        self._sleep = sleeper or sleep_using_event(self._interrupted)
        self.phase = SequencePhase.START

    def __iter__(self) -> "AttemptSequence":
        return self

    def __next__(self) -> AttemptDescriptor:
        """Issue the next attempt

        Raises:
            StopIteration: When the run is decided
            RuntimeError: If the sequence was already exhausted
        """
        if self.phase is SequencePhase.EXHAUSTED:
            raise RuntimeError("Attempt sequence is exhausted and cannot be restarted")
        if not self.has_next():
            logger.debug(f"Attempt sequence exhausted after {self.state.attempts} attempt(s)")
            self.phase = SequencePhase.EXHAUSTED
            raise StopIteration

        if self.phase is SequencePhase.PRODUCING and self.state.tolerable_fault_seen:
            self._suspend()
        self.phase = SequencePhase.PRODUCING
        return self._issue()

    def has_next(self) -> bool:
        """Check whether another attempt would be issued, without issuing it"""
        if self.phase is SequencePhase.EXHAUSTED:
            return False
        if self.phase is SequencePhase.START:
            return True
        if self.state.non_tolerable_fault_seen:
            return False
        if self.state.attempts >= self.state.total_attempts:
            return False
        return self.state.snapshot().verdict() is Verdict.CONTINUE

    def interrupt(self) -> None:
        """Abort a running suspend; the run itself goes on

        Has no effect when no suspend is running.
        """
        self._interrupted.set()

    def _issue(self) -> AttemptDescriptor:
        condition = self.state.snapshot()
        index = self.state.record_attempt()
        attempt = AttemptDescriptor(
            index=index,
            total_attempts=self.state.total_attempts,
            display_label=self.formatter.format(index, self.state.total_attempts),
            condition=condition,
        )
        logger.debug(f"Issued attempt {index}/{attempt.total_attempts}: {attempt.display_label}")
        return attempt

    def _suspend(self) -> None:
        if self.policy.suspend_ms <= 0:
            return
        logger.debug(f"Suspending {self.policy.suspend_ms} ms before next attempt")
        # Only an interrupt during this wait counts
        self._interrupted.clear()
        self._sleep(self.policy.suspend_ms / 1000.0)
        if self._interrupted.is_set():
            logger.warning("Suspend before next attempt was interrupted")
            self._interrupted.clear()
