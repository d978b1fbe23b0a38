"""Repetition service - orchestrates repeated runs of a test"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, NoReturn, Optional

from reprise.application.attempt_sequence import AttemptSequence
from reprise.domain.classifier import FaultClassifier
from reprise.domain.config.policy import RetryPolicy
from reprise.domain.display import DisplayFormatter
from reprise.domain.errors import SkipSignal
from reprise.domain.models.attempt import AttemptDescriptor
from reprise.domain.models.fault import Classification
from reprise.domain.models.run_state import RunState
from reprise.domain.termination import ConditionResult, Verdict

logger = logging.getLogger(__name__)


class PolicyResolver(ABC):
    """Finds the retry policy declared on a test unit"""

    @abstractmethod
    def supports(self, unit: Any) -> bool:
        """Check whether the unit declares a retry policy"""
        pass

    @abstractmethod
    def resolve(self, unit: Any) -> Optional[RetryPolicy]:
        """Build the policy declared on the unit

        Raises:
            ConfigurationError: If the declared values are invalid
        """
        pass


class RepetitionRun:
    """One repeated run of a test under a retry policy.

    The host pulls attempts with next_attempt(), checks each one with
    resolve_termination(), executes it and pushes the result back with
    on_attempt_outcome().
    """

    def __init__(
        self,
        policy: RetryPolicy,
        base_name: str,
        sleeper: Optional[Callable[[float], None]] = None,
    ):
        """Initialize repetition run

        Args:
            policy: Retry policy resolved for the test
            base_name: Display name of the test
            sleeper: Optional wait function for the suspend delay (seconds)
        """
        self.policy = policy
        self.base_name = base_name
        self.formatter = DisplayFormatter(policy.name_pattern, base_name)
        self.classifier = FaultClassifier(policy)
        self.state: Optional[RunState] = None
        self._sleeper = sleeper
        self._sequence: Optional[AttemptSequence] = None
        self._pending: Optional[AttemptDescriptor] = None

    def __iter__(self) -> Iterator[AttemptDescriptor]:
        while True:
            attempt = self.next_attempt()
            if attempt is None:
                return
            yield attempt

    def next_attempt(self) -> Optional[AttemptDescriptor]:
        """Issue the next attempt

        Returns:
            Attempt descriptor, or None once the run is decided

        Raises:
            RuntimeError: If called again after returning None
        """
        if self._sequence is None:
            self.state = RunState(self.policy.total_attempts, self.policy.min_successes)
            self._sequence = AttemptSequence(self.policy, self.state, self.formatter, self._sleeper)
            logger.debug(
                f"Starting repeated run of {self.base_name}: up to {self.policy.total_attempts} attempts, "
                f"{self.policy.min_successes} success(es) required"
            )

        if self._pending is not None:
            logger.debug(f"{self._pending.display_label} finished without an outcome")
            self._pending = None

        try:
            attempt = next(self._sequence)
        except StopIteration:
            logger.info(
                f"{self.base_name}: {self.verdict.value} after {self.state.attempts} attempt(s) "
                f"({self.state.successes} passed, {self.state.tolerable_faults} tolerated)"
            )
            return None

        self._pending = attempt
        return attempt

    def has_next(self) -> bool:
        """Check whether another attempt would be issued"""
        if self._sequence is None:
            return True
        return self._sequence.has_next()

    def resolve_termination(self, attempt: AttemptDescriptor) -> ConditionResult:
        """Decide whether the host may execute an issued attempt"""
        result = attempt.resolve()
        if not result.enabled:
            logger.debug(f"{attempt.display_label} disabled: {result.reason}")
        return result

    def on_attempt_outcome(self, fault: Optional[BaseException] = None) -> None:
        """Record the outcome of the attempt being executed

        Args:
            fault: Fault raised by the attempt, None on success

        Raises:
            SkipSignal: If the fault is tolerated and the run goes on
            BaseException: The original fault when it ends the run
            RuntimeError: If no attempt is awaiting an outcome
        """
        attempt = self._pending
        if attempt is None:
            raise RuntimeError("No attempt is awaiting an outcome")
        self._pending = None

        if fault is None:
            self.state.record_success()
            logger.debug(f"{attempt.display_label} passed")
            return
        self._propagate(attempt, fault)

    def _propagate(self, attempt: AttemptDescriptor, fault: BaseException) -> NoReturn:
        if isinstance(fault, SkipSignal):
            self.state.record_tolerable_fault()
            raise fault

        if self.classifier.classify(fault) is Classification.NON_TOLERABLE:
            self.state.record_non_tolerable_fault(fault)
            logger.info(f"{attempt.display_label} raised non-tolerable {type(fault).__name__}, run failed")
            raise fault

        prior = self.state.record_tolerable_fault(fault)
        if self.state.successes < self.policy.min_successes and self._target_reachable(prior):
            logger.info(f"{attempt.display_label} raised tolerable {type(fault).__name__}, repeating")
            raise SkipSignal("Do not fail completely, but repeat the test", fault) from fault

        logger.info(
            f"{attempt.display_label} raised {type(fault).__name__} and "
            f"{self.policy.min_successes} success(es) can no longer be reached"
        )
        raise fault

    def _target_reachable(self, prior_tolerable_faults: int) -> bool:
        return prior_tolerable_faults < self.policy.total_attempts - self.policy.min_successes

    def interrupt(self) -> None:
        """Abort a running suspend delay"""
        if self._sequence is not None:
            self._sequence.interrupt()

    @property
    def verdict(self) -> Verdict:
        """PASSED or FAILED once decided, CONTINUE while undecided"""
        if self.state is None:
            return Verdict.CONTINUE
        if self.state.non_tolerable_fault_seen:
            return Verdict.FAILED
        return self.state.snapshot().verdict()

    @property
    def last_fault(self) -> Optional[BaseException]:
        """Last real fault of the run (never the skip signal)"""
        if self.state is None:
            return None
        return self.state.last_fault


class RepetitionService:
    """Entry point used by host runners"""

    def __init__(
        self,
        resolver: PolicyResolver,
        sleeper: Optional[Callable[[float], None]] = None,
    ):
        self.resolver = resolver
        self.sleeper = sleeper

    def supports(self, unit: Any) -> bool:
        """Check whether the unit declares a retry policy"""
        return self.resolver.supports(unit)

    def start_run(self, unit: Any, base_name: str) -> RepetitionRun:
        """Create the run for a test unit

        Raises:
            ConfigurationError: If the declared policy is invalid
            RuntimeError: If the unit declares no policy
        """
        policy = self.resolver.resolve(unit)
        if policy is None:
            raise RuntimeError(f"{base_name} does not declare a retry policy")
        return RepetitionRun(policy, base_name, sleeper=self.sleeper)
