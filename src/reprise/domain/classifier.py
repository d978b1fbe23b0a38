"""Fault classification against a retry policy"""

import logging

from reprise.domain.config.policy import RetryPolicy
from reprise.domain.errors import SkipSignal
from reprise.domain.models.fault import Classification, FaultKind

logger = logging.getLogger(__name__)


class FaultClassifier:
    """Decides whether a fault is tolerable under a policy"""

    def __init__(self, policy: RetryPolicy):
        self.tolerable_kinds = policy.tolerable_kinds

    def classify(self, fault: BaseException) -> Classification:
        """Classify a fault by kind

        Args:
            fault: Fault raised by an attempt

        Returns:
            TOLERABLE if the fault kind is-a declared kind, NON_TOLERABLE otherwise
        """
        if isinstance(fault, SkipSignal):
            return Classification.TOLERABLE

        kind = FaultKind.of(fault)
        for declared in self.tolerable_kinds:
            if kind.is_a(declared):
                logger.debug(f"Fault {kind} matches tolerable kind {declared}")
                return Classification.TOLERABLE

        logger.debug(f"Fault {kind} is not tolerable")
        return Classification.NON_TOLERABLE
