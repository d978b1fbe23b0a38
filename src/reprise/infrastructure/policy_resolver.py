"""Discovery of retry policies declared with the ``repeatable`` marker"""

import logging
from typing import Any, Iterable, Optional, Tuple

from reprise.application.repetition_service import PolicyResolver
from reprise.domain.config.policy import RetryPolicy, fault_kinds
from reprise.domain.errors import ConfigurationError
from reprise.domain.models.fault import FaultKind

logger = logging.getLogger(__name__)

MARKER_NAME = "repeatable"


class MarkerPolicyResolver(PolicyResolver):
    """Builds policies from ``@pytest.mark.repeatable(...)`` on test items"""

    def __init__(
        self,
        defaults: Optional[RetryPolicy] = None,
        enabled: bool = True,
        implicit_tolerable: Iterable[Any] = (),
    ):
        """Initialize resolver

        Args:
            defaults: Policy values used where the marker is silent
            enabled: Whether marked tests are repeated at all
            implicit_tolerable: Fault kinds added to every declared allow-list
        """
        self.defaults = defaults or RetryPolicy()
        self.enabled = enabled
        self.implicit_tolerable: Tuple[FaultKind, ...] = fault_kinds(implicit_tolerable)

    def supports(self, unit: Any) -> bool:
        if not self.enabled:
            return False
        return unit.get_closest_marker(MARKER_NAME) is not None

    def resolve(self, unit: Any) -> Optional[RetryPolicy]:
        marker = unit.get_closest_marker(MARKER_NAME)
        if marker is None:
            return None

        overrides = dict(marker.kwargs)
        if len(marker.args) > 1:
            raise ConfigurationError(
                f"{MARKER_NAME} marker on {unit.nodeid} takes at most one positional argument (repeats)"
            )
        if marker.args:
            overrides["repeats"] = marker.args[0]

        policy = self.defaults.with_overrides(**overrides)
        if self.implicit_tolerable:
            policy = policy.with_overrides(
                tolerable_faults=policy.tolerable_faults + self.implicit_tolerable
            )
        logger.debug(
            f"Resolved policy for {unit.nodeid}: repeats={policy.repeats}, "
            f"min_successes={policy.min_successes}, suspend_ms={policy.suspend_ms}"
        )
        return policy
