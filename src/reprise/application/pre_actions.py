"""Pre-actions executed before tests, ordered by priority"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, Iterable, List

logger = logging.getLogger(__name__)

HIGHEST_PRECEDENCE = -sys.maxsize - 1
LOWEST_PRECEDENCE = sys.maxsize


class PreActionHandler(ABC):
    """Action run before a test class or a test attempt"""

    @abstractmethod
    def execute(self) -> None:
        """Run the action"""
        pass

    def order(self) -> int:
        """Priority, lower runs first (default: lowest priority)"""
        return LOWEST_PRECEDENCE


class PreActionDispatcher:
    """Runs handlers in ascending order, ties in declaration order"""

    def __init__(self, handlers: Iterable[Any] = ()):
        """Initialize dispatcher

        Args:
            handlers: Handler instances, or handler classes to instantiate without arguments

        Raises:
            TypeError: If a handler has no execute() method
        """
        instances = [self._instantiate(handler) for handler in handlers]
        # sorted() is stable, equal priorities keep declaration order
        self.handlers: List[Any] = sorted(instances, key=_order_of)

    @staticmethod
    def _instantiate(handler: Any) -> Any:
        if isinstance(handler, type):
            handler = handler()
        if not callable(getattr(handler, "execute", None)):
            raise TypeError(f"Pre-action handler {handler!r} has no execute() method")
        return handler

    def dispatch(self) -> int:
        """Execute all handlers

        Returns:
            Number of handlers executed
        """
        for handler in self.handlers:
            logger.debug(f"Executing pre-action {type(handler).__name__} (order {_order_of(handler)})")
            handler.execute()
        return len(self.handlers)


def _order_of(handler: Any) -> int:
    order = getattr(handler, "order", None)
    if order is None:
        return LOWEST_PRECEDENCE
    return order()
