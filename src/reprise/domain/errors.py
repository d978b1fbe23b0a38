"""Errors raised by the repetition core"""

from __future__ import annotations

from typing import Optional

from pydantic import ValidationError


class ConfigurationError(Exception):
    """Configuration validation error."""

    @classmethod
    def from_validation_error(cls, title: str, error: ValidationError) -> "ConfigurationError":
        """Format pydantic errors as one line per offending field

        Args:
            title: Leading line of the message
            error: Validation error raised by a config model

        Returns:
            ConfigurationError chained to the validation error
        """
        lines = []
        for item in error.errors():
            field = ".".join(str(x) for x in item["loc"]) or "<root>"
            lines.append(f"  - {field}: {item['msg']}")
        exc = cls(f"{title}:\n" + "\n".join(lines))
        exc.__cause__ = error
        return exc


class SkipSignal(Exception):
    """Raised in place of a tolerable fault to discard the attempt and go on.

    The host runner must report the attempt as not counting toward failure.
    The original fault is kept as ``fault`` and as ``__cause__``.
    """

    def __init__(self, message: str, fault: Optional[BaseException] = None):
        super().__init__(message)
        self.fault = fault
        self.__cause__ = fault
