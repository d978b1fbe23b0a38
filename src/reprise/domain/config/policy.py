"""Retry policy model."""

from __future__ import annotations

from typing import Any, Iterable, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    InstanceOf,
    ValidationError,
    field_serializer,
    field_validator,
)

from reprise.domain.errors import ConfigurationError, SkipSignal
from reprise.domain.models.fault import ANY_FAULT, FaultKind

CURRENT_PLACEHOLDER = "{current}"
TOTAL_PLACEHOLDER = "{total}"
DEFAULT_NAME_PATTERN = f"Repetition {CURRENT_PLACEHOLDER} of {TOTAL_PLACEHOLDER}"

SKIP_SIGNAL_KIND = FaultKind.of_type(SkipSignal)


class RetryPolicy(BaseModel):
    """Declarative retry policy for one repeated test.

    Attributes:
        repeats: Extra attempts allowed beyond the first one
        min_successes: Successful attempts required for an overall pass
        suspend_ms: Delay in milliseconds before an attempt that follows a tolerable fault
        tolerable_faults: Fault kinds that do not end the run immediately
        name_pattern: Label pattern for repetitions ({current} and {total})
    """

    repeats: int = Field(1, gt=0)
    min_successes: int = Field(1, ge=1)
    suspend_ms: int = Field(0, ge=0)
    tolerable_faults: Tuple[InstanceOf[FaultKind], ...] = (ANY_FAULT,)
    name_pattern: str = DEFAULT_NAME_PATTERN

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("tolerable_faults", mode="before")
    @classmethod
    def _coerce_fault_kinds(cls, value: Any) -> Tuple[FaultKind, ...]:
        if value is None:
            return (ANY_FAULT,)
        if isinstance(value, (str, type, FaultKind)):
            value = [value]
        return tuple(_to_fault_kind(item) for item in value)

    @field_validator("name_pattern", mode="before")
    @classmethod
    def _resolve_blank_pattern(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_NAME_PATTERN
        return value

    @field_serializer("tolerable_faults")
    def _serialize_fault_kinds(self, kinds: Tuple[FaultKind, ...]) -> list:
        return [kind.name for kind in kinds]

    @classmethod
    def create(cls, **values: Any) -> "RetryPolicy":
        """Build a policy, reporting invalid values as ConfigurationError

        Raises:
            ConfigurationError: If any value is invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError.from_validation_error("Invalid retry policy", e) from e

    @property
    def total_attempts(self) -> int:
        """First attempt plus every repeat"""
        return self.repeats + 1

    @property
    def tolerable_kinds(self) -> Tuple[FaultKind, ...]:
        """Declared tolerable kinds plus the skip signal kind"""
        return self.tolerable_faults + (SKIP_SIGNAL_KIND,)

    def with_overrides(self, **overrides: Any) -> "RetryPolicy":
        """Validated copy with some fields replaced"""
        values = self.model_dump(exclude={"tolerable_faults"})
        values["tolerable_faults"] = self.tolerable_faults
        values.update(overrides)
        return self.create(**values)


def _to_fault_kind(item: Any) -> FaultKind:
    if isinstance(item, FaultKind):
        return item
    if isinstance(item, type) and issubclass(item, BaseException):
        return FaultKind.of_type(item)
    if isinstance(item, str):
        return FaultKind.named(item)
    raise ValueError(f"Cannot interpret {item!r} as a fault kind")


def fault_kinds(items: Iterable[Any]) -> Tuple[FaultKind, ...]:
    """Convert exception classes, names or kinds to FaultKind tags"""
    return tuple(_to_fault_kind(item) for item in items)
