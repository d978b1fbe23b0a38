"""FaultKind model - explicit tag used to match faults against a policy"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Type


class Classification(str, Enum):
    """Outcome of classifying a fault"""

    TOLERABLE = "tolerable"
    NON_TOLERABLE = "non_tolerable"


def qualified_name(fault_type: type) -> str:
    """Return ``module.QualName`` for a type"""
    return f"{fault_type.__module__}.{fault_type.__qualname__}"


@dataclass(frozen=True)
class FaultKind:
    """Kind of a fault with the kinds it implies.

    ``lineage`` lists the kind itself first, then every superkind. A declared
    kind matches an observed one when its name appears in the observed
    lineage, so declaring a general kind also covers the specific ones.
    """

    name: str
    lineage: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Fault kind name must not be blank")
        if not self.lineage or self.lineage[0] != self.name:
            object.__setattr__(self, "lineage", (self.name,) + tuple(self.lineage))

    @classmethod
    def named(cls, name: str) -> "FaultKind":
        """Kind identified by name only (as declared in config files)"""
        return cls(name.strip())

    @classmethod
    def derive(cls, name: str, parent: "FaultKind") -> "FaultKind":
        """More specific kind that also is-a ``parent``"""
        return cls(name, (name,) + parent.lineage)

    @classmethod
    def of_type(cls, fault_type: Type[BaseException]) -> "FaultKind":
        """Kind derived from an exception class and its bases"""
        lineage = tuple(qualified_name(t) for t in fault_type.__mro__ if t is not object)
        return cls(lineage[0], lineage)

    @classmethod
    def of(cls, fault: BaseException) -> "FaultKind":
        """Kind of an observed fault

        An explicit ``fault_kind`` tag on the fault wins over its type.
        """
        explicit = getattr(fault, "fault_kind", None)
        if isinstance(explicit, FaultKind):
            return explicit
        return cls.of_type(type(fault))

    def is_a(self, other: "FaultKind") -> bool:
        """Check whether this kind equals or is more specific than ``other``"""
        return any(_names_match(other.name, entry) for entry in self.lineage)

    def __str__(self) -> str:
        return self.name


def _names_match(declared: str, observed: str) -> bool:
    if declared == observed:
        return True
    # Unqualified names ("AssertionError") match the last component
    if "." not in declared:
        return observed.rsplit(".", 1)[-1] == declared
    return False


ANY_FAULT = FaultKind.of_type(BaseException)
