"""AttemptDescriptor model - one issued attempt of a repeated test"""

from dataclasses import dataclass

from reprise.domain.termination import ConditionResult, TerminationCondition


@dataclass(frozen=True)
class AttemptDescriptor:
    """Represents one attempt handed to the host runner"""

    index: int  # 1-based
    total_attempts: int
    display_label: str
    condition: TerminationCondition  # Counters as of issuance

    def __post_init__(self):
        if self.index < 1 or self.index > self.total_attempts:
            raise ValueError(f"Attempt index {self.index} outside 1..{self.total_attempts}")

    @property
    def is_repetition(self) -> bool:
        """First attempt is not a repetition"""
        return self.index > 1

    def resolve(self) -> ConditionResult:
        return self.condition.resolve()
