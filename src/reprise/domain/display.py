"""Display labels for repeated attempts"""

from reprise.domain.config.policy import CURRENT_PLACEHOLDER, DEFAULT_NAME_PATTERN, TOTAL_PLACEHOLDER


class DisplayFormatter:
    """Renders attempt labels from a name pattern"""

    def __init__(self, pattern: str = DEFAULT_NAME_PATTERN, base_name: str = ""):
        self.pattern = pattern
        self.base_name = base_name

    def format(self, attempt_index: int, total_attempts: int) -> str:
        """Render the label of an attempt

        Args:
            attempt_index: 1-based attempt index
            total_attempts: Attempts allowed for the run

        Returns:
            Base name for the first attempt, "base (pattern)" for repetitions
        """
        if attempt_index > 1 and total_attempts > 0:
            # Minus one, the first run is not a repetition
            rendered = self.pattern.replace(CURRENT_PLACEHOLDER, str(attempt_index - 1)).replace(
                TOTAL_PLACEHOLDER, str(total_attempts - 1)
            )
            return f"{self.base_name} ({rendered})"
        return self.base_name
