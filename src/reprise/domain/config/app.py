"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from reprise.domain.config.policy import RetryPolicy


class AppConfig(BaseModel):
    """Main application configuration.

    Root of ``.reprise.yml``. Validation is performed at load time to fail
    fast on configuration errors.

    Attributes:
        enabled: Whether marked tests are repeated at all
        policy: Project-wide policy defaults, overridden by marker arguments
    """

    enabled: bool = True
    policy: RetryPolicy = Field(default_factory=RetryPolicy)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "enabled": True,
                "policy": {
                    "repeats": 3,
                    "min_successes": 1,
                    "suspend_ms": 250,
                    "tolerable_faults": ["AssertionError", "ConnectionError"],
                    "name_pattern": "Repetition {current} of {total}",
                },
            }
        },
    )
