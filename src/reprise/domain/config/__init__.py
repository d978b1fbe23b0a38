"""Configuration models with Pydantic validation."""

from reprise.domain.config.app import AppConfig
from reprise.domain.config.policy import DEFAULT_NAME_PATTERN, RetryPolicy

__all__ = [
    "AppConfig",
    "RetryPolicy",
    "DEFAULT_NAME_PATTERN",
]
