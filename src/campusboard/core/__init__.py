"""Core types, errors, and shared utilities."""

from campusboard.core.errors import (
    AlreadyActiveError,
    AliasConflictError,
    CampusBoardError,
    ConfigError,
    ForbiddenError,
    InvalidTransitionError,
    NotActiveError,
    NotFoundError,
    ReactionStateError,
    StorageError,
    ValidationError,
)
from campusboard.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "AliasConflictError",
    "AlreadyActiveError",
    "CampusBoardError",
    "ConfigError",
    "ForbiddenError",
    "InvalidTransitionError",
    "NotActiveError",
    "NotFoundError",
    "ReactionStateError",
    "RetryConfig",
    "StorageError",
    "ValidationError",
    "is_retryable",
    "retry_with_backoff",
]
