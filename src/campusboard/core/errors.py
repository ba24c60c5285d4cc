"""Exception hierarchy for campusboard.

Every module imports from here. The hierarchy is:

    CampusBoardError
    ├── NotFoundError(entity, ident)
    ├── ReactionStateError
    │   ├── AlreadyActiveError
    │   └── NotActiveError
    ├── ForbiddenError
    ├── InvalidTransitionError
    ├── ValidationError
    ├── ConfigError
    └── StorageError
        └── AliasConflictError
"""

from __future__ import annotations


class CampusBoardError(Exception):
    """Base exception for all campusboard errors."""


# ─── Lookup Errors ────────────────────────────────────────────


class NotFoundError(CampusBoardError):
    """Thread, comment, reaction, or other entity is missing (or hidden)."""

    def __init__(self, entity: str, ident: object) -> None:
        self.entity = entity
        self.ident = ident
        super().__init__(f"{entity} not found: {ident}")


# ─── Reaction Errors ──────────────────────────────────────────


class ReactionStateError(CampusBoardError):
    """Base for reaction toggle conflicts."""

    def __init__(self, kind: str, user_id: int, target: str, target_id: int) -> None:
        self.kind = kind
        self.user_id = user_id
        self.target = target
        self.target_id = target_id
        super().__init__(self._describe())

    def _describe(self) -> str:
        return (
            f"{self.kind} by user {self.user_id} on {self.target} {self.target_id}"
        )


class AlreadyActiveError(ReactionStateError):
    """The reaction record already exists."""

    def _describe(self) -> str:
        return f"Already active: {super()._describe()}"


class NotActiveError(ReactionStateError):
    """No reaction record exists to deactivate."""

    def _describe(self) -> str:
        return f"Not active: {super()._describe()}"


# ─── Authorization / State Errors ─────────────────────────────


class ForbiddenError(CampusBoardError):
    """Actor is not the owner or lacks the required administrative right."""


class InvalidTransitionError(CampusBoardError):
    """Resolution state machine or category change violation."""


class ValidationError(CampusBoardError):
    """Arguments violate a domain rule (missing department, rating range...)."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(CampusBoardError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(CampusBoardError):
    """Database or persistence layer error, including transaction aborts."""


class AliasConflictError(StorageError):
    """A concurrent writer claimed the same per-thread display name."""

    def __init__(self, thread_id: int, name: str) -> None:
        self.thread_id = thread_id
        self.name = name
        super().__init__(f"Display name {name!r} already claimed in thread {thread_id}")
