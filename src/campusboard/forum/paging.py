"""Page window for list queries."""

from __future__ import annotations

from dataclasses import dataclass

from campusboard.core.errors import ValidationError


@dataclass(frozen=True, slots=True)
class Page:
    """1-based page number and page size."""

    number: int = 1
    size: int = 20

    def __post_init__(self) -> None:
        if self.number < 1:
            msg = f"Page number must be >= 1, got {self.number}"
            raise ValidationError(msg)
        if self.size < 1:
            msg = f"Page size must be >= 1, got {self.size}"
            raise ValidationError(msg)

    @property
    def offset(self) -> int:
        return (self.number - 1) * self.size

    @property
    def limit(self) -> int:
        return self.size

    @classmethod
    def clamp(cls, number: int, size: int, max_size: int) -> Page:
        """Build a page, capping the size at *max_size*."""
        return cls(number=number, size=min(size, max_size))
