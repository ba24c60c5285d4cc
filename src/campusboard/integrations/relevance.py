"""Free-text relevance for thread listings.

A ``RelevanceEngine`` turns a query into a SQL filter predicate and a
score expression. The forum core treats both as opaque.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import case, literal, or_, true

from campusboard.forum.models import Thread

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement


@runtime_checkable
class RelevanceEngine(Protocol):
    def rank(self, text: str) -> tuple[ColumnElement[bool], ColumnElement[int]]:
        """Return (predicate, score) for matching threads against *text*."""
        ...


class KeywordRelevance:
    """Whitespace-split terms matched case-insensitively on title and body.

    A thread matches if any term matches; its score is the number of
    matching terms, with a title hit counting double.
    """

    def __init__(self, max_terms: int = 8) -> None:
        self._max_terms = max_terms

    def terms(self, text: str) -> list[str]:
        seen: list[str] = []
        for term in text.lower().split():
            if term not in seen:
                seen.append(term)
        return seen[: self._max_terms]

    def rank(self, text: str) -> tuple[ColumnElement[bool], ColumnElement[int]]:
        terms = self.terms(text)
        if not terms:
            return true(), literal(0)
        matches = []
        score: ColumnElement[int] = literal(0)
        for term in terms:
            in_title = Thread.title.icontains(term, autoescape=True)
            in_body = Thread.body.icontains(term, autoescape=True)
            matches.extend([in_title, in_body])
            score = score + case((in_title, 2), else_=0) + case((in_body, 1), else_=0)
        return or_(*matches), score
