"""External collaborators: image storage, text relevance, notification delivery."""

from campusboard.integrations.images import ImageStore, LocalImageStore
from campusboard.integrations.notifier import HttpNotifier, LoggingNotifier, Notifier
from campusboard.integrations.relevance import KeywordRelevance, RelevanceEngine

__all__ = [
    "HttpNotifier",
    "ImageStore",
    "KeywordRelevance",
    "LocalImageStore",
    "LoggingNotifier",
    "Notifier",
    "RelevanceEngine",
]
