"""Threaded discussion core: threads, comments, reactions, identities, unread."""

from campusboard.forum.comments import CommentTree, CommentView
from campusboard.forum.identity import IdentityAssigner
from campusboard.forum.paging import Page
from campusboard.forum.reactions import ReactionLedger
from campusboard.forum.service import Forum
from campusboard.forum.threads import SortMode, ThreadFilter, ThreadStore, ThreadView, ValueMode
from campusboard.forum.unread import UnreadEntry, UnreadLedger

__all__ = [
    "CommentTree",
    "CommentView",
    "Forum",
    "IdentityAssigner",
    "Page",
    "ReactionLedger",
    "SortMode",
    "ThreadFilter",
    "ThreadStore",
    "ThreadView",
    "UnreadEntry",
    "UnreadLedger",
    "ValueMode",
]
