"""campusboard - threaded discussion and engagement backend for a campus forum."""

__version__ = "0.1.0"
