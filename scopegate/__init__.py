"""Scopegate: diff-scoped static verification for pull request findings."""

__version__ = "0.3.0"
