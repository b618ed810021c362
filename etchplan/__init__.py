"""Markdown implementation plans: serialization, in-place edits, session progress, status reports and review."""

__version__ = "0.1.0"