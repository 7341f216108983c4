"""IdeaCapture - incremental transcript reconciliation and history storage."""

__version__ = "0.1.0"
