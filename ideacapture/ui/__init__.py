"""Console UI for IdeaCapture."""

from .history_screen import HistoryScreen

__all__ = ["HistoryScreen"]
