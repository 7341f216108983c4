"""Data models for the IdeaCapture application."""

from .history import TranscriptEntry
from .transcription import HypothesisEvent, RecognizerError, ScriptStep
from .session import SessionPhase, SessionState
from .events import SessionEvent

__all__ = [
    "TranscriptEntry",
    "HypothesisEvent",
    "RecognizerError",
    "ScriptStep",
    "SessionPhase",
    "SessionState",
    "SessionEvent",
]
