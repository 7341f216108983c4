"""Recognizer-facing data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class RecognizerError(Exception):
    """Raised or reported when the speech recognizer fails."""


@dataclass
class HypothesisEvent:
    """One hypothesis emitted by the speech recognizer.

    Recognizers re-score the whole utterance, so `text` is the full best
    transcription so far, not a delta.
    """
    text: str
    is_final: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ScriptStep:
    """A single step replayed by the scripted recognizer."""
    text: str = ""
    is_final: bool = False
    error: Optional[str] = None  # Report this error and stop
    end: bool = False            # End the recognition task without a final result
