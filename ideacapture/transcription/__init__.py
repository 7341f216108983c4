"""Transcription module for IdeaCapture."""

from .base import AbstractRecognizer
from .merger import merge_transcripts
from .keywords import FinishKeywordDetector
from .scripted import ScriptedRecognizer, load_script

__all__ = [
    "AbstractRecognizer",
    "merge_transcripts",
    "FinishKeywordDetector",
    "ScriptedRecognizer",
    "load_script",
]
