"""Services layer for IdeaCapture application logic."""

from .state_machine import SessionStateMachine
from .accumulator import SessionAccumulator
from .publisher import StatePublisher
from .recorder_service import RecorderService

__all__ = [
    "SessionStateMachine",
    "SessionAccumulator",
    "StatePublisher",
    "RecorderService",
]
