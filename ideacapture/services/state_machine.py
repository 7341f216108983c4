"""Recording session lifecycle state machine."""

import random
import string
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..models.session import SessionPhase

logger = logging.getLogger(__name__)

PhaseListener = Callable[[SessionPhase, SessionPhase, str], None]

_TRANSITIONS = {
    (SessionPhase.IDLE, "start"): SessionPhase.RECORDING,
    (SessionPhase.RECORDING, "stop"): SessionPhase.AWAITING_FINAL,
    (SessionPhase.RECORDING, "complete"): SessionPhase.COMPLETED,
    (SessionPhase.AWAITING_FINAL, "complete"): SessionPhase.COMPLETED,
    (SessionPhase.COMPLETED, "reset"): SessionPhase.IDLE,
}


def new_session_id() -> str:
    """Timestamp-based session id with a random suffix."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return f"{timestamp}_{random_suffix}"


class SessionStateMachine:
    """Idle -> Recording -> AwaitingFinal -> Completed -> Idle.

    Listeners are called after every transition with (previous, new,
    reason). Completed is entered and left in the same call, so listeners
    always see it.

    Not thread-safe: all calls must come from the owner context.
    """

    def __init__(self):
        self.phase = SessionPhase.IDLE
        self.session_id: Optional[str] = None
        self.external_request = False
        # The recognizer task of the last session has not confirmed it ended
        self.recognizer_outstanding = False
        self._listeners: List[PhaseListener] = []

    def add_listener(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    @property
    def is_recording(self) -> bool:
        return self.phase is SessionPhase.RECORDING

    @property
    def is_active(self) -> bool:
        """True while a session is open (recording or awaiting its final result)."""
        return self.phase in (SessionPhase.RECORDING, SessionPhase.AWAITING_FINAL)

    @property
    def is_busy(self) -> bool:
        return self.phase is not SessionPhase.IDLE or self.recognizer_outstanding

    def start(self, external_request: bool = False) -> Dict[str, Any]:
        """Open a new session.

        Args:
            external_request: Start was requested from outside the app
                              (shortcut, widget) rather than by the user

        Returns:
            Result dictionary; `busy` is set when the previous session is
            still finishing
        """
        if self.is_busy:
            logger.info(f"Start rejected: previous session still finishing (phase={self.phase.value}, "
                        f"recognizer_outstanding={self.recognizer_outstanding})")
            return {
                "success": False,
                "busy": True,
                "error": "Previous session still finishing",
                "session_id": self.session_id,
            }

        self.session_id = new_session_id()
        self.external_request = external_request
        self.recognizer_outstanding = True
        self._transition("start", "external" if external_request else "user")
        return {"success": True, "session_id": self.session_id}

    def request_stop(self, reason: str = "stop") -> bool:
        """Stop capturing audio and wait for the final result.

        Repeated requests while awaiting the final result are no-ops.

        Returns:
            True if the phase changed
        """
        if self.phase is SessionPhase.AWAITING_FINAL:
            logger.debug(f"Stop request ({reason}) ignored: already awaiting final result")
            return False
        if self.phase is not SessionPhase.RECORDING:
            logger.debug(f"Stop request ({reason}) ignored in phase {self.phase.value}")
            return False
        self._transition("stop", reason)
        return True

    def complete(self, reason: str) -> bool:
        """Complete the open session and return to Idle.

        Returns:
            False if no session was open
        """
        if not self.is_active:
            logger.debug(f"Complete ({reason}) ignored in phase {self.phase.value}")
            return False
        self._transition("complete", reason)
        self._transition("reset", reason)
        return True

    def release_recognizer(self) -> None:
        """Record that the last recognizer task has ended."""
        if self.recognizer_outstanding:
            logger.debug(f"Recognizer task released for session {self.session_id}")
        self.recognizer_outstanding = False

    def _transition(self, trigger: str, reason: str) -> None:
        previous = self.phase
        new_phase = _TRANSITIONS.get((previous, trigger))
        if new_phase is None:
            raise RuntimeError(f"Invalid transition '{trigger}' from {previous.value}")

        self.phase = new_phase
        logger.info(f"Session {self.session_id}: {previous.value} -> {new_phase.value} ({reason})")

        for listener in list(self._listeners):
            try:
                listener(previous, new_phase, reason)
            except Exception as e:
                logger.error(f"Session phase listener failed: {e}", exc_info=True)
