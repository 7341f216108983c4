"""Session-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionPhase(Enum):
    """Lifecycle phase of a recording session."""
    IDLE = "idle"
    RECORDING = "recording"
    AWAITING_FINAL = "awaiting_final"
    COMPLETED = "completed"


@dataclass
class SessionState:
    """Ephemeral per-session reconciliation state. Never persisted."""
    accumulated_transcript: str = ""
    committed_entry_id: Optional[str] = None
    awaiting_final: bool = False
    has_uncommitted_changes: bool = False
    last_hypothesis: Optional[str] = None  # Last raw hypothesis text seen
    session_ended: bool = False            # Finish keyword detected

    def clear_draft(self) -> None:
        """Drop the working draft after a segment has been committed."""
        self.accumulated_transcript = ""
        self.committed_entry_id = None
        self.has_uncommitted_changes = False
        self.last_hypothesis = None
