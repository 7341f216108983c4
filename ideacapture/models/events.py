"""Event models published to observers."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

TOPIC_STATE = "recorder_state"
TOPIC_TRANSCRIPT = "recorder_transcript"
TOPIC_HISTORY_CHANGED = "history_changed"
TOPIC_HISTORY_LOAD_FAILED = "history_load_failed"


@dataclass
class SessionEvent:
    """Session lifecycle event."""
    event_id: str
    event_type: str  # SessionPhase value entered
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
