"""Observer notifications using pubsub.pub."""

import uuid
import logging
from typing import Any, Dict, List, Optional
from pubsub import pub

from ..models.events import (
    SessionEvent,
    TOPIC_STATE,
    TOPIC_TRANSCRIPT,
    TOPIC_HISTORY_CHANGED,
    TOPIC_HISTORY_LOAD_FAILED,
)
from ..models.history import TranscriptEntry
from ..models.session import SessionPhase

logger = logging.getLogger(__name__)


class StatePublisher:
    """Publishes recorder state for UI-facing observers."""

    def publish_phase_change(self,
                             previous: SessionPhase,
                             new: SessionPhase,
                             reason: str,
                             metadata: Optional[Dict[str, Any]] = None) -> None:
        event = SessionEvent(
            event_id=str(uuid.uuid4()),
            event_type=new.value,
            metadata={"previous": previous.value, "reason": reason, **(metadata or {})},
        )
        pub.sendMessage(TOPIC_STATE, event=event)
        logger.debug(f"Published phase change: {previous.value} -> {new.value}")

    def publish_transcript(self, text: str) -> None:
        pub.sendMessage(TOPIC_TRANSCRIPT, text=text)

    def publish_history(self, entries: List[TranscriptEntry], unread_count: int) -> None:
        pub.sendMessage(TOPIC_HISTORY_CHANGED, entries=entries, unread_count=unread_count)
        logger.debug(f"Published history: {len(entries)} entries, {unread_count} unread")

    def publish_load_failed(self, path: str, error: Exception) -> None:
        pub.sendMessage(TOPIC_HISTORY_LOAD_FAILED, path=path, error=error)
        logger.debug(f"Published history load failure for {path}")
