"""Per-session accumulation of recognizer hypotheses into history entries."""

import uuid
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..models.history import TranscriptEntry
from ..models.session import SessionPhase, SessionState
from ..storage.history_store import HistoryStore
from ..transcription.merger import merge_transcripts
from .state_machine import SessionStateMachine

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_entry_id() -> str:
    return str(uuid.uuid4())


class SessionAccumulator:
    """Feeds hypotheses through the merger and commits segments to history.

    A segment is the text between two final results. Each segment becomes
    exactly one history entry: the first commit creates it, later commits
    of the same segment update it in place.
    """

    def __init__(self,
                 store: HistoryStore,
                 state_machine: SessionStateMachine,
                 is_session_end_signal: Optional[Callable[[str], bool]] = None,
                 persist_partials: bool = True,
                 merge: Callable[[str, str], str] = merge_transcripts,
                 clock: Callable[[], datetime] = _utc_now,
                 id_factory: Callable[[], str] = _new_entry_id):
        """Initialize session accumulator.

        Args:
            store: History the segments are committed to
            state_machine: Lifecycle of the current session
            is_session_end_signal: Predicate detecting a spoken finish keyword
            persist_partials: Commit the in-flight segment on every hypothesis
            merge: Transcript merge function
            clock: Source of entry creation times
            id_factory: Source of entry ids
        """
        self.store = store
        self.state_machine = state_machine
        self.is_session_end_signal = is_session_end_signal or (lambda text: False)
        self.persist_partials = persist_partials
        self.merge = merge
        self.clock = clock
        self.id_factory = id_factory

        self.state = SessionState()
        self.last_committed_entry_id: Optional[str] = None

        state_machine.add_listener(self._on_phase_change)

    @property
    def transcript(self) -> str:
        """Current draft of the open segment."""
        return self.state.accumulated_transcript

    def on_hypothesis(self,
                      text: str,
                      is_final: bool,
                      should_finish_session: Optional[bool] = None) -> Optional[TranscriptEntry]:
        """Apply one recognizer hypothesis.

        Args:
            text: Full hypothesis text
            is_final: The recognizer will not revise this segment any more
            should_finish_session: Finish keyword detected; evaluated with
                                   `is_session_end_signal` when None

        Returns:
            The entry committed by this hypothesis, if any
        """
        if not self.state_machine.is_active:
            logger.debug(f"Ignoring hypothesis in phase {self.state_machine.phase.value}")
            return None

        state = self.state
        if text != state.last_hypothesis:
            state.last_hypothesis = text
            merged = self.merge(state.accumulated_transcript, text)
            if merged != state.accumulated_transcript:
                state.accumulated_transcript = merged
                state.has_uncommitted_changes = True
            logger.debug(f"Hypothesis (final={is_final}): '{text[:50]}' -> '{merged[:50]}'")

        if should_finish_session is None:
            should_finish_session = self.is_session_end_signal(text)

        if should_finish_session and not state.session_ended:
            logger.info("Finish keyword detected, ending session")
            state.session_ended = True
            if not state.awaiting_final:
                self.state_machine.request_stop("finish_keyword")

        if is_final:
            entry = self._commit()
            state.clear_draft()
            if state.awaiting_final:
                self._complete("final_result")
            return entry

        if self.persist_partials and state.has_uncommitted_changes:
            return self._commit()
        return None

    def finalize(self, reason: str, draft_text: Optional[str] = None) -> Optional[TranscriptEntry]:
        """Commit whatever has accumulated and complete the session.

        Used when no natural final result will arrive (recognizer error,
        silent end, timeout, shutdown).

        Args:
            reason: Why the session is being finalized
            draft_text: Latest hypothesis not yet applied, merged first

        Returns:
            The committed entry, if there was text to commit
        """
        if not self.state_machine.is_active:
            return None

        if draft_text:
            merged = self.merge(self.state.accumulated_transcript, draft_text)
            if merged != self.state.accumulated_transcript:
                self.state.accumulated_transcript = merged
                self.state.has_uncommitted_changes = True

        entry = None
        if self.state.has_uncommitted_changes:
            entry = self._commit()
        logger.info(f"Finalizing session ({reason}), committed={entry is not None}")
        self._complete(reason)
        return entry

    def _commit(self) -> Optional[TranscriptEntry]:
        """Write the current draft into history. Empty text is never written."""
        state = self.state
        text = state.accumulated_transcript.strip()
        if not text:
            state.has_uncommitted_changes = False
            return None

        existing = self.store.get(state.committed_entry_id) if state.committed_entry_id else None
        if existing is None:
            entry = TranscriptEntry(id=self.id_factory(), created_at=self.clock(), text=text)
            state.committed_entry_id = entry.id
        else:
            entry = TranscriptEntry(id=existing.id, created_at=existing.created_at,
                                    text=text, is_read=existing.is_read)

        if not self.store.insert_or_update(entry):
            logger.warning(f"Entry {entry.id} kept in memory only, history file not updated")
        state.has_uncommitted_changes = False
        self.last_committed_entry_id = entry.id
        return entry

    def _complete(self, reason: str) -> None:
        self.state_machine.complete(reason)

    def _on_phase_change(self, previous: SessionPhase, new: SessionPhase, reason: str) -> None:
        if new is SessionPhase.RECORDING:
            self.state = SessionState()
        elif new is SessionPhase.AWAITING_FINAL:
            self.state.awaiting_final = True
        elif new is SessionPhase.IDLE:
            self.state.clear_draft()
            self.state.awaiting_final = False
