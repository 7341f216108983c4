"""Core recorder service that owns the session lifecycle.

All session state (accumulator, state machine, history store) is touched
only from a single owner worker thread. Control calls and recognizer
callbacks arriving on other threads are queued as commands and executed
in order on that thread.
"""

import queue
import logging
import functools
import threading
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..config import IdeaCaptureConfig
from ..models.history import TranscriptEntry
from ..models.session import SessionPhase
from ..models.transcription import HypothesisEvent
from ..storage.history_store import HistoryStore
from ..transcription.base import AbstractRecognizer
from ..transcription.keywords import FinishKeywordDetector
from .accumulator import SessionAccumulator
from .publisher import StatePublisher
from .state_machine import SessionStateMachine

logger = logging.getLogger(__name__)

# Returns (microphone_granted, transcription_granted)
PermissionProvider = Callable[[], Tuple[bool, bool]]


def grant_all() -> Tuple[bool, bool]:
    return True, True


class RecorderService:
    """Serializes recording control, recognizer events and history updates."""

    def __init__(self,
                 config: IdeaCaptureConfig,
                 recognizer: AbstractRecognizer,
                 permissions: Optional[PermissionProvider] = None,
                 store: Optional[HistoryStore] = None):
        """Initialize recorder service.

        Args:
            config: Application configuration
            recognizer: Source of hypothesis events
            permissions: Asks for microphone and transcription permission
            store: History store; built from config when None
        """
        self.config = config
        self.recognizer = recognizer
        self.permissions = permissions or grant_all
        self.final_timeout_seconds = config.get_final_timeout_seconds()
        self.publisher = StatePublisher()

        self.store = store or HistoryStore(
            config.get_history_path(),
            incremental_writes=config.get_incremental_writes(),
            on_load_error=self.publisher.publish_load_failed,
        )
        self.state_machine = SessionStateMachine()
        self.accumulator = SessionAccumulator(
            self.store,
            self.state_machine,
            is_session_end_signal=FinishKeywordDetector(config.get_finish_keywords()),
            persist_partials=config.get_persist_partials(),
        )
        self.state_machine.add_listener(self._on_phase_change)

        # Owner context
        self.command_queue: "queue.Queue[Optional[tuple]]" = queue.Queue()
        self.worker_thread: Optional[threading.Thread] = None
        self.idle_event = threading.Event()
        self.idle_event.set()
        self._running = False

        self._start_pending = False
        self._final_timer: Optional[threading.Timer] = None
        self._published_revision: Optional[int] = None
        self._published_transcript = ""

        logger.info(f"RecorderService initialized (final timeout {self.final_timeout_seconds}s)")

    # Lifecycle

    def start(self) -> None:
        """Start the owner thread and load the history."""
        if self._running:
            return
        self._running = True
        self.worker_thread = threading.Thread(target=self._worker_loop, name="recorder_owner", daemon=True)
        self.worker_thread.start()
        self._submit(self.store.load).result()
        logger.info("RecorderService started")

    def shutdown(self, timeout: float = 5.0) -> bool:
        """Commit any open session and stop the owner thread.

        Returns:
            True if the owner thread terminated
        """
        if not self._running:
            return True

        logger.info("Shutting down RecorderService...")
        try:
            self._submit(self._shutdown_session).result(timeout)
        except Exception as e:
            logger.warning(f"Error finishing session during shutdown: {e}")

        self._running = False
        self.command_queue.put(None)
        thread = self.worker_thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Recorder owner thread did not terminate cleanly")
                return False
        self.worker_thread = None
        logger.info("RecorderService shutdown complete")
        return True

    def _worker_loop(self) -> None:
        """Owner loop: run queued commands one at a time."""
        logger.debug("Recorder owner thread starting")
        while True:
            command = self.command_queue.get()
            if command is None:
                self.command_queue.task_done()
                break

            func, args, future = command
            try:
                result = func(*args)
            except Exception as e:
                logger.error(f"Unhandled exception in recorder command {getattr(func, '__name__', func)}: {e}",
                             exc_info=True)
                if future is not None:
                    future.set_exception(e)
            else:
                if future is not None:
                    future.set_result(result)
            finally:
                self._publish_snapshot()
                self.command_queue.task_done()
        logger.debug("Recorder owner thread exiting")

    def _submit(self, func: Callable, *args: Any) -> Future:
        """Run `func` on the owner thread and return a future for its result."""
        future: Future = Future()
        if threading.current_thread() is self.worker_thread:
            # Already on the owner thread, waiting on the queue would deadlock
            try:
                future.set_result(func(*args))
            except Exception as e:
                future.set_exception(e)
            return future

        if not self._running:
            raise RuntimeError("RecorderService is not running")
        self.command_queue.put((func, args, future))
        return future

    def _enqueue(self, func: Callable, *args: Any) -> None:
        """Queue a fire-and-forget command from any thread."""
        if not self._running:
            logger.debug(f"Dropping {getattr(func, '__name__', func)}: service not running")
            return
        self.command_queue.put((func, args, None))

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait until every command queued so far has been executed."""
        self._submit(lambda: None).result(timeout)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        return self.idle_event.wait(timeout)

    # Control operations

    def start_session(self, external_request: bool = False, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Start a recording session.

        The permission request runs on the calling thread so the owner
        stays responsive; other start requests are rejected as busy until
        it returns.

        Args:
            external_request: Start was requested by a shortcut or widget
            timeout: Maximum time to wait for the owner thread

        Returns:
            Result dictionary with success status and session id or error
        """
        reserved = self._submit(self._reserve_start).result(timeout)
        if not reserved["success"]:
            return reserved

        granted = False
        try:
            microphone, transcription = self.permissions()
            granted = bool(microphone) and bool(transcription)
            if not granted:
                logger.warning(f"Permissions not granted: microphone={microphone}, transcription={transcription}")
        except Exception as e:
            logger.error(f"Permission request failed: {e}")

        return self._submit(self._begin_session, granted, external_request).result(timeout)

    def request_stop(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Stop recording; the session completes when the final result arrives."""
        return self._submit(self._stop, "stop").result(timeout)

    def request_cleanup(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Stop recording because the recorder is being dismissed."""
        return self._submit(self._stop, "cleanup").result(timeout)

    def _reserve_start(self) -> Dict[str, Any]:
        if self._start_pending:
            return {"success": False, "busy": True, "error": "Start already in progress"}
        if self.state_machine.is_busy:
            return {"success": False, "busy": True, "error": "Previous session still finishing"}
        self._start_pending = True
        return {"success": True}

    def _begin_session(self, granted: bool, external_request: bool) -> Dict[str, Any]:
        self._start_pending = False
        if not granted:
            return {"success": False, "error": "Microphone and speech recognition permissions are required"}

        result = self.state_machine.start(external_request)
        if not result["success"]:
            return result

        session_id = result["session_id"]
        try:
            self.recognizer.start(
                on_hypothesis=functools.partial(self._enqueue, self._handle_hypothesis, session_id),
                on_error=functools.partial(self._enqueue, self._handle_recognizer_error, session_id),
                on_finished=functools.partial(self._enqueue, self._handle_recognizer_finished, session_id),
            )
        except Exception as e:
            logger.error(f"Recognizer failed to start: {e}")
            self.accumulator.finalize("recognizer_error")
            return {"success": False, "error": f"Recognizer failed to start: {e}"}

        logger.info(f"Started recording session: {session_id}")
        return {
            "success": True,
            "session_id": session_id,
            "started_at": datetime.now().isoformat(),
        }

    def _stop(self, reason: str) -> Dict[str, Any]:
        changed = self.state_machine.request_stop(reason)
        return {"success": True, "changed": changed, "phase": self.state_machine.phase.value}

    def _shutdown_session(self) -> None:
        self._cancel_final_timer()
        if self.state_machine.is_active:
            self.accumulator.finalize("shutdown")

    # Recognizer callbacks (executed on the owner thread)

    def _is_current(self, session_id: str) -> bool:
        return session_id == self.state_machine.session_id and self.state_machine.is_active

    def _handle_hypothesis(self, session_id: str, event: HypothesisEvent) -> None:
        if not self._is_current(session_id):
            logger.debug(f"Dropping hypothesis for inactive session {session_id}")
            return
        self.accumulator.on_hypothesis(event.text, event.is_final)

    def _handle_recognizer_error(self, session_id: str, error: Exception) -> None:
        logger.warning(f"Recognizer error in session {session_id}: {error}")
        if not self._is_current(session_id):
            return
        self.accumulator.finalize("recognizer_error")

    def _handle_recognizer_finished(self, session_id: str) -> None:
        if session_id != self.state_machine.session_id:
            logger.debug(f"Ignoring end of stale recognizer task for {session_id}")
            return
        if self.state_machine.is_active:
            logger.warning(f"Recognizer ended session {session_id} without a final result")
            self.accumulator.finalize("recognizer_ended")
        else:
            self.state_machine.release_recognizer()

    def _handle_final_timeout(self, session_id: str) -> None:
        if session_id != self.state_machine.session_id or self.state_machine.phase is not SessionPhase.AWAITING_FINAL:
            return
        logger.warning(f"No final result within {self.final_timeout_seconds}s, completing session {session_id}")
        self.accumulator.finalize("final_timeout")

    def _on_phase_change(self, previous: SessionPhase, new: SessionPhase, reason: str) -> None:
        if new is SessionPhase.RECORDING:
            self.idle_event.clear()
        elif new is SessionPhase.AWAITING_FINAL:
            try:
                self.recognizer.stop_audio()
            except Exception as e:
                logger.warning(f"Error stopping recognizer audio: {e}")
            self._arm_final_timer(self.state_machine.session_id)
        elif new is SessionPhase.COMPLETED:
            self._cancel_final_timer()
            self._release_recognizer()
        elif new is SessionPhase.IDLE:
            self.idle_event.set()

        self.publisher.publish_phase_change(previous, new, reason, {
            "session_id": self.state_machine.session_id,
            "external_request": self.state_machine.external_request,
            "session_ended": self.accumulator.state.session_ended,
        })

    def _release_recognizer(self) -> None:
        try:
            self.recognizer.cancel()
        except Exception as e:
            logger.warning(f"Error cancelling recognizer: {e}")
        if self.recognizer.is_active:
            logger.info("Recognizer task still running, new sessions blocked until it ends")
        else:
            self.state_machine.release_recognizer()

    def _arm_final_timer(self, session_id: str) -> None:
        self._cancel_final_timer()
        timer = threading.Timer(self.final_timeout_seconds, self._enqueue,
                                args=(self._handle_final_timeout, session_id))
        timer.daemon = True
        timer.start()
        self._final_timer = timer

    def _cancel_final_timer(self) -> None:
        if self._final_timer is not None:
            self._final_timer.cancel()
            self._final_timer = None

    def _publish_snapshot(self) -> None:
        """Notify observers of draft and history changes made by the last command."""
        try:
            transcript = self.accumulator.transcript
            if transcript != self._published_transcript:
                self._published_transcript = transcript
                self.publisher.publish_transcript(transcript)

            if self.store.revision != self._published_revision:
                self._published_revision = self.store.revision
                self.publisher.publish_history(self.store.entries, self.store.unread_count)
        except Exception as e:
            logger.error(f"Error publishing recorder state: {e}", exc_info=True)

    # History operations for the UI

    def mark_read(self, entry_id: str) -> bool:
        return self._submit(self.store.mark_read, entry_id).result()

    def mark_unread(self, entry_id: str) -> bool:
        return self._submit(self.store.mark_unread, entry_id).result()

    def toggle_read(self, entry_id: str) -> Optional[bool]:
        """Flip an entry between read and unread. Returns the new state."""
        return self._submit(self.store.toggle_read, entry_id).result()

    def mark_all_read(self) -> int:
        return self._submit(self.store.mark_all_read).result()

    def delete_entry(self, entry_id: str) -> bool:
        return self._submit(self.store.delete, entry_id).result()

    def delete_at(self, offsets: Iterable[int]) -> int:
        return self._submit(self.store.delete_at, list(offsets)).result()

    def edit_entry(self, entry_id: str, text: str) -> bool:
        return self._submit(self.store.update_text, entry_id, text).result()

    # Observable state

    @property
    def phase(self) -> SessionPhase:
        return self.state_machine.phase

    @property
    def transcript(self) -> str:
        return self.accumulator.transcript

    @property
    def is_recording(self) -> bool:
        return self.state_machine.is_recording

    @property
    def session_ended(self) -> bool:
        return self.accumulator.state.session_ended

    @property
    def history(self) -> List[TranscriptEntry]:
        return self.store.entries

    @property
    def unread_count(self) -> int:
        return self.store.unread_count

    @property
    def last_committed_entry_id(self) -> Optional[str]:
        return self.accumulator.last_committed_entry_id
