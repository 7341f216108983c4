"""Recognizer that replays a recorded sequence of hypotheses.

Used by the `replay` command and by tests in place of an operating-system
speech recognizer.
"""

import json
import logging
import threading
from pathlib import Path
from typing import List, Optional

from ..models.transcription import HypothesisEvent, RecognizerError, ScriptStep
from .base import AbstractRecognizer, HypothesisCallback, ErrorCallback, FinishedCallback

logger = logging.getLogger(__name__)


def load_script(path: str) -> List[ScriptStep]:
    """Load a replay script from a JSON lines file.

    Each line is one of:
        {"text": "...", "is_final": false}
        {"error": "network timeout"}
        {"end": true}
    """
    steps = []
    with open(path, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{line_number}: invalid JSON: {e}")
            if not isinstance(data, dict):
                raise ValueError(f"{path}:{line_number}: expected an object")
            steps.append(ScriptStep(
                text=str(data.get("text", "")),
                is_final=bool(data.get("is_final", False)),
                error=data.get("error"),
                end=bool(data.get("end", False)),
            ))
    logger.info(f"Loaded {len(steps)} replay steps from {Path(path).name}")
    return steps


class ScriptedRecognizer(AbstractRecognizer):
    """Plays script steps on a background thread, one task at a time."""

    def __init__(self,
                 script: List[ScriptStep],
                 interval_seconds: float = 0.0,
                 final_on_stop: bool = True):
        """Initialize scripted recognizer.

        Args:
            script: Steps to replay for every started task
            interval_seconds: Delay between consecutive steps
            final_on_stop: Emit a final result with the best hypothesis when
                           audio is stopped, like a real recognizer does.
                           When False the task stays open until cancelled
        """
        self.script = list(script)
        self.interval_seconds = interval_seconds
        self.final_on_stop = final_on_stop

        self.played = threading.Event()  # Set once the whole script was emitted
        self._stop_event = threading.Event()
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._best_text = ""

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self,
              on_hypothesis: HypothesisCallback,
              on_error: ErrorCallback,
              on_finished: FinishedCallback) -> None:
        if self.is_active:
            raise RecognizerError("Recognition task already running")

        self.played.clear()
        self._stop_event.clear()
        self._cancelled.clear()
        self._best_text = ""

        self._thread = threading.Thread(
            target=self._play,
            args=(on_hypothesis, on_error, on_finished),
            name="scripted_recognizer",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"ScriptedRecognizer started with {len(self.script)} steps")

    def stop_audio(self) -> None:
        logger.debug("ScriptedRecognizer: audio stopped")
        self._stop_event.set()

    def cancel(self) -> None:
        self._cancelled.set()
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(2.0)
            if thread.is_alive():
                logger.warning("ScriptedRecognizer thread did not terminate cleanly")

    def _play(self,
              on_hypothesis: HypothesisCallback,
              on_error: ErrorCallback,
              on_finished: FinishedCallback) -> None:
        try:
            for step in self.script:
                if self._stop_event.is_set():
                    break
                if step.error is not None:
                    on_error(RecognizerError(step.error))
                    return
                if step.end:
                    logger.debug("ScriptedRecognizer: ending task without final result")
                    return

                # A final result closes the segment; the next one starts empty
                self._best_text = "" if step.is_final else step.text
                on_hypothesis(HypothesisEvent(text=step.text, is_final=step.is_final))
                if self.interval_seconds:
                    self._stop_event.wait(self.interval_seconds)

            self.played.set()
            # Keep the task open until audio is stopped or the task is cancelled
            self._stop_event.wait()
            if not self.final_on_stop:
                # No final result will come; stay open until cancelled
                self._cancelled.wait()

            if not self._cancelled.is_set() and self.final_on_stop and self._best_text:
                on_hypothesis(HypothesisEvent(text=self._best_text, is_final=True))
        finally:
            self.played.set()
            if not self._cancelled.is_set():
                on_finished()
