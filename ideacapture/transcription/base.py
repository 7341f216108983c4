"""Abstract base class for speech recognizers."""

from abc import ABC, abstractmethod
from typing import Callable
import logging

from ..models.transcription import HypothesisEvent

logger = logging.getLogger(__name__)

HypothesisCallback = Callable[[HypothesisEvent], None]
ErrorCallback = Callable[[Exception], None]
FinishedCallback = Callable[[], None]


class AbstractRecognizer(ABC):
    """Black-box producer of hypothesis events for one session at a time.

    Callbacks may be invoked from any thread. After `stop_audio()` the
    recognizer may still deliver one last (usually the most accurate)
    result before it finishes.
    """

    @abstractmethod
    def start(self,
              on_hypothesis: HypothesisCallback,
              on_error: ErrorCallback,
              on_finished: FinishedCallback) -> None:
        """Start a recognition task.

        Args:
            on_hypothesis: Called for every hypothesis, in emission order
            on_error: Called once if the task fails
            on_finished: Called once when the task has ended
        """
        pass

    @abstractmethod
    def stop_audio(self) -> None:
        """Stop accepting audio. A final result may still follow."""
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the recognition task. No callbacks are expected afterwards."""
        pass

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True while the recognition task is still running."""
        pass
