"""Pytest configuration and fixtures for IdeaCapture tests."""

import pytest
import tempfile
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional

import yaml
from pubsub import pub

from ideacapture.config import IdeaCaptureConfig
from ideacapture.models.history import TranscriptEntry
from ideacapture.models.transcription import HypothesisEvent
from ideacapture.transcription.base import AbstractRecognizer


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_TIME = datetime(2025, 11, 6, 9, 0, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without threads")
    config.addinivalue_line("markers", "integration: tests running the owner thread")


def make_entry(entry_id: str, seconds: int, text: str = None, is_read: bool = False) -> TranscriptEntry:
    """Build an entry created `seconds` after BASE_TIME."""
    return TranscriptEntry(
        id=entry_id,
        created_at=BASE_TIME + timedelta(seconds=seconds),
        text=text if text is not None else f"note {entry_id}",
        is_read=is_read,
    )


class FakeRecognizer(AbstractRecognizer):
    """Recognizer driven by the test through emit()/fail()/finish()."""

    def __init__(self, stays_active_after_cancel: bool = False, fail_on_start: Optional[Exception] = None):
        self.stays_active_after_cancel = stays_active_after_cancel
        self.fail_on_start = fail_on_start
        self.active = False
        self.start_calls = 0
        self.stop_audio_calls = 0
        self.cancel_calls = 0
        self.on_hypothesis = None
        self.on_error = None
        self.on_finished = None

    @property
    def is_active(self) -> bool:
        return self.active

    def start(self, on_hypothesis, on_error, on_finished) -> None:
        self.start_calls += 1
        if self.fail_on_start is not None:
            raise self.fail_on_start
        self.on_hypothesis = on_hypothesis
        self.on_error = on_error
        self.on_finished = on_finished
        self.active = True

    def stop_audio(self) -> None:
        self.stop_audio_calls += 1

    def cancel(self) -> None:
        self.cancel_calls += 1
        if not self.stays_active_after_cancel:
            self.active = False

    def emit(self, text: str, is_final: bool = False) -> None:
        self.on_hypothesis(HypothesisEvent(text=text, is_final=is_final))

    def fail(self, error: Exception) -> None:
        self.on_error(error)

    def finish(self) -> None:
        self.active = False
        self.on_finished()


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def history_path(temp_data_dir):
    return str(Path(temp_data_dir) / "transcripts.json")


@pytest.fixture
def clock():
    """Clock returning BASE_TIME, then one second later on every call."""
    ticks: List[datetime] = []

    def now() -> datetime:
        value = BASE_TIME + timedelta(seconds=len(ticks))
        ticks.append(value)
        return value

    return now


@pytest.fixture(autouse=True)
def reset_pubsub():
    """Remove pubsub listeners registered by a test."""
    yield
    pub.unsubAll()


@pytest.fixture
def test_config():
    """Test configuration settings."""
    return {
        "storage": {
            "data_directory": "data",
            "history_file": "transcripts.json",
            "incremental_writes": False,
        },
        "session": {
            "persist_partials": True,
            "final_timeout_seconds": 0.3,
            "finish_keywords": ["finish", "終わり"],
        },
        "logging": {
            "level": "DEBUG",
            "file_path": "data/logs/test.log",
            "console_output": False,
        },
    }


@pytest.fixture
def config_file(temp_data_dir, test_config):
    """Write the test configuration to a YAML file."""
    path = Path(temp_data_dir) / "ideacapture.yaml"
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(test_config, f, allow_unicode=True)
    return str(path)


@pytest.fixture
def config(config_file):
    return IdeaCaptureConfig(config_file)


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer()
