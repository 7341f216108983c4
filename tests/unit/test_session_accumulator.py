"""Unit tests for SessionAccumulator class."""

import itertools
import pytest
from pathlib import Path
from unittest.mock import patch

from ideacapture.models.session import SessionPhase
from ideacapture.services.accumulator import SessionAccumulator
from ideacapture.services.state_machine import SessionStateMachine
from ideacapture.storage.history_store import HistoryStore
from ideacapture.transcription.keywords import FinishKeywordDetector
from conftest import BASE_TIME


@pytest.fixture
def store(history_path):
    store = HistoryStore(history_path)
    store.load()
    return store


@pytest.fixture
def machine():
    return SessionStateMachine()


@pytest.fixture
def make_accumulator(store, machine, clock):
    counter = itertools.count(1)

    def factory(**kwargs):
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("id_factory", lambda: f"entry-{next(counter)}")
        return SessionAccumulator(store, machine, **kwargs)

    return factory


@pytest.fixture
def accumulator(make_accumulator):
    return make_accumulator(is_session_end_signal=FinishKeywordDetector(["finish", "終わり"]))


@pytest.mark.unit
class TestSessionAccumulator:
    """Test cases for SessionAccumulator class."""

    def test_ignores_hypothesis_without_session(self, accumulator, store):
        assert accumulator.on_hypothesis("hello", True) is None
        assert len(store) == 0

    def test_concrete_two_segment_session(self, accumulator, store, machine):
        """Test a final result before and after the stop request."""
        machine.start()

        accumulator.on_hypothesis("最初のメモ", True, False)

        assert [e.text for e in store.entries] == ["最初のメモ"]
        assert machine.is_recording

        machine.request_stop()
        accumulator.on_hypothesis("最終メモ", True, False)

        assert len(store) == 2
        assert store.entries[0].text == "最終メモ"
        assert not machine.is_recording
        assert machine.phase is SessionPhase.IDLE

    def test_partials_then_final_create_one_entry(self, accumulator, store, machine):
        """Test that a segment is committed as a single entry."""
        machine.start()

        for text in ["buy", "buy milk", "buy milk and", "buy milk and eggs"]:
            accumulator.on_hypothesis(text, False)
        entry = accumulator.on_hypothesis("buy milk and eggs", True)

        assert len(store) == 1
        assert store.entries[0].id == entry.id == "entry-1"
        assert store.entries[0].text == "buy milk and eggs"
        assert store.entries[0].created_at == BASE_TIME

    def test_partials_update_entry_in_place(self, accumulator, store, machine):
        machine.start()

        first = accumulator.on_hypothesis("hello", False)
        second = accumulator.on_hypothesis("hello world", False)

        assert first.id == second.id
        assert len(store) == 1
        assert store.get(first.id).text == "hello world"
        assert accumulator.transcript == "hello world"

    def test_partials_not_persisted_when_disabled(self, make_accumulator, store, machine):
        accumulator = make_accumulator(persist_partials=False)
        machine.start()

        accumulator.on_hypothesis("hello", False)
        accumulator.on_hypothesis("hello world", False)
        assert len(store) == 0

        accumulator.on_hypothesis("hello world", True)
        assert [e.text for e in store.entries] == ["hello world"]

    def test_stop_then_final_commits_once(self, accumulator, store, machine):
        """Test the awaiting-final path with no hypothesis while recording."""
        machine.start()
        machine.request_stop()

        accumulator.on_hypothesis("the final text", True)

        assert [e.text for e in store.entries] == ["the final text"]
        assert machine.phase is SessionPhase.IDLE

    def test_repeated_hypothesis_does_not_write(self, accumulator, store, machine):
        machine.start()
        accumulator.on_hypothesis("same", False)

        with patch.object(store, 'insert_or_update', wraps=store.insert_or_update) as mock_insert:
            assert accumulator.on_hypothesis("same", False) is None
            mock_insert.assert_not_called()

    def test_empty_final_writes_nothing(self, accumulator, store, machine):
        machine.start()
        machine.request_stop()

        assert accumulator.on_hypothesis("   ", True) is None

        assert len(store) == 0
        assert machine.phase is SessionPhase.IDLE

    def test_finish_keyword_requests_stop(self, accumulator, store, machine):
        """Test that a spoken finish keyword ends recording."""
        machine.start()

        accumulator.on_hypothesis("call the bank finish", False)

        assert machine.phase is SessionPhase.AWAITING_FINAL
        assert accumulator.state.session_ended is True
        assert store.entries[0].text == "call the bank finish"

        accumulator.on_hypothesis("call the bank finish", True)
        assert machine.phase is SessionPhase.IDLE
        assert len(store) == 1

    def test_explicit_finish_flag_overrides_detector(self, accumulator, machine):
        machine.start()

        accumulator.on_hypothesis("nothing special", False, should_finish_session=True)

        assert machine.phase is SessionPhase.AWAITING_FINAL

    def test_finish_keyword_while_awaiting_does_not_stop_again(self, accumulator, machine):
        machine.start()
        machine.request_stop()

        with patch.object(machine, 'request_stop') as mock_stop:
            accumulator.on_hypothesis("終わり", False)
            mock_stop.assert_not_called()

        assert accumulator.state.session_ended is True

    def test_finalize_merges_draft(self, accumulator, store, machine):
        """Test that finalize keeps text heard after the last hypothesis."""
        machine.start()
        accumulator.on_hypothesis("remember to", False)

        entry = accumulator.finalize("recognizer_error", draft_text="remember to water plants")

        assert entry.text == "remember to water plants"
        assert [e.text for e in store.entries] == ["remember to water plants"]
        assert machine.phase is SessionPhase.IDLE

    def test_finalize_without_changes_writes_nothing_new(self, make_accumulator, store, machine):
        accumulator = make_accumulator(persist_partials=False)
        machine.start()
        accumulator.on_hypothesis("done", True)

        assert accumulator.finalize("final_timeout") is None
        assert len(store) == 1
        assert machine.phase is SessionPhase.IDLE

    def test_finalize_commits_uncommitted_partials(self, make_accumulator, store, machine):
        accumulator = make_accumulator(persist_partials=False)
        machine.start()
        accumulator.on_hypothesis("unsaved thought", False)

        entry = accumulator.finalize("shutdown")

        assert entry is not None
        assert store.get(entry.id).text == "unsaved thought"

    def test_finalize_when_idle(self, accumulator):
        assert accumulator.finalize("shutdown") is None

    def test_state_reset_between_sessions(self, accumulator, store, machine):
        machine.start()
        accumulator.on_hypothesis("first session", False)
        accumulator.finalize("stop")
        machine.release_recognizer()

        machine.start()
        assert accumulator.transcript == ""
        assert accumulator.state.committed_entry_id is None

        accumulator.on_hypothesis("second session", True)

        assert [e.text for e in store.entries] == ["second session", "first session"]

    def test_last_committed_entry_id(self, accumulator, machine):
        machine.start()
        entry = accumulator.on_hypothesis("note", True)

        assert accumulator.last_committed_entry_id == entry.id

    def test_user_edit_during_session_keeps_identity(self, accumulator, store, machine):
        machine.start()
        entry = accumulator.on_hypothesis("draft", False)
        store.mark_read(entry.id)

        accumulator.on_hypothesis("draft text", False)

        updated = store.get(entry.id)
        assert updated.created_at == entry.created_at
        assert updated.is_read is True

    def test_persist_failure_keeps_session_running(self, accumulator, store, machine, history_path):
        machine.start()

        with patch('ideacapture.storage.history_store.os.replace', side_effect=OSError("read-only")):
            entry = accumulator.on_hypothesis("kept in memory", True)

        assert store.get(entry.id).text == "kept in memory"
        assert machine.is_recording
        assert not Path(history_path).exists()
