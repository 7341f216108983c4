"""Durable transcript history stored as a single JSON array."""

import os
import json
import logging
import tempfile
import threading
from pathlib import Path
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from ..models.history import TranscriptEntry

logger = logging.getLogger(__name__)

# Bytes read from the end of the file to locate the closing bracket
TAIL_WINDOW = 64

LoadErrorCallback = Callable[[str, Exception], None]


class HistoryStore:
    """Ordered transcript history backed by a JSON file.

    In memory the entries are most-recent-first. On disk the array is
    chronological (oldest first), so every write reverses the order and
    every load sorts it back.

    Full rewrites go to a temporary file that atomically replaces the
    history file. With `incremental_writes` a new entry is appended in
    front of the closing bracket and an update of the most recent entry
    rewrites only the last array element. Any unexpected file layout falls
    back to a full rewrite. Incremental writes modify the file in place, so
    an interruption in the middle of one can leave it truncated.
    """

    def __init__(self,
                 path: str,
                 incremental_writes: bool = False,
                 on_load_error: Optional[LoadErrorCallback] = None):
        """Initialize history store.

        Args:
            path: Location of the history JSON file
            incremental_writes: Enable append / tail rewrite optimisation
            on_load_error: Notified when a corrupt history file was discarded
        """
        self.path = Path(path)
        self.incremental_writes = incremental_writes
        self.on_load_error = on_load_error

        self._entries: List[TranscriptEntry] = []
        self.lock = threading.RLock()
        self.revision = 0  # Bumped on every in-memory change

        # Incremental write bookkeeping, valid only after our own writes
        self._tail_offset: Optional[int] = None
        self._tail_entry_id: Optional[str] = None
        self._file_size: Optional[int] = None
        self._needs_full_rewrite = True

        logger.info(f"HistoryStore initialized with path: {self.path} (incremental={incremental_writes})")

    @property
    def entries(self) -> List[TranscriptEntry]:
        """Copy of the in-memory history, most recent first."""
        with self.lock:
            return list(self._entries)

    @property
    def unread_count(self) -> int:
        with self.lock:
            return sum(1 for entry in self._entries if not entry.is_read)

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def get(self, entry_id: str) -> Optional[TranscriptEntry]:
        with self.lock:
            index = self._index_of(entry_id)
            return None if index is None else self._entries[index]

    def load(self) -> List[TranscriptEntry]:
        """Load the history file into memory.

        A missing or blank file is an empty history. A file that cannot be
        decoded is discarded: the store starts empty, the error is logged and
        `on_load_error` is notified.

        Returns:
            Entries sorted by creation time, most recent first
        """
        with self.lock:
            entries: List[TranscriptEntry] = []
            load_error: Optional[Exception] = None

            if self.path.exists():
                try:
                    entries = self._decode(self.path.read_text(encoding='utf-8'))
                except (OSError, UnicodeDecodeError, ValueError) as e:
                    load_error = e
                    logger.error(f"History file {self.path} is unreadable, starting empty: {e}")
            else:
                logger.info(f"No history file at {self.path}, starting empty")

            self._entries = entries
            self.revision += 1
            self._reset_tail_tracking()
            self._needs_full_rewrite = load_error is not None

        if load_error is not None and self.on_load_error:
            try:
                self.on_load_error(str(self.path), load_error)
            except Exception as e:
                logger.warning(f"History load error callback failed: {e}")

        logger.info(f"Loaded {len(entries)} history entries")
        return list(entries)

    def _decode(self, raw: str) -> List[TranscriptEntry]:
        if not raw.strip():
            return []

        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("History file must contain a JSON array")

        # Later occurrences of an id win
        by_id = {}
        for item in data:
            entry = TranscriptEntry.from_dict(item)
            by_id[entry.id] = entry

        return sorted(by_id.values(), key=lambda e: e.created_at, reverse=True)

    def insert_or_update(self, entry: TranscriptEntry) -> bool:
        """Insert a new entry or update an existing one, then persist.

        An existing entry keeps its creation time; its text and read state
        are replaced and it moves to the front.

        Returns:
            True if the change reached the disk
        """
        if not entry.text or not entry.text.strip():
            raise ValueError("Transcript entry text must not be empty")

        with self.lock:
            index = self._index_of(entry.id)
            if index is None:
                stored = replace(entry)
                self._entries.insert(0, stored)
                hint = "append"
            else:
                existing = self._entries.pop(index)
                stored = replace(existing, text=entry.text, is_read=entry.is_read)
                self._entries.insert(0, stored)
                hint = "tail" if index == 0 else None

            self.revision += 1
            logger.debug(f"insert_or_update {stored.id} ({hint or 'reorder'}): {stored.text[:50]}")
            return self._persist_change(hint, stored)

    def update_text(self, entry_id: str, text: str) -> bool:
        """Apply a user edit to a committed entry.

        Returns:
            False if the entry does not exist
        """
        existing = self.get(entry_id)
        if existing is None:
            logger.warning(f"Cannot edit unknown history entry: {entry_id}")
            return False
        self.insert_or_update(replace(existing, text=text))
        return True

    def delete(self, entry_id: str) -> bool:
        """Remove an entry and persist.

        Returns:
            True if an entry was removed
        """
        with self.lock:
            index = self._index_of(entry_id)
            if index is None:
                return False
            del self._entries[index]
            self.revision += 1
            self.persist()
            return True

    def delete_at(self, offsets: Iterable[int]) -> int:
        """Remove entries by position in the most-recent-first list.

        Returns:
            Number of entries removed
        """
        with self.lock:
            valid = set()
            for offset in offsets:
                if 0 <= offset < len(self._entries):
                    valid.add(offset)
                else:
                    logger.warning(f"Ignoring out-of-range history offset: {offset}")
            if not valid:
                return 0

            self._entries = [e for i, e in enumerate(self._entries) if i not in valid]
            self.revision += 1
            self.persist()
            return len(valid)

    def mark_read(self, entry_id: str) -> bool:
        """Mark one entry as read. Persists only if it was unread."""
        return self.set_read_state(entry_id, True)

    def mark_unread(self, entry_id: str) -> bool:
        return self.set_read_state(entry_id, False)

    def set_read_state(self, entry_id: str, is_read: bool) -> bool:
        """Set the read state of one entry. Persists only on a change.

        Returns:
            True if the read state changed
        """
        with self.lock:
            index = self._index_of(entry_id)
            if index is None or self._entries[index].is_read == is_read:
                return False
            self._entries[index] = replace(self._entries[index], is_read=is_read)
            self.revision += 1
            self.persist()
            return True

    def toggle_read(self, entry_id: str) -> Optional[bool]:
        """Flip the read state of one entry.

        Returns:
            The new read state, or None if the entry does not exist
        """
        with self.lock:
            entry = self.get(entry_id)
            if entry is None:
                return None
            self.set_read_state(entry_id, not entry.is_read)
            return not entry.is_read

    def mark_all_read(self) -> int:
        """Mark every entry as read. Persists only if something changed.

        Returns:
            Number of entries whose read state changed
        """
        with self.lock:
            changed = 0
            for i, entry in enumerate(self._entries):
                if not entry.is_read:
                    self._entries[i] = replace(entry, is_read=True)
                    changed += 1
            if changed:
                self.revision += 1
                self.persist()
            return changed

    def persist(self) -> bool:
        """Atomically rewrite the whole history file.

        Failures are logged, never raised: memory stays the source of truth
        and the next persist retries.

        Returns:
            True if the file was written
        """
        with self.lock:
            ordered = list(reversed(self._entries))
            blocks = [self._encode_block(entry) for entry in ordered]

            if blocks:
                head = "[\n" + "".join(block + ",\n" for block in blocks[:-1])
                content = head + blocks[-1] + "\n]"
                tail_offset = len(head.encode('utf-8'))
            else:
                content = "[]"
                tail_offset = None
            data = content.encode('utf-8')

            tmp_path = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent))
                with os.fdopen(fd, 'wb') as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except OSError as e:
                logger.error(f"Error persisting history to {self.path}: {e}")
                if tmp_path is not None and os.path.exists(tmp_path):
                    try:
                        os.unlink(tmp_path)
                    except OSError as cleanup_error:
                        logger.warning(f"Could not remove temporary file {tmp_path}: {cleanup_error}")
                self._mark_write_failed()
                return False

            self._tail_offset = tail_offset
            self._tail_entry_id = ordered[-1].id if ordered else None
            self._file_size = len(data)
            self._needs_full_rewrite = False
            logger.debug(f"History persisted: {len(ordered)} entries, {len(data)} bytes")
            return True

    def _persist_change(self, hint: Optional[str], entry: TranscriptEntry) -> bool:
        """Persist a single-entry change, incrementally when possible."""
        if self.incremental_writes and not self._needs_full_rewrite:
            try:
                if hint == "append" and self._append(entry):
                    return True
                if hint == "tail" and self._rewrite_tail(entry):
                    return True
            except OSError as e:
                logger.warning(f"Incremental history write failed, falling back to full rewrite: {e}")
                self._mark_write_failed()
        return self.persist()

    def _append(self, entry: TranscriptEntry) -> bool:
        """Append an element before the closing bracket.

        Returns:
            False if the file layout is not the expected non-empty array
        """
        try:
            size = self.path.stat().st_size
        except FileNotFoundError:
            return False
        if size == 0:
            return False

        with open(self.path, 'r+b') as f:
            window_start = max(0, size - TAIL_WINDOW)
            f.seek(window_start)
            stripped = f.read().rstrip()
            if not stripped.endswith(b"]"):
                logger.debug("History file does not end with ']', full rewrite")
                return False

            # Handles both "}]" and "}\n]"; an empty array falls back
            before = stripped[:-1].rstrip()
            if not before.endswith(b"}"):
                return False

            insert_at = window_start + len(before)
            payload = b",\n" + self._encode_block(entry).encode('utf-8') + b"\n]"
            f.seek(insert_at)
            f.write(payload)
            f.truncate()
            f.flush()
            os.fsync(f.fileno())

        self._tail_offset = insert_at + 2
        self._tail_entry_id = entry.id
        self._file_size = insert_at + len(payload)
        logger.debug(f"Appended history entry {entry.id}")
        return True

    def _rewrite_tail(self, entry: TranscriptEntry) -> bool:
        """Rewrite the last array element in place.

        Returns:
            False unless the file is unchanged since our last write and its
            last element is this entry
        """
        if self._tail_offset is None or self._tail_entry_id != entry.id:
            return False
        try:
            size = self.path.stat().st_size
        except FileNotFoundError:
            return False
        if size != self._file_size:
            logger.debug("History file changed since last write, full rewrite")
            return False

        payload = self._encode_block(entry).encode('utf-8') + b"\n]"
        with open(self.path, 'r+b') as f:
            f.seek(self._tail_offset)
            f.write(payload)
            f.truncate()
            f.flush()
            os.fsync(f.fileno())

        self._file_size = self._tail_offset + len(payload)
        logger.debug(f"Rewrote last history entry {entry.id}")
        return True

    @staticmethod
    def _encode_block(entry: TranscriptEntry) -> str:
        text = json.dumps(entry.to_dict(), indent=2, ensure_ascii=False)
        # Raw newlines in json.dumps output are always structural
        return "\n".join("  " + line for line in text.split("\n"))

    def _index_of(self, entry_id: str) -> Optional[int]:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return i
        return None

    def _reset_tail_tracking(self) -> None:
        self._tail_offset = None
        self._tail_entry_id = None
        self._file_size = None

    def _mark_write_failed(self) -> None:
        self._reset_tail_tracking()
        self._needs_full_rewrite = True
