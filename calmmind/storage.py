from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, Protocol

from .models import Entry, Message, new_entry_id, utc_now

logger = logging.getLogger(__name__)

ENTRIES_KEY = "calmmind_entries_list"
CURRENT_ENTRY_KEY = "calmmind_current_entry"
DEFAULT_MAX_ENTRIES = 50


class KeyValueStorage(Protocol):
    """Synchronous string-keyed storage, the desktop stand-in for localStorage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """All keys live in one JSON object file, rewritten whole on every change."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def get_item(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if items.pop(key, None) is not None:
            self._write_all(items)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        payload = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Storage file {self._path} does not contain an object")
        return payload

    def _write_all(self, items: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling temp file first so a crash never leaves half a file
        fd, tmp_name = tempfile.mkstemp(prefix=".storage-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(items, handle, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


# Any of these coming out of the substrate or a malformed record means "no data"
_STORAGE_ERRORS = (OSError, ValueError, TypeError, KeyError, AttributeError)


class EntryStore:
    """
    Durable collection of conversation entries plus the current-entry pointer.

    Storage failures never reach the caller: reads degrade to empty results and
    writes become no-ops, both logged. There is no locking between processes,
    so two app instances sharing a data directory will overwrite each other.
    """

    def __init__(self, storage: KeyValueStorage, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._storage = storage
        self._max_entries = max(1, max_entries)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def create_entry(self, mood_score: int | None = None) -> Entry:
        now = utc_now()
        return Entry(id=new_entry_id(), created_at=now, updated_at=now, mood_score=mood_score)

    def list_all(self) -> list[Entry]:
        # Stored order is insert/replace order, not a sort on updated_at
        try:
            records = self._load_records()
        except _STORAGE_ERRORS:
            logger.warning("Failed to load entries; treating store as empty", exc_info=True)
            return []
        entries = []
        for record in records:
            try:
                entries.append(Entry.from_dict(record))
            except _STORAGE_ERRORS:
                logger.warning("Skipping malformed entry %r", record.get("id"), exc_info=True)
        return entries

    def get(self, entry_id: str) -> Entry | None:
        for entry in self.list_all():
            if entry.id == entry_id:
                return entry
        return None

    def save(self, entry: Entry) -> None:
        try:
            records = self._load_records()
            record = entry.to_dict()
            index = _find_index(records, entry.id)
            if index is not None:
                records[index] = record
            else:
                records.insert(0, record)
                if len(records) > self._max_entries:
                    evicted = records[self._max_entries :]
                    del records[self._max_entries :]
                    logger.info("Evicted %d oldest entries", len(evicted))
            self._write_records(records)
        except _STORAGE_ERRORS:
            logger.warning("Failed to save entry %s", entry.id, exc_info=True)

    def delete(self, entry_id: str) -> None:
        try:
            records = self._load_records()
            remaining = [record for record in records if record.get("id") != entry_id]
            if len(remaining) != len(records):
                self._write_records(remaining)
        except _STORAGE_ERRORS:
            logger.warning("Failed to delete entry %s", entry_id, exc_info=True)

    def update_messages(
        self,
        entry_id: str,
        messages: Iterable[Message],
        mood_score: int | None = None,
    ) -> Entry | None:
        entry = self.get(entry_id)
        if entry is None:
            return None
        entry.replace_messages(list(messages))
        if mood_score is not None:
            entry.mood_score = mood_score
        self.save(entry)
        return entry

    def set_mood(self, entry_id: str, mood_score: int) -> Entry | None:
        entry = self.get(entry_id)
        if entry is None:
            return None
        entry.mood_score = mood_score
        entry.updated_at = utc_now()
        self.save(entry)
        return entry

    def get_current_id(self) -> str | None:
        try:
            value = self._storage.get_item(CURRENT_ENTRY_KEY)
        except _STORAGE_ERRORS:
            logger.warning("Failed to read current entry id", exc_info=True)
            return None
        return value or None

    def set_current_id(self, entry_id: str) -> None:
        try:
            self._storage.set_item(CURRENT_ENTRY_KEY, entry_id)
        except _STORAGE_ERRORS:
            logger.warning("Failed to store current entry id %s", entry_id, exc_info=True)

    def export_entry(self, entry_id: str) -> str | None:
        entry = self.get(entry_id)
        if entry is None:
            return None
        return json.dumps(entry.to_dict(), ensure_ascii=False, indent=2)

    def export_to_file(self, entry_id: str, directory: Path) -> Path | None:
        entry = self.get(entry_id)
        if entry is None:
            return None
        path = directory / entry_filename(entry)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(entry.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError:
            logger.warning("Failed to export entry %s to %s", entry_id, path, exc_info=True)
            return None
        return path

    def _load_records(self) -> list[dict]:
        raw = self._storage.get_item(ENTRIES_KEY)
        if not raw:
            return []
        payload = json.loads(raw)
        if not isinstance(payload, list):
            raise ValueError("Entry collection is not a JSON array")
        return [record for record in payload if isinstance(record, dict)]

    def _write_records(self, records: list[dict]) -> None:
        self._storage.set_item(ENTRIES_KEY, json.dumps(records, ensure_ascii=False))


def _find_index(records: list[dict], entry_id: str) -> int | None:
    for index, record in enumerate(records):
        if record.get("id") == entry_id:
            return index
    return None


def sanitize_filename(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE).lower()[:50]


def entry_filename(entry: Entry) -> str:
    return f"{sanitize_filename(entry.title)}_{entry.id}.json"
