"""File-based JSON storage for plain structured records.

Every record is a dict keyed by its ``id``. The whole collection lives in a
single JSON list file and is rewritten on each change; there is no locking,
so concurrent writers to the same file must be serialised by the caller.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class JsonRecordStore:
    """Generic create/read/update/delete over ``<base_dir>/<name>.json``."""

    def __init__(self, base_dir: str | Path, name: str) -> None:
        self._base = Path(base_dir)
        self._base.mkdir(parents=True, exist_ok=True)
        self._path = self._base / f"{name}.json"

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable store file %s: %s", self._path, exc)
            return []
        return data if isinstance(data, list) else []

    def _write(self, records: list[dict]) -> None:
        self._path.write_text(json.dumps(records, indent=2, default=str), encoding="utf-8")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, record: dict[str, Any]) -> dict:
        """Persist a new record, assigning an ``id`` if it has none."""
        record = dict(record)
        if not record.get("id"):
            record["id"] = str(uuid.uuid4())
        records = self._read()
        records.append(record)
        self._write(records)
        return record

    def get(self, record_id: str) -> Optional[dict]:
        """Look up a record by ID. Returns None if not found."""
        for r in self._read():
            if r.get("id") == record_id:
                return r
        return None

    def query(self, predicate: Optional[Callable[[dict], bool]] = None) -> list[dict]:
        """Return all records in insertion order, optionally filtered."""
        records = self._read()
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return records

    def update(self, record_id: str, changes: dict[str, Any]) -> Optional[dict]:
        """Merge *changes* into a record. Returns the updated dict or None."""
        records = self._read()
        for r in records:
            if r.get("id") == record_id:
                r.update({k: v for k, v in changes.items() if k != "id"})
                self._write(records)
                return r
        return None

    def replace(self, record: dict[str, Any]) -> Optional[dict]:
        """Overwrite the stored record that has the same ``id``."""
        records = self._read()
        for i, r in enumerate(records):
            if r.get("id") == record["id"]:
                records[i] = dict(record)
                self._write(records)
                return records[i]
        return None

    def delete(self, record_id: str) -> bool:
        """Delete a record by ID. Returns True if deleted."""
        records = self._read()
        remaining = [r for r in records if r.get("id") != record_id]
        if len(remaining) < len(records):
            self._write(remaining)
            return True
        return False
