"""In-memory ResourceStore, used by tests and dry runs."""

import dataclasses
import threading
from datetime import datetime, timezone

from dvm.core.record import ResourceRecord
from dvm.exceptions import ResourceNotFoundError


def _copy(record: ResourceRecord) -> ResourceRecord:
    return dataclasses.replace(record, attributes=dict(record.attributes))


class MemoryStore:
    """Dictionary-backed store. Returns copies so callers cannot mutate stored state."""

    def __init__(self, records: list[ResourceRecord] | None = None):
        self._lock = threading.Lock()
        self._records: dict[tuple[str, str], ResourceRecord] = {}
        for record in records or []:
            self.upsert(record)

    def get(self, kind: str, name: str) -> ResourceRecord:
        with self._lock:
            record = self._records.get((kind, name))
        if record is None:
            raise ResourceNotFoundError(f"{kind} '{name}' not found")
        return _copy(record)

    def list(self, kind: str | None = None) -> list[ResourceRecord]:
        with self._lock:
            records = [r for r in self._records.values() if kind is None or r.kind == kind]
        return [_copy(r) for r in sorted(records, key=lambda r: r.key)]

    def upsert(self, record: ResourceRecord) -> bool:
        now = datetime.now(timezone.utc)
        with self._lock:
            existing = self._records.get(record.key)
            stored = _copy(record)
            stored.created_at = existing.created_at if existing else (record.created_at or now)
            stored.updated_at = now
            self._records[record.key] = stored
        return existing is None

    def exists(self, kind: str, name: str) -> bool:
        with self._lock:
            return (kind, name) in self._records

    def delete(self, kind: str, name: str) -> None:
        with self._lock:
            if self._records.pop((kind, name), None) is None:
                raise ResourceNotFoundError(f"{kind} '{name}' not found")
