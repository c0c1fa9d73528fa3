"""SQLite-backed ResourceStore.

All kinds share one ``resources`` table keyed by ``(kind, name)``. Valid
attribute blobs are stored together as a JSON object in the ``attributes``
column; an unset attribute is simply missing from that object.

Key class: SqliteStore.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from dvm.core.record import NULL_BLOB, Blob, ResourceRecord
from dvm.exceptions import DvmError, ResourceNotFoundError

logger = logging.getLogger(__name__)

# Schema version, bump when the table layout changes
_SCHEMA_VERSION = 1

_SCHEMA = """
CREATE TABLE IF NOT EXISTS resources (
    kind        TEXT NOT NULL,
    name        TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    category    TEXT NOT NULL DEFAULT '',
    source_ref  TEXT NOT NULL DEFAULT '',
    builtin_ref TEXT NOT NULL DEFAULT '',
    tags        TEXT,
    attributes  TEXT NOT NULL DEFAULT '{}',
    enabled     INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    PRIMARY KEY (kind, name)
);

CREATE INDEX IF NOT EXISTS idx_resources_kind ON resources(kind);
"""

_COLUMNS = (
    "kind, name, description, category, source_ref, builtin_ref, "
    "tags, attributes, enabled, created_at, updated_at"
)


class SqliteStore:
    """Resource store persisted in a single SQLite database file."""

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """Open (or return cached) connection and ensure schema exists.

        Raises:
            DvmError: If the database cannot be opened
        """
        if self._conn is not None:
            return self._conn
        path = str(self.db_path)
        try:
            if path != ":memory:":
                Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
                path = str(Path(path).expanduser())
            self._conn = sqlite3.connect(path)
        except (OSError, sqlite3.Error) as e:
            raise DvmError(f"Cannot open database {self.db_path}: {e}")
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema(self._conn)
        return self._conn

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version < _SCHEMA_VERSION:
            logger.info("Initializing resource DB schema v%d -> v%d", version, _SCHEMA_VERSION)
            conn.executescript(_SCHEMA)
            conn.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
            conn.commit()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SqliteStore":
        self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_record(row: sqlite3.Row) -> ResourceRecord:
        try:
            encoded = json.loads(row["attributes"] or "{}")
        except ValueError:
            logger.warning("%s '%s': unreadable attributes column, treating as empty", row["kind"], row["name"])
            encoded = {}
        if not isinstance(encoded, dict):
            encoded = {}
        return ResourceRecord(
            kind=row["kind"],
            name=row["name"],
            description=row["description"],
            category=row["category"],
            source_ref=row["source_ref"],
            builtin_ref=row["builtin_ref"],
            tags=NULL_BLOB if row["tags"] is None else Blob.of(row["tags"]),
            attributes={key: Blob.of(str(value)) for key, value in encoded.items()},
            enabled=bool(row["enabled"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # ResourceStore interface
    # ------------------------------------------------------------------

    def get(self, kind: str, name: str) -> ResourceRecord:
        row = self.connect().execute(
            f"SELECT {_COLUMNS} FROM resources WHERE kind = ? AND name = ?", (kind, name)
        ).fetchone()
        if row is None:
            raise ResourceNotFoundError(f"{kind} '{name}' not found")
        return self._to_record(row)

    def list(self, kind: str | None = None) -> list[ResourceRecord]:
        conn = self.connect()
        if kind is None:
            rows = conn.execute(f"SELECT {_COLUMNS} FROM resources ORDER BY kind, name").fetchall()
        else:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM resources WHERE kind = ? ORDER BY name", (kind,)
            ).fetchall()
        return [self._to_record(row) for row in rows]

    def upsert(self, record: ResourceRecord) -> bool:
        conn = self.connect()
        now = datetime.now(timezone.utc).isoformat()
        created = not self.exists(record.kind, record.name)
        with conn:
            conn.execute(
                f"INSERT INTO resources ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(kind, name) DO UPDATE SET "
                "description = excluded.description, category = excluded.category, "
                "source_ref = excluded.source_ref, builtin_ref = excluded.builtin_ref, "
                "tags = excluded.tags, attributes = excluded.attributes, "
                "enabled = excluded.enabled, updated_at = excluded.updated_at",
                (
                    record.kind,
                    record.name,
                    record.description,
                    record.category,
                    record.source_ref,
                    record.builtin_ref,
                    record.tags.value if record.tags.valid else None,
                    json.dumps(record.valid_attributes()),
                    int(record.enabled),
                    (record.created_at.isoformat() if record.created_at else now),
                    now,
                ),
            )
        logger.debug("%s %s '%s'", "Created" if created else "Updated", record.kind, record.name)
        return created

    def exists(self, kind: str, name: str) -> bool:
        row = self.connect().execute(
            "SELECT 1 FROM resources WHERE kind = ? AND name = ?", (kind, name)
        ).fetchone()
        return row is not None

    def delete(self, kind: str, name: str) -> None:
        conn = self.connect()
        with conn:
            cursor = conn.execute("DELETE FROM resources WHERE kind = ? AND name = ?", (kind, name))
        if cursor.rowcount == 0:
            raise ResourceNotFoundError(f"{kind} '{name}' not found")
        logger.debug("Deleted %s '%s'", kind, name)
