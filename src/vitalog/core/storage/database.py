"""SQLite database management for the Vitalog reading store.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from vitalog.core.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

# Instants are INTEGER UTC epoch milliseconds. Numeric fields stay plain
# numbers; only the free-text notes are encrypted.
_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS readings (
    id            TEXT PRIMARY KEY,
    owner_id      TEXT NOT NULL,
    family        TEXT NOT NULL,
    subtype       TEXT,
    captured_at   INTEGER NOT NULL,

    -- blood pressure
    systolic      REAL,
    diastolic     REAL,
    pulse         REAL,
    walk_duration REAL,
    peak_pulse    REAL,
    -- blood glucose
    glucose       REAL,
    -- weight
    weight        REAL,

    notes_enc     TEXT NOT NULL DEFAULT '',
    recorded_at   INTEGER NOT NULL,
    updated_at    INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Every query conjoins owner + family and orders by captured_at
CREATE INDEX IF NOT EXISTS idx_readings_owner_family_ts
    ON readings(owner_id, family, captured_at);
CREATE INDEX IF NOT EXISTS idx_readings_owner_subtype
    ON readings(owner_id, family, subtype);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (PHI-free mutation trail)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id              TEXT PRIMARY KEY,
    timestamp       TEXT NOT NULL DEFAULT (datetime('now')),
    action          TEXT NOT NULL,
    tool_name       TEXT,
    tool_input_hash TEXT,
    owner_hash      TEXT,
    family          TEXT,
    reading_id      TEXT,
    duration_ms     REAL,
    status          TEXT NOT NULL DEFAULT 'success',
    error_type      TEXT,
    metadata_json   TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_owner     ON audit_log(owner_hash);
"""


class DatabaseError(StorageUnavailableError):
    """Raised when the database is not usable."""


class ReadingDatabase:
    """SQLite database manager for the reading store.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing.

    Usage::

        db = ReadingDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Open the connection and ensure the schema exists.

        Idempotent: safe to call multiple times.

        Raises:
            DatabaseError: If the file cannot be opened or migrated.
        """
        if self._conn is not None:
            return

        try:
            if self._db_path != ":memory:":
                db_file = Path(self._db_path).expanduser()
                db_file.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(db_file))
            else:
                self._conn = sqlite3.connect(":memory:")

            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._ensure_schema()
        except (sqlite3.Error, OSError) as exc:
            self.close()
            raise DatabaseError(f"Cannot open reading store: {exc}") from exc

        logger.info("Reading database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        # V1: readings (CREATE IF NOT EXISTS is idempotent)
        conn.executescript(_SCHEMA_V1)

        current_version = self.get_schema_version()

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Reading database closed")

    def __enter__(self) -> ReadingDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
