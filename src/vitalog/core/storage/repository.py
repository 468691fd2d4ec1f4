"""Reading repository: owner-scoped CRUD over the SQLite reading store.

Every statement conjoins ``owner_id = ?``: there is no method that can read
or mutate another owner's reading. Update and delete report a plain boolean
for "matched / no match"; the caller turns ``False`` into not-found. Ids that
are not well-formed keys simply never match.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager, suppress
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

from vitalog.core.errors import StorageUnavailableError, UnauthenticatedError
from vitalog.core.storage.database import ReadingDatabase
from vitalog.core.storage.encryption import FieldEncryptor
from vitalog.core.storage.models import Reading

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Numeric columns of the readings table, shared by all families
VALUE_COLUMNS = (
    "systolic",
    "diastolic",
    "pulse",
    "walk_duration",
    "peak_pulse",
    "glucose",
    "weight",
)


def _to_ms(instant: datetime) -> int:
    if instant.tzinfo is None:
        raise ValueError("Instants must be timezone-aware")
    return (instant - _EPOCH) // timedelta(milliseconds=1)


def _from_ms(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


def _number(value: float | None) -> float | int | None:
    if value is None:
        return None
    return int(value) if float(value).is_integer() else value


class ReadingRepository:
    """Owner-scoped CRUD repository for readings.

    Usage::

        db = ReadingDatabase(":memory:")
        db.initialize()
        repo = ReadingRepository(db, FieldEncryptor(key="..."))

        saved = repo.create_reading(reading)
        repo.list_readings("user_123", "blood_glucose", limit=20)
        repo.delete_reading(saved.id, "user_123")
    """

    def __init__(self, database: ReadingDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def parse_id(reading_id: Any) -> str | None:
        """Canonical form of a reading id, or None if it is not a valid key."""
        try:
            return str(uuid.UUID(str(reading_id)))
        except (ValueError, TypeError, AttributeError):
            return None

    @staticmethod
    def _require_owner(owner_id: str) -> None:
        if not owner_id:
            raise UnauthenticatedError("An owner id is required for every reading operation")

    @contextmanager
    def _storage(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Yield the connection; translate SQLite failures to StorageUnavailable."""
        conn = self._db.connection
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.exception("Reading store failure during %s", operation)
            with suppress(sqlite3.Error):
                conn.rollback()
            raise StorageUnavailableError(
                f"Reading store unavailable during {operation}"
            ) from exc

    @staticmethod
    def _value_params(values: dict[str, Any]) -> list[Any]:
        unknown = set(values) - set(VALUE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown reading fields: {sorted(unknown)}")
        return [values.get(column) for column in VALUE_COLUMNS]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_reading(self, reading: Reading) -> Reading:
        """Persist a new reading.

        Assigns ``id``, ``recorded_at`` and ``updated_at``; any values the
        caller put in those fields are ignored.

        Returns:
            The stored reading.
        """
        self._require_owner(reading.owner_id)
        rid = self._new_id()
        now = self._now()

        with self._storage("create") as conn:
            conn.execute(
                f"""INSERT INTO readings (
                    id, owner_id, family, subtype, captured_at,
                    {", ".join(VALUE_COLUMNS)},
                    notes_enc, recorded_at, updated_at
                ) VALUES ({", ".join("?" for _ in range(8 + len(VALUE_COLUMNS)))})""",
                (
                    rid,
                    reading.owner_id,
                    reading.family,
                    reading.subtype,
                    _to_ms(reading.captured_at),
                    *self._value_params(reading.values),
                    self._enc.encrypt(reading.notes),
                    _to_ms(now),
                    _to_ms(now),
                ),
            )
            conn.commit()

        logger.info("Created %s reading %s", reading.family, rid)
        return self.get_reading(rid, reading.owner_id)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_reading(
        self,
        reading_id: str,
        owner_id: str,
        *,
        family: str | None = None,
    ) -> Reading | None:
        """Fetch one reading owned by ``owner_id``; None when there is no match."""
        self._require_owner(owner_id)
        rid = self.parse_id(reading_id)
        if rid is None:
            return None

        query = "SELECT * FROM readings WHERE id = ? AND owner_id = ?"
        params: list[Any] = [rid, owner_id]
        if family:
            query += " AND family = ?"
            params.append(family)

        with self._storage("get") as conn:
            row = conn.execute(query, params).fetchone()
        return self._row_to_reading(row) if row is not None else None

    def list_readings(
        self,
        owner_id: str,
        family: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        subtype: str | None = None,
        limit: int | None = None,
        ascending: bool = False,
    ) -> list[Reading]:
        """Query one owner's readings for a family.

        Args:
            owner_id: Owner whose readings are returned.
            family: Metric family.
            since: Inclusive lower bound on ``captured_at``.
            until: Inclusive upper bound on ``captured_at``.
            subtype: Only readings of this subtype.
            limit: Maximum results (None for all).
            ascending: Oldest first instead of newest first.

        Returns:
            Readings ordered by ``captured_at``.
        """
        self._require_owner(owner_id)
        conditions = ["owner_id = ?", "family = ?"]
        params: list[Any] = [owner_id, family]

        if since is not None:
            conditions.append("captured_at >= ?")
            params.append(_to_ms(since))
        if until is not None:
            conditions.append("captured_at <= ?")
            params.append(_to_ms(until))
        if subtype:
            conditions.append("subtype = ?")
            params.append(subtype)

        direction = "ASC" if ascending else "DESC"
        query = (
            f"SELECT * FROM readings WHERE {' AND '.join(conditions)} "
            f"ORDER BY captured_at {direction}, recorded_at {direction}, id {direction} "
            "LIMIT ?"
        )
        params.append(limit if limit is not None and limit > 0 else -1)

        with self._storage("list") as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_reading(row) for row in rows]

    def count_readings(self, owner_id: str, family: str | None = None) -> int:
        """Number of readings the owner has, optionally for one family."""
        self._require_owner(owner_id)
        query = "SELECT COUNT(*) FROM readings WHERE owner_id = ?"
        params: list[Any] = [owner_id]
        if family:
            query += " AND family = ?"
            params.append(family)
        with self._storage("count") as conn:
            return conn.execute(query, params).fetchone()[0]

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update_reading(self, reading_id: str, owner_id: str, replacement: Reading) -> bool:
        """Replace every mutable field of one owned reading.

        ``subtype``, ``captured_at``, all numeric values (absent ones become
        NULL) and ``notes`` are overwritten; ``updated_at`` is refreshed.
        ``owner_id``, ``family`` and ``recorded_at`` never change.

        Returns:
            True if a reading with that id is owned by ``owner_id`` (and was
            updated), False otherwise.
        """
        self._require_owner(owner_id)
        rid = self.parse_id(reading_id)
        if rid is None:
            return False

        assignments = ", ".join(f"{column} = ?" for column in VALUE_COLUMNS)
        with self._storage("update") as conn:
            cursor = conn.execute(
                f"""UPDATE readings
                    SET subtype = ?, captured_at = ?, {assignments},
                        notes_enc = ?, updated_at = ?
                    WHERE id = ? AND owner_id = ? AND family = ?""",
                (
                    replacement.subtype,
                    _to_ms(replacement.captured_at),
                    *self._value_params(replacement.values),
                    self._enc.encrypt(replacement.notes),
                    _to_ms(self._now()),
                    rid,
                    owner_id,
                    replacement.family,
                ),
            )
            conn.commit()

        matched = cursor.rowcount > 0
        if matched:
            logger.info("Updated %s reading %s", replacement.family, rid)
        return matched

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_reading(
        self,
        reading_id: str,
        owner_id: str,
        *,
        family: str | None = None,
    ) -> bool:
        """Delete one owned reading.

        Returns:
            True if a reading was found and deleted, False otherwise.
        """
        self._require_owner(owner_id)
        rid = self.parse_id(reading_id)
        if rid is None:
            return False

        query = "DELETE FROM readings WHERE id = ? AND owner_id = ?"
        params: list[Any] = [rid, owner_id]
        if family:
            query += " AND family = ?"
            params.append(family)

        with self._storage("delete") as conn:
            cursor = conn.execute(query, params)
            conn.commit()

        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted reading %s", rid)
        return deleted

    def purge_before(
        self,
        owner_id: str,
        before: datetime,
        *,
        family: str | None = None,
    ) -> int:
        """Delete the owner's readings captured strictly before ``before``.

        Returns:
            Number of readings deleted.
        """
        self._require_owner(owner_id)
        query = "DELETE FROM readings WHERE owner_id = ? AND captured_at < ?"
        params: list[Any] = [owner_id, _to_ms(before)]
        if family:
            query += " AND family = ?"
            params.append(family)

        with self._storage("purge") as conn:
            count = conn.execute(query, params).rowcount
            conn.commit()

        logger.info("Purged %d readings captured before %s", count, before.isoformat())
        return count

    def delete_all_readings(self, owner_id: str, *, family: str | None = None) -> int:
        """Delete all of the owner's readings, optionally for one family.

        Returns:
            Number of readings deleted.
        """
        self._require_owner(owner_id)
        query = "DELETE FROM readings WHERE owner_id = ?"
        params: list[Any] = [owner_id]
        if family:
            query += " AND family = ?"
            params.append(family)

        with self._storage("delete_all") as conn:
            count = conn.execute(query, params).rowcount
            conn.commit()

        logger.warning("Deleted ALL %s readings: %d removed", family or "metric", count)
        return count

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_reading(self, row: Any) -> Reading:
        """Convert a database row to a Reading with decrypted notes."""
        values = {
            column: _number(row[column])
            for column in VALUE_COLUMNS
            if row[column] is not None
        }
        return Reading(
            id=row["id"],
            owner_id=row["owner_id"],
            family=row["family"],
            subtype=row["subtype"],
            captured_at=_from_ms(row["captured_at"]),
            values=values,
            notes=self._enc.decrypt(row["notes_enc"]),
            recorded_at=_from_ms(row["recorded_at"]),
            updated_at=_from_ms(row["updated_at"]),
        )
