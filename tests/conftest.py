"""Shared test fixtures for Vitalog tests."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("VITALOG_OWNER_ID", "")
    monkeypatch.setenv("REQUIRE_UTC_OFFSET", "false")
    monkeypatch.setenv("DB_PATH", str(tmp_path / "readings.db"))
    # A stray .env in the working directory must not leak into tests
    monkeypatch.chdir(tmp_path)

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from vitalog.core.storage.models import Reading  # noqa: E402

OWNER_A = "user_alice"
OWNER_B = "user_bob"


def _build_reading(
    family: str = "blood_glucose",
    *,
    owner_id: str = OWNER_A,
    subtype: str | None = "fasting",
    captured_at: datetime | None = None,
    notes: str = "",
    **values,
) -> Reading:
    """Create a test reading with sensible defaults per family."""
    if not values:
        values = {
            "blood_pressure": {"systolic": 118, "diastolic": 76, "pulse": 70},
            "blood_glucose": {"glucose": 95},
            "weight": {"weight": 72.5},
        }[family]
    if family == "weight":
        subtype = None
    return Reading(
        owner_id=owner_id,
        family=family,
        subtype=subtype,
        captured_at=captured_at or datetime(2025, 3, 10, 13, 30, tzinfo=timezone.utc),
        values=dict(values),
        notes=notes,
    )


@pytest.fixture
def make_reading():
    """Factory for unsaved readings: ``make_reading("weight", weight=80.0)``."""
    return _build_reading


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def reading_db():
    """Create an in-memory ReadingDatabase for testing."""
    from vitalog.core.storage.database import ReadingDatabase

    db = ReadingDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from vitalog.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def reading_repository(reading_db, field_encryptor):
    """Create a ReadingRepository backed by in-memory SQLite."""
    from vitalog.core.storage.repository import ReadingRepository

    return ReadingRepository(reading_db, field_encryptor)


@pytest.fixture
def audit_logger(reading_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from vitalog.core.audit.logger import AuditLogger

    return AuditLogger(reading_db)


@pytest.fixture
def reading_service(reading_repository, audit_logger):
    """ReadingService for OWNER_A with auditing."""
    from vitalog.core.identity import StaticIdentityProvider
    from vitalog.domains.metrics.service import ReadingService

    return ReadingService(
        reading_repository, StaticIdentityProvider(OWNER_A), audit_logger=audit_logger
    )
