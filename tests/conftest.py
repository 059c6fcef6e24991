"""Shared test fixtures."""
import os
import sys
import sqlite3
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta, timezone
from models.database import Database
from models.enums import ProbeKind
from models.sla import ProbeResult

T0 = datetime(2026, 3, 2, 14, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic time-based tests."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


def make_probe(target="API", success=True, response_time_ms=120, kind=ProbeKind.HTTP,
               status_code=None):
    return ProbeResult(
        target=target,
        success=success,
        response_time_ms=response_time_ms,
        status_code=status_code if status_code is not None else (200 if success else 503),
        error_message=None if success else "503: Service Unavailable",
        kind=kind,
    )


class StubMetricSource:
    """In-memory stand-in for BusinessMetricSource."""

    def __init__(self, values=None, available=True, failing=()):
        self.values = dict(values or {})
        self.available = available
        self.failing = set(failing)
        self.calls = []

    def is_available(self):
        return self.available

    def get(self, name):
        self.calls.append(name)
        if name in self.failing:
            raise RuntimeError(f"query for {name} timed out")
        return self.values.get(name, 0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def quiet_metrics():
    """Metric source where no business rule fires."""
    return StubMetricSource({"bookings_today": 12, "last_booking_at": T0})


@pytest.fixture
def booking_db(tmp_path):
    """A small booking database with the tables the metric queries read."""
    path = tmp_path / "bookings.db"
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE MED_Book (
            id INTEGER PRIMARY KEY, IsActive INTEGER, IsSold INTEGER,
            CancellationTo TEXT, DateInsert TEXT, Price REAL, LastPrice REAL
        );
        CREATE TABLE MED_BookError (id INTEGER PRIMARY KEY, DateInsert TEXT);
        CREATE TABLE MED_CancelBookError (id INTEGER PRIMARY KEY, DateInsert TEXT);
        CREATE TABLE Queue (id INTEGER PRIMARY KEY, Status TEXT, CreatedOn TEXT);
        CREATE TABLE Med_HotelsToPush (id INTEGER PRIMARY KEY, IsActive INTEGER, Error TEXT, DateInsert TEXT);
        CREATE TABLE Med_Reservation (id INTEGER PRIMARY KEY, AmountAfterTax REAL, DateInsert TEXT);
        CREATE TABLE BackOfficeOptLog (id INTEGER PRIMARY KEY, DateCreate TEXT);
        CREATE TABLE SalesOfficeOrders (id INTEGER PRIMARY KEY, IsActive INTEGER, WebJobStatus TEXT);
    """)
    conn.executemany(
        "INSERT INTO MED_Book (IsActive, IsSold, CancellationTo, DateInsert, Price, LastPrice) "
        "VALUES (?, ?, datetime('now', ?), datetime('now', ?), ?, ?)",
        [
            (1, 0, "-2 hours", "-3 hours", 100.0, 100.0),   # stuck
            (1, 0, "+5 hours", "-10 minutes", 100.0, 150.0),  # expiring soon, drifted
            (0, 1, "+48 hours", "-1 days", 80.0, 82.0),
        ],
    )
    conn.executemany(
        "INSERT INTO MED_BookError (DateInsert) VALUES (datetime('now', ?))",
        [("-10 minutes",), ("-20 minutes",), ("-3 hours",)],
    )
    conn.executemany(
        "INSERT INTO SalesOfficeOrders (IsActive, WebJobStatus) VALUES (?, ?)",
        [(1, "Failed: timeout"), (1, "DateRangeError"), (1, "Done"), (0, "Failed")],
    )
    conn.commit()
    conn.close()

    db = Database(str(path))
    db.connect()
    yield db
    db.close()
