"""Read-only SQLite access to the booking database."""
import sqlite3
import logging
import threading
import time
from pathlib import Path

logger = logging.getLogger("opsmonitor.db")


class DatabaseUnavailable(Exception):
    """Raised when the booking database cannot be reached or queried."""


class Database:
    def __init__(self, db_path="data/bookings.db", timeout=10):
        self.db_path = db_path
        self.timeout = timeout
        self.conn = None
        self._lock = threading.Lock()

    def connect(self):
        if not Path(self.db_path).exists():
            raise DatabaseUnavailable(f"Database file not found: {self.db_path}")
        try:
            uri = f"file:{Path(self.db_path).as_posix()}?mode=ro"
            self.conn = sqlite3.connect(uri, uri=True, timeout=self.timeout,
                                        check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            raise DatabaseUnavailable(str(e)) from e
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _ensure_connected(self):
        if self.conn is None:
            self.connect()

    def ping(self):
        """Round-trip a trivial query. Returns latency in ms."""
        start = time.time()
        self.scalar("SELECT 1")
        return int((time.time() - start) * 1000)

    def scalar(self, sql, params=()):
        """First column of the first row, or None."""
        with self._lock:
            try:
                self._ensure_connected()
                row = self.conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                # Drop the handle so the next call reconnects
                self.close()
                raise DatabaseUnavailable(str(e)) from e
        if row is None:
            return None
        return row[0]
