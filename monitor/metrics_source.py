"""Business metric source: named read-only scalar queries for alert rules."""
import logging
from datetime import datetime, timezone

logger = logging.getLogger("opsmonitor.metrics")

# SQLite flavoured versions of the booking platform queries.
# Timestamps are stored as ISO-8601 text in UTC.
DEFAULT_QUERIES = {
    "stuck_cancellations": (
        "SELECT COUNT(*) FROM MED_Book "
        "WHERE IsActive = 1 AND CancellationTo < datetime('now')"
    ),
    "booking_errors_last_hour": (
        "SELECT COUNT(*) FROM MED_BookError "
        "WHERE DateInsert >= datetime('now', '-1 hour')"
    ),
    "bookings_today": (
        "SELECT COUNT(*) FROM MED_Book WHERE DateInsert >= date('now')"
    ),
    "queue_errors_last_hour": (
        "SELECT COUNT(*) FROM Queue "
        "WHERE Status = 'Error' AND CreatedOn >= datetime('now', '-1 hour')"
    ),
    "cancel_errors_last_hour": (
        "SELECT COUNT(*) FROM MED_CancelBookError "
        "WHERE DateInsert >= datetime('now', '-1 hour')"
    ),
    "waste_rooms_24h": (
        "SELECT COUNT(*) FROM MED_Book WHERE IsActive = 1 "
        "AND (IsSold = 0 OR IsSold IS NULL) "
        "AND CancellationTo >= datetime('now') "
        "AND CancellationTo <= datetime('now', '+24 hours')"
    ),
    "last_booking_at": "SELECT MAX(DateInsert) FROM MED_Book",
    "push_failures_last_hour": (
        "SELECT COUNT(*) FROM Med_HotelsToPush WHERE IsActive = 0 "
        "AND Error IS NOT NULL AND Error != 'CancelBook' "
        "AND DateInsert >= datetime('now', '-1 hour')"
    ),
    "revenue_today": (
        "SELECT IFNULL(SUM(AmountAfterTax), 0) FROM Med_Reservation "
        "WHERE DateInsert >= date('now')"
    ),
    "revenue_yesterday": (
        "SELECT IFNULL(SUM(AmountAfterTax), 0) FROM Med_Reservation "
        "WHERE DateInsert >= date('now', '-1 day') AND DateInsert < date('now')"
    ),
    "price_drift_rooms": (
        "SELECT COUNT(*) FROM MED_Book WHERE IsActive = 1 "
        "AND LastPrice IS NOT NULL AND Price IS NOT NULL "
        "AND ABS(LastPrice - Price) > Price * 0.2"
    ),
    "backoffice_errors_last_hour": (
        "SELECT COUNT(*) FROM BackOfficeOptLog "
        "WHERE DateCreate >= datetime('now', '-1 hour')"
    ),
    "salesoffice_failures": (
        "SELECT COUNT(*) FROM SalesOfficeOrders WHERE IsActive = 1 "
        "AND (WebJobStatus LIKE 'Failed%' OR WebJobStatus = 'DateRangeError')"
    ),
}

# Metrics that come back as timestamps rather than numbers
TIMESTAMP_METRICS = {"last_booking_at"}


def _parse_timestamp(value):
    if value is None or isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt is not None and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class BusinessMetricSource:
    """Runs named scalar queries against the booking database.

    Errors are not swallowed here: the alert engine treats a raising metric as
    unavailable and skips the rule that needed it.
    """

    def __init__(self, db, queries=None):
        self.db = db
        self.queries = dict(DEFAULT_QUERIES)
        self.queries.update(queries or {})

    def is_available(self):
        try:
            self.db.ping()
            return True
        except Exception as e:
            logger.warning(f"Database unreachable: {e}")
            return False

    def get(self, name):
        sql = self.queries.get(name)
        if sql is None:
            raise KeyError(f"Unknown metric: {name}")
        value = self.db.scalar(sql)
        if name in TIMESTAMP_METRICS:
            return _parse_timestamp(value)
        return value if value is not None else 0
