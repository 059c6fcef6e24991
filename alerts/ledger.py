"""Acknowledge/snooze state and bounded alert history."""
import logging
import threading
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from models.enums import Severity

logger = logging.getLogger("opsmonitor.alerts.ledger")

MAX_HISTORY = 2000


def _utcnow():
    return datetime.now(timezone.utc)


class AlertLedger:
    """Lifecycle state for alerts, keyed by stable alert id.

    Acknowledgements persist until cleared. Snoozes expire lazily: an entry
    whose deadline has passed simply stops suppressing.
    """

    def __init__(self, max_history=MAX_HISTORY, clock=_utcnow):
        self.clock = clock
        self._acknowledged = {}
        self._snoozed = {}
        self._history = deque(maxlen=max_history)
        self._lock = threading.Lock()

    def acknowledge(self, alert_id):
        if not alert_id:
            return False
        with self._lock:
            self._acknowledged[alert_id] = self.clock()
        logger.info(f"Alert {alert_id} acknowledged")
        return True

    def unacknowledge(self, alert_id):
        if not alert_id:
            return False
        with self._lock:
            self._acknowledged.pop(alert_id, None)
            self._snoozed.pop(alert_id, None)
        logger.info(f"Alert {alert_id} unacknowledged")
        return True

    def snooze(self, alert_id, minutes=60):
        """Suppress an alert for `minutes`, replacing any earlier snooze."""
        if not alert_id or minutes <= 0:
            return False
        try:
            until = self.clock() + timedelta(minutes=minutes)
        except OverflowError:
            logger.warning(f"Snooze for {alert_id} rejected: {minutes} minutes is out of range")
            return False
        with self._lock:
            self._snoozed[alert_id] = until
        logger.info(f"Alert {alert_id} snoozed for {minutes} minutes")
        return True

    def is_acknowledged(self, alert_id):
        with self._lock:
            return alert_id in self._acknowledged

    def is_snoozed(self, alert_id, now=None):
        now = now or self.clock()
        with self._lock:
            until = self._snoozed.get(alert_id)
        return until is not None and now < until

    def annotate(self, alerts, now=None):
        """Join ledger state onto alerts in place and return them."""
        now = now or self.clock()
        with self._lock:
            self._annotate_locked(alerts, now)
        return alerts

    def _annotate_locked(self, alerts, now):
        for alert in alerts:
            acked_at = self._acknowledged.get(alert.id)
            alert.is_acknowledged = acked_at is not None
            alert.acknowledged_at = acked_at
            until = self._snoozed.get(alert.id)
            alert.is_snoozed = until is not None and now < until
            alert.snoozed_until = until if alert.is_snoozed else None

    def annotate_and_record(self, alerts, now=None):
        """Annotate alerts and append copies to history under one lock."""
        now = now or self.clock()
        with self._lock:
            self._annotate_locked(alerts, now)
            self._history.extend(replace(a) for a in alerts)
        return alerts

    def history(self, limit=100, severity=None):
        """Most recent history entries first, optionally filtered by severity."""
        if severity:
            try:
                severity = Severity.parse(severity)
            except ValueError:
                return []
        with self._lock:
            entries = list(reversed(self._history))
        if severity:
            entries = [a for a in entries if a.severity == severity]
        entries.sort(key=lambda a: a.timestamp, reverse=True)
        return entries[:max(0, limit)]

    def prune_expired(self, now=None):
        """Drop snoozes whose deadline has passed. Returns how many were removed."""
        now = now or self.clock()
        with self._lock:
            expired = [k for k, until in self._snoozed.items() if until <= now]
            for k in expired:
                del self._snoozed[k]
        return len(expired)

    def snapshot(self):
        """Copy of current acknowledgements and snoozes."""
        with self._lock:
            return {
                "acknowledged": dict(self._acknowledged),
                "snoozed": dict(self._snoozed),
            }
