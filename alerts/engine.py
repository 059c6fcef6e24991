"""Alert evaluation engine."""
import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone

from alerts.ledger import AlertLedger
from alerts.rules import DEFAULT_RULES, ReadingContext
from models.alerts import AlertThresholds
from models.enums import Severity

logger = logging.getLogger("opsmonitor.alerts.engine")


def _utcnow():
    return datetime.now(timezone.utc)


class AlertEngine:
    def __init__(self, ledger=None, metric_source=None, notifier=None, rules=None,
                 thresholds=None, local_tz=None, clock=_utcnow):
        self.ledger = ledger or AlertLedger(clock=clock)
        self.metric_source = metric_source
        self.notifier = notifier
        self.rules = list(rules or DEFAULT_RULES)
        self.local_tz = local_tz
        self.clock = clock
        self._thresholds = thresholds or AlertThresholds()
        self._last_alerts = []
        self._lock = threading.Lock()

    # ── Thresholds ───────────────────────────────────────

    @property
    def thresholds(self):
        with self._lock:
            return self._thresholds

    def get_thresholds(self):
        return self.thresholds

    def update_thresholds(self, new_thresholds):
        """Swap in new thresholds from an AlertThresholds or a (partial) dict.

        Returns (thresholds, errors). On any error the current thresholds stay
        in effect and are returned unchanged.
        """
        if not isinstance(new_thresholds, AlertThresholds):
            try:
                new_thresholds = AlertThresholds.from_dict(new_thresholds, base=self.thresholds)
            except ValueError as e:
                logger.warning(f"Rejected threshold update: {e}")
                return self.thresholds, str(e).split("; ")
        with self._lock:
            self._thresholds = new_thresholds
        logger.info("Alert thresholds updated")
        return new_thresholds, []

    # ── Evaluation ───────────────────────────────────────

    def _context(self, probe_results, now):
        local_now = now.astimezone(self.local_tz) if self.local_tz else now
        return ReadingContext(probe_results, self.metric_source, now=now, local_now=local_now)

    def run_rules(self, ctx, thresholds):
        """Run every rule in order. A failing rule is logged and skipped."""
        alerts = []
        database_ok = None
        for rule in self.rules:
            try:
                if rule.requires_database:
                    if database_ok is None:
                        database_ok = ctx.database_ok
                    if not database_ok:
                        continue
                alert = rule.evaluate(ctx, thresholds)
            except Exception as e:
                logger.warning(f"Rule {rule.id} skipped: {e}")
                continue
            if alert is not None:
                alerts.append(alert)
        return alerts

    def evaluate(self, probe_results, now=None):
        """Evaluate all rules for one cycle.

        Every produced alert is annotated from the ledger, appended to history
        and returned, suppressed or not. Qualifying alerts are handed to the
        notifier without waiting for delivery.
        """
        now = now or self.clock()
        thresholds = self.thresholds
        ctx = self._context(probe_results, now)

        alerts = self.run_rules(ctx, thresholds)
        for alert in alerts:
            alert.timestamp = now
        self.ledger.annotate_and_record(alerts, now)

        with self._lock:
            self._last_alerts = [replace(a) for a in alerts]

        if alerts:
            logger.info(f"{len(alerts)} alerts: {', '.join(a.id for a in alerts)}")
        if self.notifier is not None:
            try:
                self.notifier.notify_alerts(alerts, now)
            except Exception as e:
                logger.warning(f"Notification trigger failed: {e}")
        return alerts

    def current_alerts(self, now=None):
        """Alerts from the latest cycle with the ledger state as of now."""
        with self._lock:
            alerts = [replace(a) for a in self._last_alerts]
        return self.ledger.annotate(alerts, now)

    @staticmethod
    def active_alerts(alerts):
        return [a for a in alerts if not a.is_suppressed]

    # ── Ledger passthroughs ──────────────────────────────

    def acknowledge(self, alert_id):
        return self.ledger.acknowledge(alert_id)

    def unacknowledge(self, alert_id):
        return self.ledger.unacknowledge(alert_id)

    def snooze(self, alert_id, minutes=60):
        return self.ledger.snooze(alert_id, minutes)

    def get_history(self, limit=100, severity=None):
        return self.ledger.history(limit, severity)

    # ── Presentation ─────────────────────────────────────

    def format_alert_summary(self, alerts):
        """Format alerts for display, grouped by severity."""
        if not alerts:
            return "No active alerts - all systems operating normally."
        lines = ["Active alerts summary:"]
        for severity, label in ((Severity.CRITICAL, "Critical"),
                                (Severity.WARNING, "Warning"),
                                (Severity.INFO, "Info")):
            group = [a for a in alerts if a.severity == severity]
            if not group:
                continue
            lines.append(f"{label} ({len(group)}):")
            lines.extend(f"  - {a.title}: {a.message}" for a in group)
        acked = sum(1 for a in alerts if a.is_acknowledged)
        snoozed = sum(1 for a in alerts if a.is_snoozed)
        if acked:
            lines.append(f"\n{acked} alerts acknowledged")
        if snoozed:
            lines.append(f"{snoozed} alerts snoozed")
        return "\n".join(lines)
