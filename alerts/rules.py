"""Alert rules.

Every rule is a pure function of the current readings and a threshold
snapshot. It returns an AlertInstance when its condition holds and None
otherwise. Rules keep no memory between cycles; acknowledgement and snooze
state is joined in later by alert id.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from models.alerts import AlertInstance
from models.enums import AlertCategory, ProbeKind, Severity

BUSINESS_HOURS = (10, 18)
REVENUE_CHECK_FROM_HOUR = 12
REVENUE_DROP_RATIO = 0.3


class ReadingContext:
    """Inputs for one evaluation cycle.

    `metric()` reads through to the business metric source once per name and
    lets errors propagate so the engine can skip the rule that asked.
    """

    def __init__(self, probe_results, metric_source=None, now=None, local_now=None,
                 database_ok=None):
        self.probe_results = list(probe_results or [])
        self.metric_source = metric_source
        self.now = now or datetime.now(timezone.utc)
        self.local_now = local_now or self.now
        self._database_ok = database_ok
        self._cache = {}

    @property
    def api_results(self):
        return [r for r in self.probe_results if r.kind != ProbeKind.DATABASE]

    @property
    def database_ok(self):
        if self._database_ok is None:
            db_results = [r for r in self.probe_results if r.kind == ProbeKind.DATABASE]
            if db_results:
                self._database_ok = all(r.success for r in db_results)
            elif self.metric_source is not None:
                self._database_ok = self.metric_source.is_available()
            else:
                self._database_ok = False
        return self._database_ok

    def metric(self, name):
        if name not in self._cache:
            if self.metric_source is None:
                raise LookupError(f"No metric source for {name}")
            self._cache[name] = self.metric_source.get(name)
        return self._cache[name]


@dataclass(frozen=True)
class AlertRule:
    id: str
    check: Callable
    requires_database: bool = False

    def evaluate(self, ctx, thresholds) -> Optional[AlertInstance]:
        return self.check(self.id, ctx, thresholds)


def _alert(alert_id, title, message, severity, category):
    return AlertInstance(id=alert_id, title=title, message=message,
                         severity=severity, category=category.value)


def _count_rule(metric, title, describe, threshold_field, severity=Severity.WARNING,
                category=AlertCategory.BUSINESS):
    """Rule firing when a counted metric exceeds a threshold field."""
    def check(alert_id, ctx, thresholds):
        count = ctx.metric(metric)
        limit = getattr(thresholds, threshold_field)
        if count is None or count <= limit:
            return None
        return _alert(alert_id, title, describe(count, limit), severity, category)
    return check


# ── Connectivity and performance ─────────────────────────

def database_down(alert_id, ctx, thresholds):
    if ctx.database_ok:
        return None
    return _alert(alert_id, "Database Down", "Cannot connect to the booking database",
                  Severity.CRITICAL, AlertCategory.DATABASE)


def api_down(alert_id, ctx, thresholds):
    unhealthy = [r.target for r in ctx.api_results if not r.success]
    if not unhealthy:
        return None
    return _alert(alert_id, "API Endpoints Down",
                  f"{len(unhealthy)} endpoints not responding: {', '.join(unhealthy)}",
                  Severity.CRITICAL, AlertCategory.API)


def slow_api(alert_id, ctx, thresholds):
    limit = thresholds.slow_api_threshold_ms
    slow = [r for r in ctx.api_results if r.response_time_ms > limit]
    if not slow:
        return None
    return _alert(alert_id, "Slow APIs",
                  f"{len(slow)} APIs with response time > {limit / 1000:g}s: "
                  f"{', '.join(r.target for r in slow)}",
                  Severity.WARNING, AlertCategory.PERFORMANCE)


def api_degradation(alert_id, ctx, thresholds):
    times = [r.response_time_ms for r in ctx.api_results if r.response_time_ms > 0]
    avg = sum(times) / len(times) if times else 0
    limit = thresholds.avg_response_degradation_ms
    if avg <= limit:
        return None
    return _alert(alert_id, "API Response Degradation",
                  f"Average response time {avg:.0f}ms is above {limit}ms",
                  Severity.WARNING, AlertCategory.PERFORMANCE)


# ── Business rules (need the database) ───────────────────

stuck_cancellations = _count_rule(
    "stuck_cancellations", "Stuck Cancellations",
    lambda n, t: f"{n} bookings stuck past their cancellation deadline (threshold: {t})",
    "stuck_cancellation_threshold",
)

error_spike = _count_rule(
    "booking_errors_last_hour", "Error Spike",
    lambda n, t: f"{n} booking errors in the last hour (threshold: {t})",
    "error_spike_threshold_per_hour", category=AlertCategory.ERRORS,
)


def no_bookings(alert_id, ctx, thresholds):
    start, end = BUSINESS_HOURS
    if not start <= ctx.local_now.hour <= end:
        return None
    if ctx.metric("bookings_today") != 0:
        return None
    return _alert(alert_id, "No Bookings Today", "No bookings received today",
                  Severity.INFO, AlertCategory.BUSINESS)


queue_errors = _count_rule(
    "queue_errors_last_hour", "Queue Errors",
    lambda n, t: f"{n} queue errors in the last hour (threshold: {t})",
    "queue_error_threshold", category=AlertCategory.QUEUE,
)

cancel_error_spike = _count_rule(
    "cancel_errors_last_hour", "Cancel Error Spike",
    lambda n, t: f"{n} cancellation errors in the last hour (threshold: {t})",
    "cancel_error_spike_threshold", category=AlertCategory.ERRORS,
)

waste_spike = _count_rule(
    "waste_rooms_24h", "Room Waste Urgent",
    lambda n, t: f"{n} unsold rooms expire within 24h (threshold: {t})",
    "waste_room_threshold",
)


def buyrooms_down(alert_id, ctx, thresholds):
    last_booking = ctx.metric("last_booking_at")
    if last_booking is None:
        return None
    minutes_since = (ctx.now - last_booking).total_seconds() / 60
    limit = thresholds.buyrooms_down_minutes
    if minutes_since <= limit:
        return None
    return _alert(alert_id, "BuyRooms Not Purchasing",
                  f"No rooms purchased for {minutes_since:.0f} minutes (threshold: {limit} minutes)",
                  Severity.CRITICAL, AlertCategory.SYSTEM)


push_failure_spike = _count_rule(
    "push_failures_last_hour", "Push Failures Spike",
    lambda n, t: f"{n} push failures in the last hour (threshold: {t})",
    "push_failure_threshold", category=AlertCategory.PUSH,
)


def revenue_drop(alert_id, ctx, thresholds):
    if ctx.local_now.hour < REVENUE_CHECK_FROM_HOUR:
        return None
    yesterday = ctx.metric("revenue_yesterday") or 0
    if yesterday <= 0:
        return None
    today = ctx.metric("revenue_today") or 0
    if today >= yesterday * REVENUE_DROP_RATIO:
        return None
    return _alert(alert_id, "Revenue Drop",
                  f"Revenue today ${today:,.0f}, a sharp drop from yesterday (${yesterday:,.0f})",
                  Severity.WARNING, AlertCategory.BUSINESS)


price_drift_anomaly = _count_rule(
    "price_drift_rooms", "Price Drift Anomaly",
    lambda n, t: f"{n} rooms with price change > 20% (threshold: {t})",
    "price_drift_anomaly_threshold",
)

backoffice_error_spike = _count_rule(
    "backoffice_errors_last_hour", "BackOffice Errors",
    lambda n, t: f"{n} BackOffice errors in the last hour (threshold: {t})",
    "backoffice_error_threshold", category=AlertCategory.ERRORS,
)


def salesoffice_failures(alert_id, ctx, thresholds):
    failed = ctx.metric("salesoffice_failures")
    if not failed:
        return None
    return _alert(alert_id, "SalesOffice Failures", f"{failed} SalesOffice orders failed",
                  Severity.WARNING, AlertCategory.BUSINESS)


DEFAULT_RULES = [
    AlertRule("DB_DOWN", database_down),
    AlertRule("API_DOWN", api_down),
    AlertRule("SLOW_API", slow_api),
    AlertRule("API_DEGRADATION", api_degradation),
    AlertRule("STUCK_CANCEL", stuck_cancellations, requires_database=True),
    AlertRule("ERR_SPIKE", error_spike, requires_database=True),
    AlertRule("NO_BOOKINGS", no_bookings, requires_database=True),
    AlertRule("QUEUE_ERR", queue_errors, requires_database=True),
    AlertRule("CANCEL_ERR_SPIKE", cancel_error_spike, requires_database=True),
    AlertRule("WASTE_SPIKE", waste_spike, requires_database=True),
    AlertRule("BUYROOMS_DOWN", buyrooms_down, requires_database=True),
    AlertRule("PUSH_FAIL_SPIKE", push_failure_spike, requires_database=True),
    AlertRule("REVENUE_DROP", revenue_drop, requires_database=True),
    AlertRule("PRICE_DRIFT_ANOMALY", price_drift_anomaly, requires_database=True),
    AlertRule("BO_ERR_SPIKE", backoffice_error_spike, requires_database=True),
    AlertRule("SO_FAILURES", salesoffice_failures, requires_database=True),
]
