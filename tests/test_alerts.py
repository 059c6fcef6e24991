"""Tests for alert rules and the alert engine."""
import pytest
from datetime import timedelta, timezone
from unittest.mock import MagicMock

from alerts import rules
from alerts.engine import AlertEngine
from alerts.ledger import AlertLedger
from alerts.rules import AlertRule, ReadingContext, DEFAULT_RULES
from models.alerts import AlertInstance, AlertThresholds
from models.enums import ProbeKind, Severity
from conftest import StubMetricSource, T0, make_probe


def db_probe(success=True, ms=5):
    return make_probe("Database", success, ms if success else -1, kind=ProbeKind.DATABASE)


def ctx_with(values=None, probes=None, hour=14, **kw):
    local_now = T0.replace(hour=hour)
    return ReadingContext(probes if probes is not None else [db_probe()],
                          StubMetricSource(values, **kw), now=local_now, local_now=local_now)


@pytest.fixture
def engine(clock, quiet_metrics):
    return AlertEngine(ledger=AlertLedger(clock=clock), metric_source=quiet_metrics, clock=clock)


def ids(alerts):
    return [a.id for a in alerts]


class TestRuleCatalog:
    def test_sixteen_rules_in_order(self):
        assert ids(DEFAULT_RULES) == [
            "DB_DOWN", "API_DOWN", "SLOW_API", "API_DEGRADATION", "STUCK_CANCEL",
            "ERR_SPIKE", "NO_BOOKINGS", "QUEUE_ERR", "CANCEL_ERR_SPIKE", "WASTE_SPIKE",
            "BUYROOMS_DOWN", "PUSH_FAIL_SPIKE", "REVENUE_DROP", "PRICE_DRIFT_ANOMALY",
            "BO_ERR_SPIKE", "SO_FAILURES",
        ]

    def test_connectivity_rules_do_not_need_database(self):
        needs_db = {r.id for r in DEFAULT_RULES if r.requires_database}
        assert not needs_db & {"DB_DOWN", "API_DOWN", "SLOW_API", "API_DEGRADATION"}
        assert len(needs_db) == 12


class TestConnectivityRules:
    def test_database_down_from_probe(self):
        ctx = ReadingContext([db_probe(False)], StubMetricSource())
        alert = rules.database_down("DB_DOWN", ctx, AlertThresholds())
        assert alert.severity == Severity.CRITICAL
        assert alert.category == "Database"

    def test_database_ok_falls_back_to_metric_source(self):
        ctx = ReadingContext([make_probe()], StubMetricSource(available=False))
        assert ctx.database_ok is False
        ctx = ReadingContext([make_probe()], StubMetricSource(available=True))
        assert ctx.database_ok is True

    def test_no_source_means_database_down(self):
        assert ReadingContext([make_probe()]).database_ok is False

    def test_api_down_lists_targets(self):
        probes = [make_probe("Search", False), make_probe("Book", True),
                  make_probe("Cancel", False), db_probe(False)]
        alert = rules.api_down("API_DOWN", ReadingContext(probes), AlertThresholds())
        assert alert.message == "2 endpoints not responding: Search, Cancel"

    def test_api_down_quiet_when_healthy(self):
        assert rules.api_down("API_DOWN", ReadingContext([make_probe()]), AlertThresholds()) is None

    def test_slow_api_strictly_above_threshold(self):
        t = AlertThresholds(slow_api_threshold_ms=1000)
        assert rules.slow_api("SLOW_API", ReadingContext([make_probe(response_time_ms=1000)]), t) is None
        alert = rules.slow_api("SLOW_API", ReadingContext([make_probe("Search", response_time_ms=1001)]), t)
        assert "Search" in alert.message
        assert alert.category == "Performance"

    def test_degradation_ignores_failed_latencies(self):
        probes = [make_probe(response_time_ms=4000), make_probe("B", False, -1)]
        alert = rules.api_degradation("API_DEGRADATION", ReadingContext(probes), AlertThresholds())
        assert "4000ms" in alert.message

    def test_slow_database_ping_ignored(self):
        probes = [make_probe("API", response_time_ms=100), db_probe(ms=6000)]
        ctx = ReadingContext(probes)
        assert rules.slow_api("SLOW_API", ctx, AlertThresholds()) is None
        assert rules.api_degradation("API_DEGRADATION", ctx, AlertThresholds()) is None

    def test_degradation_quiet_without_samples(self):
        probes = [make_probe("B", False, -1)]
        assert rules.api_degradation("API_DEGRADATION", ReadingContext(probes), AlertThresholds()) is None


class TestBusinessRules:
    @pytest.mark.parametrize("rule, metric, field", [
        (rules.stuck_cancellations, "stuck_cancellations", "stuck_cancellation_threshold"),
        (rules.error_spike, "booking_errors_last_hour", "error_spike_threshold_per_hour"),
        (rules.queue_errors, "queue_errors_last_hour", "queue_error_threshold"),
        (rules.cancel_error_spike, "cancel_errors_last_hour", "cancel_error_spike_threshold"),
        (rules.waste_spike, "waste_rooms_24h", "waste_room_threshold"),
        (rules.push_failure_spike, "push_failures_last_hour", "push_failure_threshold"),
        (rules.price_drift_anomaly, "price_drift_rooms", "price_drift_anomaly_threshold"),
        (rules.backoffice_error_spike, "backoffice_errors_last_hour", "backoffice_error_threshold"),
    ])
    def test_count_rules_fire_above_threshold(self, rule, metric, field):
        t = AlertThresholds()
        limit = getattr(t, field)
        assert rule("X", ctx_with({metric: limit}), t) is None
        alert = rule("X", ctx_with({metric: limit + 1}), t)
        assert alert.id == "X"
        assert str(limit + 1) in alert.message
        assert f"threshold: {limit}" in alert.message

    def test_error_categories(self):
        t = AlertThresholds()
        assert rules.error_spike("E", ctx_with({"booking_errors_last_hour": 99}), t).category == "Errors"
        assert rules.queue_errors("Q", ctx_with({"queue_errors_last_hour": 99}), t).category == "Queue"
        assert rules.push_failure_spike("P", ctx_with({"push_failures_last_hour": 99}), t).category == "Push"

    @pytest.mark.parametrize("hour, fires", [(9, False), (10, True), (14, True), (18, True), (19, False)])
    def test_no_bookings_business_hours(self, hour, fires):
        alert = rules.no_bookings("NO_BOOKINGS", ctx_with({"bookings_today": 0}, hour=hour),
                                  AlertThresholds())
        assert (alert is not None) == fires
        if alert:
            assert alert.severity == Severity.INFO

    def test_no_bookings_quiet_with_bookings(self):
        assert rules.no_bookings("N", ctx_with({"bookings_today": 3}), AlertThresholds()) is None

    def test_buyrooms_down(self):
        t = AlertThresholds()
        alert = rules.buyrooms_down("B", ctx_with({"last_booking_at": T0 - timedelta(minutes=45)}), t)
        assert alert.severity == Severity.CRITICAL
        assert alert.category == "System"
        assert "45 minutes" in alert.message
        assert rules.buyrooms_down("B", ctx_with({"last_booking_at": T0 - timedelta(minutes=30)}), t) is None

    def test_buyrooms_quiet_without_bookings_on_record(self):
        assert rules.buyrooms_down("B", ctx_with({"last_booking_at": None}), AlertThresholds()) is None

    @pytest.mark.parametrize("hour, today, yesterday, fires", [
        (14, 200, 1000, True),
        (14, 300, 1000, False),
        (11, 0, 1000, False),
        (14, 0, 0, False),
    ])
    def test_revenue_drop(self, hour, today, yesterday, fires):
        ctx = ctx_with({"revenue_today": today, "revenue_yesterday": yesterday}, hour=hour)
        assert (rules.revenue_drop("R", ctx, AlertThresholds()) is not None) == fires

    def test_salesoffice_failures(self):
        t = AlertThresholds()
        assert rules.salesoffice_failures("S", ctx_with({"salesoffice_failures": 0}), t) is None
        alert = rules.salesoffice_failures("S", ctx_with({"salesoffice_failures": 2}), t)
        assert alert.message == "2 SalesOffice orders failed"

    def test_metric_read_once_per_context(self):
        ctx = ctx_with({"bookings_today": 1})
        ctx.metric("bookings_today")
        ctx.metric("bookings_today")
        assert ctx.metric_source.calls == ["bookings_today"]


class TestEngine:
    def test_healthy_cycle_is_quiet(self, engine):
        assert engine.evaluate([make_probe(), db_probe()]) == []

    def test_alerts_stamped_and_recorded(self, engine, clock):
        alerts = engine.evaluate([make_probe("API", False, -1), db_probe()])
        assert ids(alerts) == ["API_DOWN"]
        assert alerts[0].timestamp == clock.now
        assert ids(engine.get_history()) == ["API_DOWN"]

    def test_ids_stable_across_cycles(self, engine, clock):
        probes = [make_probe("API", False, -1), db_probe()]
        first = ids(engine.evaluate(probes))
        clock.advance(minutes=1)
        assert ids(engine.evaluate(probes)) == first

    def test_database_down_skips_business_rules(self, clock):
        metrics = StubMetricSource({"stuck_cancellations": 99})
        engine = AlertEngine(metric_source=metrics, clock=clock)
        alerts = engine.evaluate([make_probe(), db_probe(False)])
        assert ids(alerts) == ["DB_DOWN"]
        assert metrics.calls == []

    def test_failing_metric_skips_only_that_rule(self, clock):
        metrics = StubMetricSource({"bookings_today": 5, "last_booking_at": T0,
                                    "stuck_cancellations": 20},
                                   failing={"booking_errors_last_hour"})
        engine = AlertEngine(metric_source=metrics, clock=clock)
        alerts = engine.evaluate([make_probe(), db_probe()])
        assert ids(alerts) == ["STUCK_CANCEL"]
        assert "salesoffice_failures" in metrics.calls

    def test_crashing_rule_isolated(self, clock):
        def boom(alert_id, ctx, thresholds):
            raise ZeroDivisionError("bad rule")

        def always(alert_id, ctx, thresholds):
            return AlertInstance(id=alert_id, title="t", message="m", severity=Severity.WARNING)

        engine = AlertEngine(rules=[AlertRule("BOOM", boom), AlertRule("OK", always)], clock=clock)
        assert ids(engine.evaluate([])) == ["OK"]

    def test_slow_api_threshold_update(self, engine):
        probes = [make_probe("Search", response_time_ms=1500), db_probe()]
        assert "SLOW_API" not in ids(engine.evaluate(probes))

        updated, errors = engine.update_thresholds({"slow_api_threshold_ms": 1000})
        assert errors == []
        assert updated.slow_api_threshold_ms == 1000
        assert updated.error_spike_threshold_per_hour == 5
        assert "SLOW_API" in ids(engine.evaluate(probes))

    @pytest.mark.parametrize("bad", [
        {"slow_api_threshold_ms": -1},
        {"slow_api_threshold_ms": "fast"},
        {"slow_api_threshold_ms": True},
        {"slow_api_threshold_ms": 1.5},
        {"slow_api_threshold_ms": 10 ** 400},
        {"not_a_threshold": 3},
        ["slow_api_threshold_ms"],
    ])
    def test_invalid_threshold_update_rejected(self, engine, bad):
        before = engine.get_thresholds()
        current, errors = engine.update_thresholds(bad)
        assert errors
        assert current is before
        assert engine.get_thresholds() == AlertThresholds()

    def test_slow_database_does_not_fire_api_rules(self, engine):
        alerts = engine.evaluate([make_probe("API", response_time_ms=100), db_probe(ms=6000)])
        assert "SLOW_API" not in ids(alerts)
        assert "API_DEGRADATION" not in ids(alerts)

    def test_oversized_threshold_reported(self, engine):
        _, errors = engine.update_thresholds({"slow_api_threshold_ms": 10 ** 400})
        assert errors == ["slow_api_threshold_ms is out of range"]

    def test_partial_invalid_update_changes_nothing(self, engine):
        _, errors = engine.update_thresholds({"queue_error_threshold": 1, "waste_room_threshold": -5})
        assert errors == ["waste_room_threshold must be >= 0"]
        assert engine.get_thresholds().queue_error_threshold == 3

    def test_update_with_instance(self, engine):
        new = AlertThresholds(queue_error_threshold=0)
        assert engine.update_thresholds(new) == (new, [])

    def test_acknowledged_alert_still_returned(self, engine):
        engine.acknowledge("API_DOWN")
        alerts = engine.evaluate([make_probe("API", False, -1), db_probe()])
        assert alerts[0].is_acknowledged
        assert engine.active_alerts(alerts) == []

    def test_current_alerts_reflect_later_ack(self, engine):
        engine.evaluate([make_probe("API", False, -1), db_probe()])
        engine.acknowledge("API_DOWN")
        current = engine.current_alerts()
        assert current[0].is_acknowledged
        # history keeps the state at the time it was recorded
        assert engine.get_history()[0].is_acknowledged is False

    def test_local_timezone_drives_business_hours(self, clock):
        # 14:00 UTC is 08:00 in a UTC-6 zone, before business hours
        engine = AlertEngine(metric_source=StubMetricSource({"last_booking_at": T0}),
                             local_tz=timezone(timedelta(hours=-6)), clock=clock)
        assert "NO_BOOKINGS" not in ids(engine.evaluate([db_probe()]))
        engine.local_tz = None
        assert "NO_BOOKINGS" in ids(engine.evaluate([db_probe()]))

    def test_notifier_receives_alerts(self, clock, quiet_metrics):
        notifier = MagicMock()
        engine = AlertEngine(metric_source=quiet_metrics, notifier=notifier, clock=clock)
        alerts = engine.evaluate([make_probe("API", False, -1), db_probe()])
        notifier.notify_alerts.assert_called_once_with(alerts, clock.now)

    def test_notifier_failure_does_not_break_cycle(self, clock, quiet_metrics):
        notifier = MagicMock()
        notifier.notify_alerts.side_effect = RuntimeError("smtp gone")
        engine = AlertEngine(metric_source=quiet_metrics, notifier=notifier, clock=clock)
        assert ids(engine.evaluate([make_probe("API", False, -1), db_probe()])) == ["API_DOWN"]


class TestSummary:
    def test_empty(self, engine):
        assert engine.format_alert_summary([]) == "No active alerts - all systems operating normally."

    def test_grouped_by_severity(self, engine):
        alerts = [
            AlertInstance(id="A", title="Slow APIs", message="1 slow", severity=Severity.WARNING),
            AlertInstance(id="B", title="Database Down", message="gone", severity=Severity.CRITICAL,
                          is_acknowledged=True),
            AlertInstance(id="C", title="No Bookings Today", message="none", severity=Severity.INFO,
                          is_snoozed=True),
        ]
        text = engine.format_alert_summary(alerts)
        lines = text.splitlines()
        assert lines[0] == "Active alerts summary:"
        assert lines.index("Critical (1):") < lines.index("Warning (1):") < lines.index("Info (1):")
        assert "  - Database Down: gone" in lines
        assert "1 alerts acknowledged" in text
        assert "1 alerts snoozed" in text
