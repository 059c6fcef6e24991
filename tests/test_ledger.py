"""Tests for acknowledge/snooze state and alert history."""
import pytest
from datetime import timedelta

from alerts.ledger import AlertLedger
from models.alerts import AlertInstance
from models.enums import Severity


@pytest.fixture
def ledger(clock):
    return AlertLedger(clock=clock)


def alert(alert_id="API_DOWN", severity=Severity.CRITICAL, timestamp=None):
    a = AlertInstance(id=alert_id, title=alert_id, message="m", severity=severity)
    if timestamp is not None:
        a.timestamp = timestamp
    return a


class TestAcknowledge:
    def test_ack_suppresses(self, ledger, clock):
        assert ledger.acknowledge("API_DOWN") is True
        [a] = ledger.annotate([alert()])
        assert a.is_acknowledged
        assert a.acknowledged_at == clock.now
        assert a.is_suppressed

    def test_ack_persists(self, ledger, clock):
        ledger.acknowledge("API_DOWN")
        clock.advance(days=3)
        ledger.prune_expired()
        assert ledger.is_acknowledged("API_DOWN")

    def test_ack_empty_id(self, ledger):
        assert ledger.acknowledge("") is False
        assert ledger.snapshot()["acknowledged"] == {}

    def test_other_alerts_unaffected(self, ledger):
        ledger.acknowledge("API_DOWN")
        [a] = ledger.annotate([alert("DB_DOWN")])
        assert not a.is_suppressed

    def test_unack_clears_ack_and_snooze(self, ledger):
        ledger.acknowledge("API_DOWN")
        ledger.snooze("API_DOWN", 30)
        assert ledger.unacknowledge("API_DOWN") is True
        [a] = ledger.annotate([alert()])
        assert not a.is_acknowledged
        assert not a.is_snoozed

    def test_unack_unknown_id_is_noop(self, ledger):
        assert ledger.unacknowledge("NEVER_SEEN") is True


class TestSnooze:
    def test_snooze_expires(self, ledger, clock):
        assert ledger.snooze("SLOW_API", minutes=1)
        [a] = ledger.annotate([alert("SLOW_API")])
        assert a.is_snoozed
        assert a.snoozed_until == clock.now + timedelta(minutes=1)

        clock.advance(minutes=2)
        [a] = ledger.annotate([alert("SLOW_API")])
        assert not a.is_snoozed
        assert a.snoozed_until is None
        assert not a.is_suppressed

    def test_snooze_deadline_is_exclusive(self, ledger, clock):
        ledger.snooze("SLOW_API", minutes=10)
        clock.advance(minutes=10)
        assert ledger.is_snoozed("SLOW_API") is False

    def test_resnooze_overwrites(self, ledger, clock):
        ledger.snooze("SLOW_API", minutes=60)
        ledger.snooze("SLOW_API", minutes=5)
        clock.advance(minutes=6)
        assert not ledger.is_snoozed("SLOW_API")

    @pytest.mark.parametrize("minutes", [0, -5])
    def test_non_positive_minutes_rejected(self, ledger, minutes):
        assert ledger.snooze("SLOW_API", minutes) is False
        assert not ledger.is_snoozed("SLOW_API")

    def test_out_of_range_minutes_rejected(self, ledger):
        assert ledger.snooze("SLOW_API", 10 ** 12) is False
        assert not ledger.is_snoozed("SLOW_API")

    def test_prune_expired(self, ledger, clock):
        ledger.snooze("A", 1)
        ledger.snooze("B", 30)
        clock.advance(minutes=5)
        assert ledger.prune_expired() == 1
        assert list(ledger.snapshot()["snoozed"]) == ["B"]


class TestHistory:
    def test_most_recent_first(self, ledger, clock):
        for i in range(3):
            ledger.annotate_and_record([alert(f"A{i}", timestamp=clock.now)])
            clock.advance(minutes=1)
        assert [a.id for a in ledger.history()] == ["A2", "A1", "A0"]

    def test_same_timestamp_keeps_insertion_recency(self, ledger, clock):
        ledger.annotate_and_record([alert("FIRST", timestamp=clock.now), alert("SECOND", timestamp=clock.now)])
        assert [a.id for a in ledger.history()] == ["SECOND", "FIRST"]

    def test_limit(self, ledger, clock):
        for i in range(10):
            ledger.annotate_and_record([alert(f"A{i}", timestamp=clock.advance(seconds=1))])
        assert len(ledger.history(limit=4)) == 4
        assert ledger.history(limit=0) == []

    def test_severity_filter(self, ledger):
        ledger.annotate_and_record([alert("A", Severity.CRITICAL), alert("B", Severity.WARNING),
                       alert("C", Severity.CRITICAL)])
        assert {a.id for a in ledger.history(severity="critical")} == {"A", "C"}
        assert [a.id for a in ledger.history(severity=Severity.WARNING)] == ["B"]

    def test_unknown_severity_filter_returns_nothing(self, ledger):
        ledger.annotate_and_record([alert()])
        assert ledger.history(severity="Urgent") == []

    def test_history_bounded(self, clock):
        ledger = AlertLedger(max_history=50, clock=clock)
        for i in range(120):
            ledger.annotate_and_record([alert(f"A{i}", timestamp=clock.advance(seconds=1))])
        entries = ledger.history(limit=1000)
        assert len(entries) == 50
        assert entries[-1].id == "A70"

    def test_annotate_and_record_stores_copies(self, ledger):
        a = alert()
        ledger.annotate_and_record([a], None)
        a.title = "changed"
        assert ledger.history()[0].title == "API_DOWN"

    def test_suppressed_alerts_still_recorded(self, ledger):
        ledger.acknowledge("API_DOWN")
        ledger.annotate_and_record([alert()])
        [entry] = ledger.history()
        assert entry.is_acknowledged
