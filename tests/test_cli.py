"""Tests for CLI commands."""
import pytest
from unittest.mock import patch, MagicMock
from click.testing import CliRunner

from __version__ import __version__
from alerts.engine import AlertEngine
from alerts.ledger import AlertLedger
from models.enums import ProbeKind
from monitor.monitor import OpsMonitor
from monitor.sla_tracker import SlaTracker
from notifications.service import NotificationService
from main import cli
from conftest import StubMetricSource, T0, make_probe


class FakeProbes:
    def check_all(self):
        return [make_probe("Search API", False, -1),
                make_probe("Database", True, 4, kind=ProbeKind.DATABASE)]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def components(clock):
    sla = SlaTracker(clock=clock)
    engine = AlertEngine(ledger=AlertLedger(clock=clock),
                         metric_source=StubMetricSource({"bookings_today": 3, "last_booking_at": T0}),
                         clock=clock)
    notifier = NotificationService(clock=clock)
    c = {"config": {"web": {}}, "sla": sla, "alert_engine": engine, "notifier": notifier,
         "monitor": OpsMonitor(FakeProbes(), sla, engine, clock=clock)}
    with patch("main._init_components", return_value=c):
        yield c


def test_cli_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "check", "sla", "thresholds", "notify-test"):
        assert command in result.output


def test_cli_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_check(runner, components):
    result = runner.invoke(cli, ["check"])
    assert result.exit_code == 0, result.output
    assert "Cycle at 2026-03-02 14:00 UTC" in result.output
    assert "Search API" in result.output
    assert "API_DOWN" in result.output


def test_check_json(runner, components):
    result = runner.invoke(cli, ["check", "--json"])
    assert result.exit_code == 0, result.output
    assert '"API_DOWN"' in result.output


def test_sla(runner, components):
    result = runner.invoke(cli, ["sla"])
    assert result.exit_code == 0, result.output
    assert "Overall uptime" in result.output
    assert "50.000%" in result.output


def test_thresholds(runner, components):
    result = runner.invoke(cli, ["thresholds"])
    assert result.exit_code == 0
    assert "slow_api_threshold_ms" in result.output


def test_notify_test(runner, components):
    result = runner.invoke(cli, ["notify-test"])
    assert result.exit_code == 0
    assert "Log" in result.output
