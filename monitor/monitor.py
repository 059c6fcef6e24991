"""OpsMonitor - owns the monitoring state and runs evaluation cycles."""
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger("opsmonitor.monitor")


@dataclass
class CycleResult:
    started_at: datetime
    finished_at: datetime = None
    probe_results: list = field(default_factory=list)
    incidents: list = field(default_factory=list)
    alerts: list = field(default_factory=list)

    @property
    def duration_ms(self):
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_dict(self):
        return {
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "probes": [r.to_dict() for r in self.probe_results],
            "incidents": [i.to_dict() for i in self.incidents],
            "alerts": [a.to_dict() for a in self.alerts],
        }


class OpsMonitor:
    """Explicit container for the tracker, alert engine and probe provider.

    Passed to the scheduler (writer) and to the web layer (readers); there is
    no module-level monitoring state.
    """

    def __init__(self, probes, sla_tracker, alert_engine, clock=None):
        self.probes = probes
        self.sla = sla_tracker
        self.alerts = alert_engine
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_cycle = None
        self._cycle_lock = threading.Lock()

    def run_cycle(self):
        """Probe everything, update SLA state, evaluate alerts.

        Probing happens before any state lock is taken. Cycles are serialised
        so an on-demand run never interleaves with the scheduled one.
        """
        with self._cycle_lock:
            cycle = CycleResult(started_at=self.clock())
            cycle.probe_results = self.probes.check_all()
            now = self.clock()
            cycle.incidents = self.sla.record_results(cycle.probe_results, now)
            cycle.alerts = self.alerts.evaluate(cycle.probe_results, now)
            self.alerts.ledger.prune_expired(now)
            cycle.finished_at = self.clock()
            self.last_cycle = cycle

        logger.info(
            f"Cycle done in {cycle.duration_ms}ms: "
            f"{sum(1 for r in cycle.probe_results if r.success)}/{len(cycle.probe_results)} targets up, "
            f"{len(cycle.alerts)} alerts"
        )
        return cycle

    def evaluate_alerts(self):
        """Fresh probe + alert evaluation without touching SLA counters."""
        with self._cycle_lock:
            results = self.probes.check_all()
            return self.alerts.evaluate(results, self.clock())

    def get_status(self):
        report = self.sla.get_report()
        alerts = self.alerts.current_alerts()
        return {
            "timestamp": self.clock().isoformat(),
            "overall_uptime": report.overall_uptime,
            "targets_up": sum(1 for t in report.targets if t.is_up),
            "targets_total": len(report.targets),
            "active_alerts": len(self.alerts.active_alerts(alerts)),
            "last_cycle_at": self.last_cycle.started_at.isoformat() if self.last_cycle else None,
        }
