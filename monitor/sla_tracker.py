"""SLA tracking: uptime, MTTR and MTTD for every monitored target."""
import logging
import threading
from collections import deque
from datetime import datetime, timezone

from models.sla import (
    Sample, TargetHealthState, IncidentRecord, SlaEntry, SlaReport,
    DEFAULT_SAMPLE_CAPACITY,
)
from utils.ring_buffer import SampleStore

logger = logging.getLogger("opsmonitor.sla")

MAX_INCIDENTS = 1000
RECENT_INCIDENTS = 20


def _utcnow():
    return datetime.now(timezone.utc)


def _minutes_between(start, end):
    return (end - start).total_seconds() / 60


def _mean(values):
    values = list(values)
    return sum(values) / len(values) if values else 0.0


class SlaTracker:
    """Per-target Up/Down state machine fed by probe results.

    A single lock guards the target map and the incident log. Callers do the
    probing first and only hand finished results in, so the lock is never
    held across I/O.
    """

    def __init__(self, sample_capacity=DEFAULT_SAMPLE_CAPACITY, max_incidents=MAX_INCIDENTS,
                 clock=_utcnow):
        self.sample_capacity = sample_capacity
        self.clock = clock
        self._targets = {}
        self._incidents = deque(maxlen=max_incidents)
        self._lock = threading.Lock()

    # ── Mutation ─────────────────────────────────────────

    def record_results(self, results, now=None):
        """Apply one cycle of probe results. Returns incidents closed this cycle."""
        now = now or self.clock()
        closed, went_down = [], []
        with self._lock:
            for result in results:
                incident, down = self._apply(result.target, result.success,
                                             result.response_time_ms, now)
                if incident:
                    closed.append(incident)
                if down:
                    went_down.append(result.target)
        for name in went_down:
            logger.warning(f"{name} is DOWN")
        for incident in closed:
            logger.info(
                f"{incident.target_name} recovered after {incident.duration_minutes:.1f} min"
            )
        return closed

    def record_check(self, name, success, response_time_ms=0, now=None):
        """Apply a single check result. Returns the closed incident, if any."""
        now = now or self.clock()
        with self._lock:
            incident, _ = self._apply(name, success, response_time_ms, now)
        return incident

    def _apply(self, name, success, response_time_ms, now):
        state = self._targets.get(name)
        if state is None:
            state = TargetHealthState(name=name, response_times=SampleStore(self.sample_capacity))
            self._targets[name] = state

        state.total_checks += 1
        state.last_checked_at = now
        state.last_response_time_ms = response_time_ms

        if response_time_ms > 0:
            state.response_times.append(Sample(now, float(response_time_ms), success))

        if success:
            state.successful_checks += 1
            if state.is_up:
                return None, False
            # Down -> Up
            state.is_up = True
            started = state.last_down_since
            state.last_down_since = None
            duration = _minutes_between(started, now)
            state.recovery_durations.append(duration)
            incident = IncidentRecord(
                target_name=name, start_time=started, end_time=now,
                duration_minutes=duration, kind="Downtime",
            )
            self._incidents.append(incident)
            return incident, False

        state.failed_checks += 1
        if state.is_up:
            # Up -> Down; detection counts as instantaneous at the polling instant
            state.is_up = False
            state.last_down_since = now
            state.detection_durations.append(0.0)
            return None, True
        return None, False

    def reset(self):
        with self._lock:
            self._targets.clear()
            self._incidents.clear()

    # ── Reads ────────────────────────────────────────────

    def _entry(self, state, now):
        uptime = (
            round(state.successful_checks / state.total_checks * 100, 3)
            if state.total_checks > 0 else 100.0
        )
        store = state.response_times
        avg = store.average()
        entry = SlaEntry(
            target=state.name,
            is_up=state.is_up,
            total_checks=state.total_checks,
            successful_checks=state.successful_checks,
            failed_checks=state.failed_checks,
            uptime_percent=uptime,
            last_checked_at=state.last_checked_at,
            last_response_time_ms=state.last_response_time_ms,
            avg_response_time_ms=round(avg, 1) if avg is not None else 0.0,
            p95_response_time_ms=store.percentile(95) or 0.0,
            p99_response_time_ms=store.percentile(99) or 0.0,
            mttr=round(_mean(state.recovery_durations), 1),
            mttd=round(_mean(state.detection_durations), 1),
        )
        if not state.is_up and state.last_down_since is not None:
            entry.current_downtime_minutes = _minutes_between(state.last_down_since, now)
        return entry

    def get_report(self):
        """Full SLA report: per-target entries, overall figures, recent incidents."""
        now = self.clock()
        with self._lock:
            entries = [self._entry(s, now) for s in self._targets.values()]
            incidents = sorted(self._incidents, key=lambda i: i.start_time, reverse=True)

        report = SlaReport(timestamp=now, targets=entries,
                           recent_incidents=incidents[:RECENT_INCIDENTS])
        if entries:
            report.overall_uptime = round(_mean(e.uptime_percent for e in entries), 3)
            report.overall_mttr = round(_mean(e.mttr for e in entries if e.mttr > 0), 1)
            report.overall_mttd = round(_mean(e.mttd for e in entries if e.mttd > 0), 1)
        return report

    def get_target_sla(self, name):
        """Summary for one target, or None if it has never been checked."""
        now = self.clock()
        with self._lock:
            state = self._targets.get(name)
            if state is None:
                return None
            return self._entry(state, now)

    def get_incidents(self, limit=None):
        """Closed incidents, most recent first."""
        with self._lock:
            incidents = list(reversed(self._incidents))
        return incidents[:limit] if limit else incidents

    def get_state(self, name):
        """Copy of the raw state counters for one target (None if unknown)."""
        with self._lock:
            state = self._targets.get(name)
            if state is None:
                return None
            return {
                "name": state.name,
                "is_up": state.is_up,
                "total_checks": state.total_checks,
                "successful_checks": state.successful_checks,
                "failed_checks": state.failed_checks,
                "last_checked_at": state.last_checked_at,
                "last_down_since": state.last_down_since,
                "recovery_durations": list(state.recovery_durations),
                "detection_durations": list(state.detection_durations),
                "response_samples": state.response_times.read_all(),
            }

    @property
    def target_names(self):
        with self._lock:
            return list(self._targets)
