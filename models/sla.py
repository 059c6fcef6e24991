"""Dataclasses for probe results, per-target health state and incidents."""
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.enums import ProbeKind

DEFAULT_SAMPLE_CAPACITY = 1440  # 24h at one check per minute
MAX_DURATION_SAMPLES = 100


@dataclass(frozen=True)
class Sample:
    timestamp: datetime
    value: float
    success: bool = True


@dataclass
class ProbeResult:
    target: str = ""
    success: bool = False
    response_time_ms: int = 0
    status_code: int = 0
    error_message: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    kind: ProbeKind = ProbeKind.HTTP

    def to_dict(self):
        return {
            "target": self.target,
            "success": self.success,
            "response_time_ms": self.response_time_ms,
            "status_code": self.status_code,
            "error_message": self.error_message,
            "checked_at": self.checked_at.isoformat(),
            "kind": self.kind.value,
        }


@dataclass
class TargetHealthState:
    name: str
    response_times: object  # utils.ring_buffer.SampleStore
    is_up: bool = True
    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    last_checked_at: Optional[datetime] = None
    last_down_since: Optional[datetime] = None
    last_response_time_ms: int = 0
    recovery_durations: deque = field(default_factory=lambda: deque(maxlen=MAX_DURATION_SAMPLES))
    detection_durations: deque = field(default_factory=lambda: deque(maxlen=MAX_DURATION_SAMPLES))


@dataclass(frozen=True)
class IncidentRecord:
    target_name: str
    start_time: datetime
    end_time: datetime
    duration_minutes: float
    kind: str = "Downtime"

    def to_dict(self):
        return {
            "target": self.target_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_minutes": round(self.duration_minutes, 2),
            "kind": self.kind,
        }


@dataclass
class SlaEntry:
    target: str = ""
    is_up: bool = True
    total_checks: int = 0
    successful_checks: int = 0
    failed_checks: int = 0
    uptime_percent: float = 100.0
    last_checked_at: Optional[datetime] = None
    last_response_time_ms: int = 0
    avg_response_time_ms: float = 0.0
    p95_response_time_ms: float = 0.0
    p99_response_time_ms: float = 0.0
    mttr: float = 0.0
    mttd: float = 0.0
    current_downtime_minutes: float = 0.0

    def to_dict(self):
        return {
            "target": self.target,
            "is_up": self.is_up,
            "total_checks": self.total_checks,
            "successful_checks": self.successful_checks,
            "failed_checks": self.failed_checks,
            "uptime_percent": self.uptime_percent,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "last_response_time_ms": self.last_response_time_ms,
            "avg_response_time_ms": self.avg_response_time_ms,
            "p95_response_time_ms": self.p95_response_time_ms,
            "p99_response_time_ms": self.p99_response_time_ms,
            "mttr": self.mttr,
            "mttd": self.mttd,
            "current_downtime_minutes": round(self.current_downtime_minutes, 2),
        }


@dataclass
class SlaReport:
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    overall_uptime: float = 100.0
    overall_mttr: float = 0.0
    overall_mttd: float = 0.0
    targets: list = field(default_factory=list)
    recent_incidents: list = field(default_factory=list)

    def to_dict(self):
        return {
            "timestamp": self.timestamp.isoformat(),
            "overall_uptime": self.overall_uptime,
            "overall_mttr": self.overall_mttr,
            "overall_mttd": self.overall_mttd,
            "targets": [t.to_dict() for t in self.targets],
            "recent_incidents": [i.to_dict() for i in self.recent_incidents],
        }
