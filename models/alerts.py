"""Dataclasses for alert thresholds and alert instances."""
import math
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Optional

from models.enums import Severity


@dataclass(frozen=True)
class AlertThresholds:
    slow_api_threshold_ms: int = 5000
    avg_response_degradation_ms: int = 3000
    stuck_cancellation_threshold: int = 10
    error_spike_threshold_per_hour: int = 5
    queue_error_threshold: int = 3
    cancel_error_spike_threshold: int = 5
    waste_room_threshold: int = 5
    buyrooms_down_minutes: int = 30
    push_failure_threshold: int = 5
    price_drift_anomaly_threshold: int = 3
    backoffice_error_threshold: int = 10

    @classmethod
    def from_dict(cls, data, base=None):
        """Build thresholds from a (possibly partial) dict.

        Missing keys fall back to `base` (or the defaults). Raises ValueError
        listing every problem found so callers can reject the whole update.
        """
        if not isinstance(data, dict):
            raise ValueError("Thresholds must be a JSON object")
        base = base or cls()
        known = {f.name for f in fields(cls)}
        errors = [f"Unknown threshold: {k}" for k in data if k not in known]

        values = asdict(base)
        for key in sorted(known & set(data)):
            raw = data[key]
            if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
                errors.append(f"{key} must be a number")
                continue
            try:
                number = float(raw)
            except ValueError:
                errors.append(f"{key} must be a number")
                continue
            except OverflowError:
                errors.append(f"{key} is out of range")
                continue
            if not math.isfinite(number) or number != int(number):
                errors.append(f"{key} must be a whole number")
                continue
            if number < 0:
                errors.append(f"{key} must be >= 0")
                continue
            values[key] = int(number)

        if errors:
            raise ValueError("; ".join(errors))
        return cls(**values)

    def to_dict(self):
        return asdict(self)


@dataclass
class AlertInstance:
    id: str = ""
    title: str = ""
    message: str = ""
    severity: Severity = Severity.INFO
    category: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    is_snoozed: bool = False
    snoozed_until: Optional[datetime] = None

    @property
    def is_suppressed(self):
        return self.is_acknowledged or self.is_snoozed

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
            "is_acknowledged": self.is_acknowledged,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "is_snoozed": self.is_snoozed,
            "snoozed_until": self.snoozed_until.isoformat() if self.snoozed_until else None,
        }
