"""Dataclasses for notification configuration and delivery results."""
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Optional

from models.enums import Severity

REDACTED = "********"


@dataclass
class NotificationConfig:
    webhook_enabled: bool = False
    webhook_url: Optional[str] = None

    email_enabled: bool = False
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    smtp_from: Optional[str] = None
    smtp_ssl: bool = True
    email_recipients: Optional[str] = None

    slack_enabled: bool = False
    slack_webhook_url: Optional[str] = None

    teams_enabled: bool = False
    teams_webhook_url: Optional[str] = None

    cooldown_minutes: int = 5
    min_severity: str = "Warning"

    @classmethod
    def from_dict(cls, data):
        """Build a config from a dict, ignoring unknown keys.

        Raises ValueError for a bad min_severity or cooldown.
        """
        known = {f.name for f in fields(cls)}
        config = cls(**{k: v for k, v in (data or {}).items() if k in known})
        config.min_severity = Severity.parse(config.min_severity).value
        try:
            config.cooldown_minutes = int(config.cooldown_minutes)
            config.smtp_port = int(config.smtp_port)
        except (TypeError, ValueError):
            raise ValueError("cooldown_minutes and smtp_port must be numbers")
        if config.cooldown_minutes < 0:
            raise ValueError("cooldown_minutes must be >= 0")
        return config

    def to_dict(self, redact=True):
        data = asdict(self)
        if redact and data.get("smtp_pass"):
            data["smtp_pass"] = REDACTED
        return data


@dataclass
class ChannelResult:
    channel: str = ""
    success: bool = False
    detail: Optional[str] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class NotificationResult:
    title: str = ""
    message: str = ""
    severity: str = "Info"
    category: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    channels: list = field(default_factory=list)

    @property
    def success(self):
        return all(c.success for c in self.channels)

    def to_dict(self):
        return {
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
            "channels": [c.to_dict() for c in self.channels],
        }
