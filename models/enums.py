"""Enums for alert severity, alert categories and probe kinds."""
from enum import Enum


class Severity(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    CRITICAL = "Critical"

    @property
    def rank(self):
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value):
        """Case-insensitive lookup: 'critical', 'CRITICAL' and 'Critical' all match."""
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValueError(f"Unknown severity: {value!r}")


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}


class AlertCategory(str, Enum):
    DATABASE = "Database"
    API = "API"
    PERFORMANCE = "Performance"
    BUSINESS = "Business"
    ERRORS = "Errors"
    QUEUE = "Queue"
    SYSTEM = "System"
    PUSH = "Push"


class ProbeKind(str, Enum):
    HTTP = "http"
    TCP = "tcp"
    DATABASE = "database"
