"""Data models."""
from models.enums import Severity, AlertCategory, ProbeKind
from models.sla import Sample, ProbeResult, TargetHealthState, IncidentRecord, SlaEntry, SlaReport
from models.alerts import AlertThresholds, AlertInstance
from models.notifications import NotificationConfig, ChannelResult, NotificationResult
