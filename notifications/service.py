"""Notification service: fan an alert out to every enabled channel."""
import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import requests

from alerts.channels import build_channels
from models.enums import Severity
from models.notifications import NotificationConfig, NotificationResult, ChannelResult, REDACTED

logger = logging.getLogger("opsmonitor.notifications")

MAX_HISTORY = 500


def _utcnow():
    return datetime.now(timezone.utc)


class NotificationService:
    """Best-effort delivery. `send` never raises; each channel reports its own result.

    Dispatch for alerts goes through a small thread pool so a slow webhook or
    SMTP server never holds up an evaluation cycle.
    """

    def __init__(self, config=None, max_history=MAX_HISTORY, max_workers=2, clock=_utcnow):
        self._config = config or NotificationConfig()
        self.clock = clock
        self.session = requests.Session()
        self._history = deque(maxlen=max_history)
        self._last_sent = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="notify")

    @classmethod
    def from_config(cls, config):
        notif = NotificationConfig.from_dict(config.get("notifications", {}))
        return cls(notif)

    # ── Configuration ────────────────────────────────────

    @property
    def config(self):
        with self._lock:
            return self._config

    def update_config(self, data):
        """Replace the config from a dict. Returns (config, errors); errors keep the old one."""
        data = dict(data or {})
        # A config read back from GET carries the masked password
        if data.get("smtp_pass") == REDACTED:
            data.pop("smtp_pass")
        try:
            merged = dict(self.config.to_dict(redact=False))
            merged.update(data)
            new_config = NotificationConfig.from_dict(merged)
        except (ValueError, TypeError) as e:
            logger.warning(f"Rejected notification config update: {e}")
            return self.config, [str(e)]
        with self._lock:
            self._config = new_config
        logger.info("Notification config updated")
        return new_config, []

    # ── Sending ──────────────────────────────────────────

    def send(self, title, message, severity="Info", category=None):
        severity = severity.value if isinstance(severity, Severity) else str(severity)
        config = self.config
        result = NotificationResult(title=title, message=message, severity=severity,
                                    category=category, timestamp=self.clock())

        logger.info(f"Notification [{severity}] {title}: {message}")
        result.channels.append(ChannelResult(channel="Log", success=True))

        for channel in build_channels(config, self.session):
            try:
                result.channels.append(channel.send(title, message, severity, category))
            except Exception as e:
                logger.warning(f"{channel.name} channel error: {e}")
                result.channels.append(ChannelResult(channel=channel.name, success=False,
                                                     detail=str(e)))

        with self._lock:
            self._history.append(result)
        return result

    def send_async(self, title, message, severity="Info", category=None):
        """Queue a send on the worker pool. Returns the Future."""
        return self._executor.submit(self._send_quietly, title, message, severity, category)

    def _send_quietly(self, *args):
        try:
            return self.send(*args)
        except Exception as e:
            logger.error(f"Notification dispatch failed: {e}")
            return None

    def send_test(self):
        return self.send(
            "Notification test",
            "This is a test message from OpsMonitor. If you can read it, the channel works.",
            "Info", "Test",
        )

    # ── Alert trigger ────────────────────────────────────

    def should_notify(self, alert, now=None):
        """True for unsuppressed alerts at or above min severity outside their cooldown."""
        if alert.is_acknowledged or alert.is_snoozed:
            return False
        config = self.config
        if alert.severity.rank < Severity.parse(config.min_severity).rank:
            return False
        now = now or self.clock()
        with self._lock:
            last = self._last_sent.get(alert.id)
            if last is not None and now - last < timedelta(minutes=config.cooldown_minutes):
                return False
            self._last_sent[alert.id] = now
        return True

    def notify_alerts(self, alerts, now=None):
        """Fire-and-forget notifications for qualifying alerts."""
        futures = []
        for alert in alerts:
            if self.should_notify(alert, now):
                futures.append(self.send_async(alert.title, alert.message,
                                               alert.severity, alert.category))
        return futures

    # ── History ──────────────────────────────────────────

    def get_history(self, limit=50):
        with self._lock:
            entries = [replace(r) for r in reversed(self._history)]
        return entries[:max(0, limit)]

    def shutdown(self, wait=True):
        self._executor.shutdown(wait=wait)
        self.session.close()
