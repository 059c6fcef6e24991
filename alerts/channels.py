"""Notification channels: generic webhook, Slack, Teams and email."""
import logging
from datetime import datetime, timezone

import requests

from models.notifications import ChannelResult

logger = logging.getLogger("opsmonitor.alerts.channels")

SOURCE = "OpsMonitor"

_SLACK_ICONS = {"Critical": ":rotating_light:", "Warning": ":warning:"}
_TEAMS_COLORS = {"Critical": "FF0000", "Warning": "FFA500"}


class _HttpPostChannel:
    """Base for channels that POST a JSON payload to a URL."""

    name = "Webhook"

    def __init__(self, url, session=None, timeout=10):
        self.url = url
        self.session = session or requests.Session()
        self.timeout = timeout

    def payload(self, title, message, severity, category):
        raise NotImplementedError

    def send(self, title, message, severity, category=None) -> ChannelResult:
        try:
            resp = self.session.post(
                self.url, json=self.payload(title, message, severity, category),
                timeout=self.timeout,
            )
            return ChannelResult(channel=self.name, success=resp.ok,
                                 detail=f"HTTP {resp.status_code}")
        except requests.RequestException as e:
            logger.warning(f"{self.name} notification failed: {e}")
            return ChannelResult(channel=self.name, success=False, detail=str(e))


class WebhookChannel(_HttpPostChannel):
    name = "Webhook"

    def payload(self, title, message, severity, category):
        return {
            "title": title,
            "message": message,
            "severity": severity,
            "category": category,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": SOURCE,
        }


class SlackChannel(_HttpPostChannel):
    name = "Slack"

    def payload(self, title, message, severity, category):
        icon = _SLACK_ICONS.get(severity, ":information_source:")
        now = datetime.now(timezone.utc).strftime("%H:%M:%S UTC")
        return {"text": f"{icon} *{title}*\n{message}\n_Severity: {severity} | {now}_"}


class TeamsChannel(_HttpPostChannel):
    name = "Teams"

    def payload(self, title, message, severity, category):
        return {
            "@type": "MessageCard",
            "themeColor": _TEAMS_COLORS.get(severity, "0078D4"),
            "title": f"{SOURCE}: {title}",
            "text": message,
            "sections": [{
                "facts": [
                    {"name": "Severity", "value": severity},
                    {"name": "Time", "value": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")},
                    {"name": "Source", "value": SOURCE},
                ],
            }],
        }


class EmailChannel:
    """Plain-text alert email through the SMTP sender."""

    name = "Email"

    def __init__(self, sender):
        self.sender = sender

    def send(self, title, message, severity, category=None) -> ChannelResult:
        if not self.sender.recipients:
            return ChannelResult(channel=self.name, success=False,
                                 detail="No recipients configured")
        ok, detail = self.sender.send_alert(title, severity, message)
        return ChannelResult(channel=self.name, success=ok, detail=detail)


def build_channels(config, session=None):
    """Instantiate the channels enabled in a NotificationConfig."""
    from notifications.email_sender import EmailSender

    channels = []
    if config.webhook_enabled and config.webhook_url:
        channels.append(WebhookChannel(config.webhook_url, session))
    if config.email_enabled and config.smtp_host:
        channels.append(EmailChannel(EmailSender(config)))
    if config.slack_enabled and config.slack_webhook_url:
        channels.append(SlackChannel(config.slack_webhook_url, session))
    if config.teams_enabled and config.teams_webhook_url:
        channels.append(TeamsChannel(config.teams_webhook_url, session))
    return channels
