"""
SMTP email sender for alert notifications.

Handles:
  - SMTP connection with optional STARTTLS
  - Plain-text alert messages to a comma-separated recipient list
  - Credential management (env vars > notification config)

No external dependencies beyond Python stdlib (email, smtplib, ssl).
"""
import os
import ssl
import smtplib
import logging
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.utils import formatdate

logger = logging.getLogger("opsmonitor.notifications.email_sender")

_SEVERITY_PREFIX = {"Critical": "[CRITICAL]", "Warning": "[WARNING]"}


class EmailSender:
    """
    SMTP email sender.

    Credential resolution order:
      1. Environment variables: OPS_MONITOR_SMTP_USER, OPS_MONITOR_SMTP_PASS
      2. NotificationConfig: smtp_user, smtp_pass
    """

    def __init__(self, config):
        self.smtp_host = config.smtp_host
        self.smtp_port = config.smtp_port
        self.use_tls = config.smtp_ssl
        self.username = os.environ.get("OPS_MONITOR_SMTP_USER", config.smtp_user or "")
        self.password = os.environ.get("OPS_MONITOR_SMTP_PASS", config.smtp_pass or "")
        self.from_address = config.smtp_from or self.username or "monitor@localhost"
        self.recipients = [
            r.strip() for r in (config.email_recipients or "").split(",") if r.strip()
        ]

    def is_configured(self) -> bool:
        """Check if the fields needed to send are present."""
        return bool(self.smtp_host and self.recipients)

    def build_alert(self, title: str, severity: str, message: str) -> MIMEText:
        prefix = _SEVERITY_PREFIX.get(severity, "[INFO]")
        now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        body = f"Severity: {severity}\nTime: {now}\n\n{message}\n\n-- OpsMonitor"

        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = self.from_address
        msg["To"] = ", ".join(self.recipients)
        msg["Subject"] = f"{prefix} OpsMonitor: {title}"
        msg["Date"] = formatdate(localtime=True)
        return msg

    def send_alert(self, title: str, severity: str, message: str):
        """Send a single alert email. Returns (success, detail)."""
        if not self.is_configured():
            return False, "Email not configured"
        return self._send(self.build_alert(title, severity, message))

    def _send(self, msg: MIMEText):
        """Internal: send a constructed MIME message via SMTP."""
        try:
            context = ssl.create_default_context()
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.ehlo()
                if self.use_tls:
                    server.starttls(context=context)
                    server.ehlo()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
            logger.info(f"Email sent to {len(self.recipients)} recipients: {msg['Subject']}")
            return True, f"Sent to {len(self.recipients)} recipients"
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed. Check username/password.")
            return False, "SMTP authentication failed"
        except smtplib.SMTPRecipientsRefused:
            logger.error(f"Recipients refused: {msg['To']}")
            return False, "Recipients refused"
        except Exception as e:
            logger.error(f"Email send failed: {e}")
            return False, str(e)
