"""Formatting utilities for display."""
from datetime import datetime, timezone


def format_pct(value, decimals=3):
    """Format an uptime-style percentage (no sign)."""
    if value is None:
        return "N/A"
    return f"{float(value):.{decimals}f}%"


def format_ms(value):
    """Format a latency in milliseconds, switching to seconds above 1s."""
    if value is None or value < 0:
        return "N/A"
    value = float(value)
    if value >= 1000:
        return f"{value / 1000:.2f}s"
    return f"{value:.0f}ms"


def format_minutes(minutes):
    """Format a duration in minutes: 0.5 → '30s', 75 → '1h 15m'."""
    if minutes is None:
        return "N/A"
    seconds = int(round(float(minutes) * 60))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    hours, rem = divmod(seconds, 3600)
    return f"{hours}h {rem // 60}m"


def format_timestamp(ts):
    """Format a datetime to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        return ts
    return ts.strftime("%Y-%m-%d %H:%M UTC")


def time_ago(dt, now=None):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    now = now or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = int(delta.total_seconds())

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"
