"""Utility modules for Ops Monitor."""
from utils.logger import setup_logging
from utils.formatters import format_pct, format_ms, format_minutes, format_timestamp, time_ago
from utils.ring_buffer import SampleStore
