"""Alert system module."""
from alerts.engine import AlertEngine
from alerts.ledger import AlertLedger
from alerts.rules import DEFAULT_RULES, AlertRule, ReadingContext
