"""Build the monitoring object graph from a config dict."""
from datetime import timezone
from zoneinfo import ZoneInfo

from alerts.engine import AlertEngine
from alerts.ledger import AlertLedger
from models.alerts import AlertThresholds
from models.database import Database
from monitor.metrics_source import BusinessMetricSource
from monitor.monitor import OpsMonitor
from monitor.probes import ProbeProvider
from monitor.scheduler import MonitorScheduler
from monitor.sla_tracker import SlaTracker
from notifications.service import NotificationService


def _zone(name):
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def build_engines(config):
    """Create every long-lived component. Nothing here touches the network."""
    db_cfg = config["database"]
    db = Database(db_cfg["path"], timeout=db_cfg.get("timeout", 10))

    metric_source = BusinessMetricSource(db, db_cfg.get("queries"))
    probes = ProbeProvider.from_config(config, db=db)

    monitor_cfg = config["monitor"]
    sla = SlaTracker(sample_capacity=monitor_cfg.get("sample_capacity", 1440),
                     max_incidents=monitor_cfg.get("max_incidents", 1000))

    alerts_cfg = config["alerts"]
    notifier = NotificationService.from_config(config)
    alert_engine = AlertEngine(
        ledger=AlertLedger(max_history=alerts_cfg.get("history_size", 2000)),
        metric_source=metric_source,
        notifier=notifier,
        thresholds=AlertThresholds.from_dict(alerts_cfg.get("thresholds", {})),
        local_tz=_zone(alerts_cfg.get("timezone", "UTC")),
    )

    monitor = OpsMonitor(probes, sla, alert_engine)
    scheduler = MonitorScheduler(monitor, interval_seconds=monitor_cfg["check_interval"])

    return {
        "config": config,
        "db": db,
        "probes": probes,
        "sla": sla,
        "alert_engine": alert_engine,
        "notifier": notifier,
        "monitor": monitor,
        "scheduler": scheduler,
    }


def shutdown_engines(engines):
    engines["scheduler"].stop()
    engines["notifier"].shutdown(wait=False)
    engines["probes"].close()
    engines["db"].close()
