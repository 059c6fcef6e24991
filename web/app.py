"""
Flask JSON API for Ops Monitor.

Read side (concurrent with the background scheduler):
  GET  /healthz                      - liveness
  GET  /readyz                       - readiness (booking database reachable)
  GET  /api/status                   - one-line overview
  GET  /api/sla                      - full SLA report
  GET  /api/sla/<target>             - one target's SLA summary
  GET  /api/alerts                   - latest alerts with current ack/snooze state
  GET  /api/alerts/summary           - alerts + plain-text summary
  GET  /api/alerts/history           - ?limit=&severity=

Write side:
  POST /api/alerts/evaluate          - run a fresh alert evaluation now
  POST /api/alerts/<id>/acknowledge
  POST /api/alerts/<id>/snooze       - ?minutes= (default 60)
  POST /api/alerts/<id>/unacknowledge
  GET|PUT /api/alerts/thresholds
  GET|PUT /api/notifications/config
  POST /api/notifications/test
  GET  /api/notifications/history    - ?limit=

Started via: python main.py serve [--port 5000] [--host 0.0.0.0]
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from __version__ import __version__

logger = logging.getLogger("opsmonitor.web.app")


def _int_arg(name, default, lo=None, hi=None):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    if lo is not None:
        value = max(lo, value)
    if hi is not None:
        value = min(hi, value)
    return value


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized engines from main.py / wsgi.py.

    Args:
        config: Application config dict
        engines: dict with monitor, sla, alert_engine, notifier, db
    """
    app = Flask(__name__)
    app.json.sort_keys = False

    monitor = engines["monitor"]
    sla = engines["sla"]
    alert_engine = engines["alert_engine"]
    notifier = engines["notifier"]

    # ─── Health ──────────────────────────────────────────

    @app.route("/healthz")
    def healthz():
        return jsonify({
            "status": "Healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": f"OpsMonitor v{__version__}",
        })

    @app.route("/readyz")
    def readyz():
        try:
            latency = engines["db"].ping()
        except Exception as e:
            logger.warning(f"Readiness check failed: {e}")
            return jsonify({"status": "NotReady", "error": str(e)}), 503
        return jsonify({"status": "Ready", "db_latency_ms": latency})

    @app.route("/api/status")
    def api_status():
        return jsonify(monitor.get_status())

    # ─── SLA ─────────────────────────────────────────────

    @app.route("/api/sla")
    def api_sla():
        return jsonify(sla.get_report().to_dict())

    @app.route("/api/sla/<path:target>")
    def api_sla_target(target):
        entry = sla.get_target_sla(target)
        if entry is None:
            return jsonify({"error": f"Unknown target: {target}"}), 404
        return jsonify(entry.to_dict())

    # ─── Alerts ──────────────────────────────────────────

    @app.route("/api/alerts")
    def api_alerts():
        alerts = alert_engine.current_alerts()
        return jsonify({"alerts": [a.to_dict() for a in alerts], "count": len(alerts)})

    @app.route("/api/alerts/evaluate", methods=["POST"])
    def api_alerts_evaluate():
        alerts = monitor.evaluate_alerts()
        return jsonify({"alerts": [a.to_dict() for a in alerts], "count": len(alerts)})

    @app.route("/api/alerts/summary")
    def api_alerts_summary():
        alerts = alert_engine.current_alerts()
        return jsonify({
            "alerts": [a.to_dict() for a in alerts],
            "summary": alert_engine.format_alert_summary(alerts),
        })

    @app.route("/api/alerts/history")
    def api_alerts_history():
        limit = _int_arg("limit", 100, lo=0, hi=2000)
        severity = request.args.get("severity")
        history = alert_engine.get_history(limit, severity)
        return jsonify({"alerts": [a.to_dict() for a in history], "count": len(history)})

    @app.route("/api/alerts/<alert_id>/acknowledge", methods=["POST"])
    def api_acknowledge(alert_id):
        return jsonify({"success": alert_engine.acknowledge(alert_id), "id": alert_id})

    @app.route("/api/alerts/<alert_id>/snooze", methods=["POST"])
    def api_snooze(alert_id):
        minutes = _int_arg("minutes", 60)
        ok = alert_engine.snooze(alert_id, minutes)
        return jsonify({"success": ok, "id": alert_id, "minutes": minutes}), (200 if ok else 400)

    @app.route("/api/alerts/<alert_id>/unacknowledge", methods=["POST"])
    def api_unacknowledge(alert_id):
        return jsonify({"success": alert_engine.unacknowledge(alert_id), "id": alert_id})

    @app.route("/api/alerts/thresholds", methods=["GET", "PUT"])
    def api_thresholds():
        if request.method == "GET":
            return jsonify(alert_engine.get_thresholds().to_dict())
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({"error": "Expected a JSON object"}), 400
        thresholds, errors = alert_engine.update_thresholds(payload)
        if errors:
            return jsonify({"errors": errors, "thresholds": thresholds.to_dict()}), 400
        return jsonify(thresholds.to_dict())

    # ─── Notifications ───────────────────────────────────

    @app.route("/api/notifications/config", methods=["GET", "PUT"])
    def api_notification_config():
        if request.method == "GET":
            return jsonify(notifier.config.to_dict())
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "Expected a JSON object"}), 400
        new_config, errors = notifier.update_config(payload)
        if errors:
            return jsonify({"errors": errors}), 400
        return jsonify(new_config.to_dict())

    @app.route("/api/notifications/test", methods=["POST"])
    def api_notification_test():
        return jsonify(notifier.send_test().to_dict())

    @app.route("/api/notifications/history")
    def api_notification_history():
        limit = _int_arg("limit", 50, lo=0, hi=500)
        return jsonify({"notifications": [n.to_dict() for n in notifier.get_history(limit)]})

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Unhandled error: {e}")
        return jsonify({"error": "Internal server error"}), 500

    return app
