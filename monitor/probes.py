"""Health probes for HTTP endpoints, TCP services and the booking database."""
import socket
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

import requests

from models.enums import ProbeKind
from models.sla import ProbeResult

logger = logging.getLogger("opsmonitor.probes")

DATABASE_TARGET = "Database"


@dataclass
class HttpTarget:
    name: str
    url: str
    expected_status: set = field(default_factory=lambda: {200})
    timeout: float = 15


@dataclass
class TcpTarget:
    name: str
    host: str
    port: int
    timeout: float = 5


def _elapsed_ms(start):
    return int((time.monotonic() - start) * 1000)


class ProbeProvider:
    """Runs every configured probe concurrently and never raises.

    Each probe carries its own timeout, so a hung endpoint only delays the
    cycle by that timeout.
    """

    def __init__(self, http_targets=None, tcp_targets=None, db=None,
                 database_name=DATABASE_TARGET, max_workers=8):
        self.http_targets = list(http_targets or [])
        self.tcp_targets = list(tcp_targets or [])
        self.db = db
        self.database_name = database_name
        self.max_workers = max_workers
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "OpsMonitor/2.2"})

    @classmethod
    def from_config(cls, config, db=None):
        probes = config.get("probes", {})
        http_targets = [
            HttpTarget(
                name=t["name"],
                url=t["url"],
                expected_status=set(t.get("expected_status", [200])),
                timeout=t.get("timeout", 15),
            )
            for t in probes.get("http", [])
        ]
        tcp_targets = [
            TcpTarget(name=t["name"], host=t["host"], port=int(t["port"]),
                      timeout=t.get("timeout", 5))
            for t in probes.get("tcp", [])
        ]
        return cls(
            http_targets=http_targets,
            tcp_targets=tcp_targets,
            db=db,
            database_name=probes.get("database_name", DATABASE_TARGET),
            max_workers=probes.get("max_workers", 8),
        )

    # ── Individual probes ────────────────────────────────

    def check_http(self, target: HttpTarget) -> ProbeResult:
        result = ProbeResult(target=target.name, kind=ProbeKind.HTTP,
                             checked_at=datetime.now(timezone.utc))
        start = time.monotonic()
        try:
            resp = self.session.get(target.url, timeout=target.timeout, allow_redirects=False)
            result.response_time_ms = _elapsed_ms(start)
            result.status_code = resp.status_code
            result.success = resp.status_code in target.expected_status
            if not result.success:
                result.error_message = f"{resp.status_code}: {resp.reason}"
        except requests.RequestException as e:
            result.response_time_ms = -1
            result.error_message = str(e)
        return result

    def check_tcp(self, target: TcpTarget) -> ProbeResult:
        result = ProbeResult(target=target.name, kind=ProbeKind.TCP,
                             checked_at=datetime.now(timezone.utc))
        start = time.monotonic()
        try:
            with socket.create_connection((target.host, target.port), timeout=target.timeout):
                pass
            result.success = True
            result.status_code = 200
        except OSError as e:
            result.error_message = str(e)
        result.response_time_ms = _elapsed_ms(start)
        return result

    def check_database(self) -> ProbeResult:
        result = ProbeResult(target=self.database_name, kind=ProbeKind.DATABASE,
                             checked_at=datetime.now(timezone.utc))
        if self.db is None:
            result.error_message = "No database configured"
            return result
        start = time.monotonic()
        try:
            self.db.ping()
            result.success = True
            result.status_code = 200
        except Exception as e:
            result.error_message = str(e)
        result.response_time_ms = _elapsed_ms(start)
        return result

    # ── Fan-out ──────────────────────────────────────────

    def check_all(self):
        """Probe every target concurrently; results keep configuration order."""
        jobs = [(t.name, self.check_http, (t,)) for t in self.http_targets]
        jobs += [(t.name, self.check_tcp, (t,)) for t in self.tcp_targets]
        jobs.append((self.database_name, self.check_database, ()))

        def _run(name, func, args):
            try:
                return func(*args)
            except Exception as e:
                logger.error(f"Probe {name} crashed: {e}")
                return ProbeResult(target=name, error_message=str(e))

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(_run, *job) for job in jobs]
            results = [f.result() for f in futures]

        failed = [r.target for r in results if not r.success]
        if failed:
            logger.info(f"Probes: {len(results) - len(failed)}/{len(results)} healthy, failing: {', '.join(failed)}")
        else:
            logger.debug(f"Probes: all {len(results)} healthy")
        return results

    def close(self):
        self.session.close()
