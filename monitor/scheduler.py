"""Background scheduler for periodic health cycles."""
import logging
import threading
import schedule

logger = logging.getLogger("opsmonitor.scheduler")


class MonitorScheduler:
    def __init__(self, monitor, interval_seconds=60):
        self.monitor = monitor
        self.interval = interval_seconds
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._stop = threading.Event()
        self._callbacks = []
        self._consecutive_failures = 0

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def on_cycle(self, callback):
        """Register callback called after each successful cycle."""
        self._callbacks.append(callback)

    def start(self):
        """Start background cycles."""
        if self.running:
            return
        self._stop.clear()
        self._scheduler.clear()
        self._scheduler.every(self.interval).seconds.do(self._cycle_job)

        self._thread = threading.Thread(target=self._run_loop, name="monitor-scheduler",
                                        daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started (every {self.interval}s)")

    def stop(self, timeout=5):
        """Signal the loop to exit and wait for the current cycle to finish."""
        self._stop.set()
        self._scheduler.clear()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Scheduler stopped")

    def _run_loop(self):
        # Do an initial cycle immediately
        self._cycle_job()
        while not self._stop.wait(1):
            self._scheduler.run_pending()

    def _cycle_job(self):
        if self._stop.is_set():
            return
        try:
            cycle = self.monitor.run_cycle()
            self._consecutive_failures = 0
            for cb in self._callbacks:
                try:
                    cb(cycle)
                except Exception as e:
                    logger.warning(f"Callback error: {e}")
        except Exception as e:
            self._consecutive_failures += 1
            logger.error(f"Cycle failed ({self._consecutive_failures} consecutive): {e}")
            if self._consecutive_failures >= 5:
                logger.critical("5+ consecutive cycle failures!")
