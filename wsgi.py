"""WSGI entry point for production deployment."""
import sys
import os
import atexit
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from monitor.wiring import build_engines, shutdown_engines
from web.app import create_app

logger = logging.getLogger("opsmonitor.wsgi")

setup_logging(os.environ.get("OPS_MONITOR_LOG_LEVEL", "INFO"))
config = load_config(os.environ.get("OPS_MONITOR_CONFIG"))

engines = build_engines(config)
app = create_app(config, engines)

# The scheduler runs inside the worker; use a single worker process
engines["scheduler"].start()
atexit.register(shutdown_engines, engines)
logger.info("Background health checks started")
