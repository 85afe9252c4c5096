# ShadeHome - app.py | see version.py for version info
"""
ShadeHome - Flask app and process entry point.

Environment:
    SHADEHOME_DB_PATH       SQLite settings store
    SHADEHOME_LOG_LEVEL     debug|info|warning|error (default info)
    SHADEHOME_PORT          HTTP port (default 5000)
    SHADEHOME_INVENTORY     optional JSON file with devices/zones/scenes/
                            schedules/rules supplied by the surrounding system
"""

import json
import logging
import os
import signal
import sys
import time

from flask import Flask
from flask_cors import CORS

from .controller import ShadeController
from .db import init_db, get_engine_instance
from .helpers import load_config
from .routes import register_blueprints
from .version import version_string

logger = logging.getLogger("shadehome")


def configure_logging():
    log_level = os.environ.get("SHADEHOME_LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
    )
    return log_level


def create_app(controller=None, engine=None):
    """Build the Flask app around a controller (created from stored config if omitted)."""
    init_db(engine)
    if controller is None:
        controller = ShadeController(config=load_config())

    app = Flask(__name__)
    CORS(app)

    dependencies = {
        "controller": controller,
        "task_scheduler": controller.scheduler,
        "event_bus": controller.event_bus,
        "start_time": time.time(),
    }
    register_blueprints(app, dependencies)
    app.config["SHADEHOME_DEPS"] = dependencies
    return app


def load_inventory_file(controller, path):
    """Load devices, zones, scenes, schedules and rules from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    result = controller.load_inventory(data.get("devices", []), data.get("zones", []),
                                       data.get("scenes", []))
    if not result.get("success"):
        raise ValueError(f"Invalid inventory {path}: {result.get('error')}")
    for schedule in data.get("schedules", []):
        r = controller.add_schedule(schedule)
        if not r.get("success"):
            logger.warning("Skipping schedule %s: %s", schedule.get("id"), r.get("error"))
    for rule in data.get("rules", []):
        r = controller.add_rule(rule)
        if not r.get("success"):
            logger.warning("Skipping rule %s: %s", rule.get("id"), r.get("error"))
    return result


def start_app():
    """Initialize and start ShadeHome."""
    log_level = configure_logging()
    port = int(os.environ.get("SHADEHOME_PORT", "5000"))

    app = create_app()
    controller = app.config["SHADEHOME_DEPS"]["controller"]

    logger.info("=" * 60)
    logger.info("ShadeHome - blinds & shutter scheduling")
    logger.info("Version: %s", version_string())
    logger.info("Log Level: %s", log_level)
    logger.info("=" * 60)

    inventory_path = os.environ.get("SHADEHOME_INVENTORY")
    if inventory_path:
        load_inventory_file(controller, inventory_path)

    def graceful_shutdown(signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info("Shutdown signal received - cleaning up...")
        controller.stop()
        try:
            get_engine_instance().dispose()
            logger.info("Database connections closed")
        except Exception as e:
            logger.error("Error closing DB: %s", e)
        logger.info("ShadeHome shutdown complete")
        sys.exit(0)

    signal.signal(signal.SIGTERM, graceful_shutdown)
    signal.signal(signal.SIGINT, graceful_shutdown)

    controller.start()
    logger.info("ShadeHome started successfully!")

    app.run(host="0.0.0.0", port=port, debug=False)


if __name__ == "__main__":
    start_app()
