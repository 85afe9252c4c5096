# ShadeHome - routes/system.py | see version.py for version info
"""
ShadeHome API Routes - System
Sun data, weather and occupancy pushes, status, config, tasks, health.
"""

import logging
import time

from flask import Blueprint, request, jsonify
from sqlalchemy import text

from . import respond, unavailable
from ..db import get_db_readonly
from ..helpers import load_config, save_config
from ..version import VERSION

logger = logging.getLogger("shadehome.routes.system")

system_bp = Blueprint("system", __name__)

# Module-level dependencies (set by init function)
_deps = {}


def init_system(dependencies):
    """Initialize system routes with shared dependencies."""
    global _deps
    _deps = dependencies


def _ctl():
    return _deps.get("controller")


# ==============================================================================
# Sun & Environment
# ==============================================================================

@system_bp.route("/api/solar", methods=["GET"])
def get_solar():
    """Sun position, sunrise/sunset and per-facing exposure."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_solar_data())


@system_bp.route("/api/weather", methods=["GET"])
def get_weather():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_weather_status())


@system_bp.route("/api/weather", methods=["POST"])
def push_weather():
    """Weather push; runs the safety interlock immediately."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    return respond(ctl.update_weather(data))


@system_bp.route("/api/occupancy", methods=["POST"])
def push_occupancy():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    if "occupied" not in data:
        return jsonify({"success": False, "error": "occupied required"}), 400
    return respond(ctl.update_occupancy(data.get("room_id"), bool(data["occupied"]),
                                        data.get("timestamp")))


@system_bp.route("/api/location", methods=["PUT"])
def put_location():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    result = ctl.set_location(data.get("latitude"), data.get("longitude"))
    if result.get("success"):
        save_config({"latitude": result["latitude"], "longitude": result["longitude"]})
    return respond(result)


@system_bp.route("/api/season", methods=["PUT"])
def put_season():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    return respond(ctl.set_season(data.get("season")))


# ==============================================================================
# Status & Config
# ==============================================================================

@system_bp.route("/api/status", methods=["GET"])
def get_status():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_status())


@system_bp.route("/api/config", methods=["GET"])
def get_config():
    return jsonify(load_config()), 200


@system_bp.route("/api/config", methods=["PUT"])
def put_config():
    """Validate against the running controller, then persist."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    result = ctl.apply_config(data)
    if result.get("success"):
        save_config(data)
        logger.info("Config updated: %s", ", ".join(sorted(data)))
    return respond(result)


@system_bp.route("/api/tasks", methods=["GET"])
def get_tasks():
    scheduler = _deps.get("task_scheduler")
    if not scheduler:
        return unavailable()
    return jsonify(scheduler.get_status()), 200


@system_bp.route("/api/events", methods=["GET"])
def get_events():
    bus = _deps.get("event_bus")
    if not bus:
        return unavailable()
    limit = request.args.get("limit", 50, type=int)
    return jsonify(bus.get_history(request.args.get("type"), limit)), 200


@system_bp.route("/api/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    health = {"status": "healthy", "checks": {}}

    try:
        with get_db_readonly() as session:
            session.execute(text("SELECT 1"))
        health["checks"]["database"] = {"status": "ok"}
    except Exception as e:
        health["checks"]["database"] = {"status": "error", "message": str(e)[:100]}
        health["status"] = "unhealthy"

    scheduler = _deps.get("task_scheduler")
    health["checks"]["task_scheduler"] = {
        "status": "ok" if scheduler and scheduler.is_running else "stopped",
    }
    health["checks"]["controller"] = {"status": "ok" if _ctl() else "missing"}
    if not _ctl():
        health["status"] = "unhealthy"

    start_time = _deps.get("start_time", 0)
    health["uptime_seconds"] = int(time.time() - start_time) if start_time else 0
    health["version"] = VERSION

    status_code = 200 if health["status"] == "healthy" else 503
    return jsonify(health), status_code
