# ShadeHome - routes/covers.py | see version.py for version info
"""
ShadeHome API Routes - Covers
Device status, manual position/tilt control, calibration, zones,
scenes, position log and usage statistics.
"""

import logging

from flask import Blueprint, request, jsonify

from . import respond, unavailable

logger = logging.getLogger("shadehome.routes.covers")

covers_bp = Blueprint("covers", __name__)

# Module-level dependencies (set by init function)
_deps = {}


def init_covers(dependencies):
    """Initialize cover routes with shared dependencies."""
    global _deps
    _deps = dependencies


def _ctl():
    """Get ShadeController instance."""
    return _deps.get("controller")


# ==============================================================================
# Devices
# ==============================================================================

@covers_bp.route("/api/covers", methods=["GET"])
def get_covers():
    """All devices with current state."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_devices())


@covers_bp.route("/api/covers", methods=["POST"])
def add_cover():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    return respond(ctl.add_device(data), created=True)


@covers_bp.route("/api/covers/<device_id>", methods=["GET"])
def get_cover(device_id):
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_device(device_id))


@covers_bp.route("/api/covers/<device_id>", methods=["DELETE"])
def delete_cover(device_id):
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.remove_device(device_id))


# ==============================================================================
# Manual Control
# ==============================================================================

@covers_bp.route("/api/covers/<device_id>/position", methods=["POST"])
def set_cover_position(device_id):
    """Set cover position (0=closed, 100=open), optional tilt and speed."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    result = ctl.set_position(device_id, data.get("position"),
                              tilt=data.get("tilt"), speed=data.get("speed"))
    return respond(result)


@covers_bp.route("/api/covers/<device_id>/tilt", methods=["POST"])
def set_cover_tilt(device_id):
    """Set slat tilt (0-90) on venetian/vertical blinds."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    return respond(ctl.set_tilt(device_id, data.get("tilt")))


@covers_bp.route("/api/covers/<device_id>/calibrate", methods=["POST"])
def calibrate_cover(device_id):
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.calibrate(device_id))


@covers_bp.route("/api/covers/all/position", methods=["POST"])
def set_all_positions():
    """Move every online device, optionally filtered by type/facing/room/exterior."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    return respond(ctl.set_all_positions(data.get("position"), data.get("filter")))


# ==============================================================================
# Zones & Scenes
# ==============================================================================

@covers_bp.route("/api/zones/<zone_id>/position", methods=["POST"])
def set_zone_position(zone_id):
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    result = ctl.set_group_position(zone_id, data.get("position"),
                                    tilt=data.get("tilt"), preset=data.get("preset"))
    return respond(result)


@covers_bp.route("/api/scenes/<scene_id>/activate", methods=["POST"])
def activate_scene(scene_id):
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.activate_scene(scene_id))


# ==============================================================================
# Log & Statistics
# ==============================================================================

@covers_bp.route("/api/position-log", methods=["GET"])
def get_position_log():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    limit = request.args.get("limit", type=int)
    entries = ctl.get_position_log(device_id=request.args.get("device_id"),
                                   room=request.args.get("room"), limit=limit)
    return jsonify(entries), 200


@covers_bp.route("/api/statistics", methods=["GET"])
def get_statistics():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_statistics(request.args.get("room")))
