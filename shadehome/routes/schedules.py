# ShadeHome - routes/schedules.py | see version.py for version info
"""
ShadeHome API Routes - Schedules & Automation Rules
"""

import logging

from flask import Blueprint, request

from . import respond, unavailable

logger = logging.getLogger("shadehome.routes.schedules")

schedules_bp = Blueprint("schedules", __name__)

_deps = {}


def init_schedules(dependencies):
    global _deps
    _deps = dependencies


def _ctl():
    return _deps.get("controller")


# ==============================================================================
# Schedules
# ==============================================================================

@schedules_bp.route("/api/schedules", methods=["GET"])
def get_schedules():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_schedules())


@schedules_bp.route("/api/schedules", methods=["POST"])
def create_schedule():
    """Create a time, sunrise or sunset schedule."""
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    return respond(ctl.add_schedule(data), created=True)


@schedules_bp.route("/api/schedules/<schedule_id>", methods=["DELETE"])
def delete_schedule(schedule_id):
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.remove_schedule(schedule_id))


# ==============================================================================
# Automation Rules
# ==============================================================================

@schedules_bp.route("/api/rules", methods=["GET"])
def get_rules():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.get_rules())


@schedules_bp.route("/api/rules", methods=["POST"])
def create_rule():
    ctl = _ctl()
    if not ctl:
        return unavailable()
    data = request.get_json(silent=True) or {}
    return respond(ctl.add_rule(data), created=True)


@schedules_bp.route("/api/rules/<rule_id>", methods=["DELETE"])
def delete_rule(rule_id):
    ctl = _ctl()
    if not ctl:
        return unavailable()
    return respond(ctl.remove_rule(rule_id))
