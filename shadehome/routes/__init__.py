# ShadeHome - routes/__init__.py | see version.py for version info
"""
Flask Blueprint registration.
All API routes are organized in separate modules.
"""

from flask import jsonify


def register_blueprints(app, dependencies):
    """Register all route blueprints with shared dependencies.

    Args:
        app: Flask app instance
        dependencies: dict with shared objects:
            - controller: ShadeController instance
            - task_scheduler: TaskScheduler instance
            - event_bus: EventBus instance
    """
    from .covers import covers_bp, init_covers
    from .schedules import schedules_bp, init_schedules
    from .system import system_bp, init_system

    init_covers(dependencies)
    init_schedules(dependencies)
    init_system(dependencies)

    app.register_blueprint(covers_bp)
    app.register_blueprint(schedules_bp)
    app.register_blueprint(system_bp)


def unavailable():
    return jsonify({"success": False, "error": "Shade controller not available"}), 503


def respond(result, created=False):
    """Map a controller result to an HTTP response.

    Lists and successful dicts -> 200 (201 when created), unknown ids -> 404,
    other failures -> 400.
    """
    if isinstance(result, dict) and result.get("success") is False:
        status = 404 if result.pop("not_found", False) else 400
        return jsonify(result), status
    return jsonify(result), 201 if created else 200
