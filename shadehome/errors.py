# ShadeHome - errors.py | see version.py for version info
"""Exception types used inside the core.

ValidationError is raised by validation helpers and converted into a
``{"success": False, "error": ...}`` result at the controller boundary.
"""


class ShadeHomeError(Exception):
    """Base class for ShadeHome errors."""


class ValidationError(ShadeHomeError):
    """Out-of-range value, malformed input or unknown identifier."""

    def __init__(self, message, not_found=False):
        super().__init__(message)
        self.not_found = not_found


def validate_range(name, value, low, high):
    """Return value as int, raising ValidationError when outside [low, high]."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number {low}-{high}")
    if number < low or number > high:
        raise ValidationError(f"{name} must be {low}-{high}")
    return int(round(number))
