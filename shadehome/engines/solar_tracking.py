# ShadeHome - engines/solar_tracking.py | see version.py for version info
"""
Optional solar tracking: adjusts sun-facing devices for glare and heat
gain after each ephemeris refresh. Disabled unless
``solar_tracking_enabled`` is set in the config.
"""

import logging

from ..constants import LOUVERED_TYPES, MOTOR_IDLE, EVENT_SOLAR_APPLIED
from ..helpers import local_now, utc_iso
from .ephemeris import angle_difference

logger = logging.getLogger("shadehome.engines.solar_tracking")

MIN_ELEVATION_DEG = 5
GLARE_MAX_ELEVATION_DEG = 30
GLARE_MAX_ANGLE_DEG = 45


def tracking_target(device_type, season, elevation, diff):
    """(position, tilt) for a device whose facade the sun is on."""
    glare = elevation < GLARE_MAX_ELEVATION_DEG and diff < GLARE_MAX_ANGLE_DEG
    louvered = device_type in LOUVERED_TYPES
    if season == "summer":
        position = max(0, min(100, 100 - round(elevation * 1.2)))
        if louvered:
            return position, (60 if glare else 45)
        return min(position, 30), 0
    if season == "winter":
        if glare and louvered:
            return 80, 30
        return 100, 0
    if glare:
        return 50, 45
    return 75, 0


class SolarTracker:

    def __init__(self, store, actuator, event_bus):
        self.store = store
        self.actuator = actuator
        self.event_bus = event_bus

    @property
    def enabled(self):
        return bool(self.store.config.get("solar_tracking_enabled"))

    def check(self, now):
        """Returns the ids of devices moved."""
        solar = self.store.solar
        if not self.enabled or not solar.is_daylight or solar.elevation <= MIN_ELEVATION_DEG:
            return []

        season = self.store.current_season(local_now(now, self.store.config))
        reason = f"solar_tracking_{season}"
        moved = []
        for device in list(self.store.devices.values()):
            if not device.is_online or device.motor_status != MOTOR_IDLE:
                continue
            facing_az = device.facing_azimuth
            if facing_az is None:
                continue
            diff = angle_difference(solar.azimuth, facing_az)
            if diff >= 90:
                continue
            position, tilt = tracking_target(device.type, season, solar.elevation, diff)
            if self.actuator.set_device_position(device.id, position, tilt, reason=reason, now=now):
                moved.append(device.id)

        if moved:
            logger.info("Solar tracking (%s) adjusted %d devices", season, len(moved))
            self.event_bus.publish(EVENT_SOLAR_APPLIED, {
                "season": season,
                "azimuth": solar.azimuth,
                "elevation": solar.elevation,
                "devices": moved,
                "timestamp": utc_iso(now),
            }, source="solar_tracking")
        return moved
