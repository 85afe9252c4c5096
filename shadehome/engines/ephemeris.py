# ShadeHome - engines/ephemeris.py | see version.py for version info
"""
Sun position and sunrise/sunset/solar noon (Spencer 1971 declination and
equation of time). Accurate to a few minutes, which is enough for
minute-grained schedules.

Local times use the fixed-offset DST heuristic from helpers, not a
timezone database.
"""

import logging
import math

from ..constants import FACING_AZIMUTHS
from ..helpers import ensure_utc, utc_offset_hours, decimal_hours_to_time
from ..state import SolarState

logger = logging.getLogger("shadehome.engines.ephemeris")

CONDITION_NORMAL = "normal"
CONDITION_MIDNIGHT_SUN = "midnight_sun"
CONDITION_POLAR_NIGHT = "polar_night"

GLARE_ELEVATION_DEG = 25
GLARE_EXPOSURE = 0.7


def _spencer(day_of_year):
    """Declination (radians) and equation of time (minutes)."""
    b = 2 * math.pi * (day_of_year - 1) / 365
    declination = (0.006918 - 0.399912 * math.cos(b) + 0.070257 * math.sin(b)
                   - 0.006758 * math.cos(2 * b) + 0.000907 * math.sin(2 * b)
                   - 0.002697 * math.cos(3 * b) + 0.00148 * math.sin(3 * b))
    eot = 229.18 * (0.000075 + 0.001868 * math.cos(b) - 0.032077 * math.sin(b)
                    - 0.014615 * math.cos(2 * b) - 0.04089 * math.sin(2 * b))
    return declination, eot


def _clamp_unit(x):
    return max(-1.0, min(1.0, x))


def sun_position(latitude, longitude, now):
    """Return (azimuth, elevation) in degrees, unrounded."""
    now = ensure_utc(now)
    lat = math.radians(latitude)
    declination, eot = _spencer(now.timetuple().tm_yday)

    # seconds are ignored
    utc_hours = now.hour + now.minute / 60
    solar_time = utc_hours + longitude / 15 + eot / 60
    # normalised to [-180, 180): negative before solar noon
    hour_angle = math.radians(((solar_time - 12) * 15 + 180) % 360 - 180)

    sin_elev = _clamp_unit(math.sin(lat) * math.sin(declination)
                           + math.cos(lat) * math.cos(declination) * math.cos(hour_angle))
    elevation = math.asin(sin_elev)

    denom = math.cos(lat) * math.cos(elevation)
    if abs(denom) < 1e-12:
        cos_az = 1.0
    else:
        cos_az = _clamp_unit((math.sin(declination) - math.sin(lat) * sin_elev) / denom)
    azimuth = math.degrees(math.acos(cos_az))
    if hour_angle > 0:
        azimuth = 360 - azimuth
    return azimuth, math.degrees(elevation)


def calculate_solar_state(latitude, longitude, now, config=None):
    """Compute a SolarState for the given location and instant.

    Polar night leaves sunrise, sunset and solar_noon as None. Midnight
    sun reports sunrise "00:00" and sunset "24:00".
    """
    now = ensure_utc(now)
    azimuth, elevation = sun_position(latitude, longitude, now)
    declination, eot = _spencer(now.timetuple().tm_yday)
    offset = utc_offset_hours(now, config)

    lat = math.radians(latitude)
    cos_h0 = -math.tan(lat) * math.tan(declination)
    noon_utc = 12 - eot / 60 - longitude / 15

    if -1 <= cos_h0 <= 1:
        h0 = math.degrees(math.acos(cos_h0))
        sunrise_utc = noon_utc - h0 / 15
        sunset_utc = noon_utc + h0 / 15
        sunrise = decimal_hours_to_time(sunrise_utc + offset)
        sunset = decimal_hours_to_time(sunset_utc + offset)
        solar_noon = decimal_hours_to_time((sunrise_utc + sunset_utc) / 2 + offset)
        condition = CONDITION_NORMAL
    elif cos_h0 < -1:
        sunrise, sunset = "00:00", "24:00"
        solar_noon = decimal_hours_to_time(noon_utc + offset)
        condition = CONDITION_MIDNIGHT_SUN
    else:
        sunrise = sunset = solar_noon = None
        condition = CONDITION_POLAR_NIGHT

    return SolarState(
        azimuth=round(azimuth, 2),
        elevation=round(elevation, 2),
        is_daylight=elevation > 0,
        sunrise=sunrise,
        sunset=sunset,
        solar_noon=solar_noon,
        condition=condition,
        calculated_at=now,
    )


def angle_difference(a, b):
    """Smallest angle between two azimuths, 0-180."""
    diff = abs(a - b) % 360
    return 360 - diff if diff > 180 else diff


def facing_exposure(solar, facing):
    """Sun exposure of a facade: 1.0 = sun straight on, 0 = behind or below horizon."""
    facing_az = FACING_AZIMUTHS.get(facing)
    if facing_az is None:
        return {"facing": facing, "angle_difference": None, "exposure": 0.0,
                "glare_risk": False, "optimal_position": 0}
    diff = angle_difference(solar.azimuth, facing_az)
    exposure = (90 - diff) / 90 if diff < 90 and solar.is_daylight else 0.0
    return {
        "facing": facing,
        "angle_difference": round(diff, 2),
        "exposure": round(exposure, 3),
        "glare_risk": solar.elevation < GLARE_ELEVATION_DEG and exposure > GLARE_EXPOSURE,
        "optimal_position": int(round(exposure * 100)),
    }


def exposure_summary(solar):
    return {facing: facing_exposure(solar, facing) for facing in FACING_AZIMUTHS}


class EphemerisEngine:
    """Keeps ``store.solar`` current for the configured location."""

    def __init__(self, store):
        self.store = store

    def refresh(self, now):
        solar = calculate_solar_state(self.store.latitude, self.store.longitude,
                                      now, self.store.config)
        previous = self.store.solar.condition
        self.store.solar = solar

        if solar.condition != previous:
            if solar.condition == CONDITION_POLAR_NIGHT:
                logger.debug("Polar night at lat %.2f: no sunrise/sunset today, "
                             "sun-triggered schedules stay idle", self.store.latitude)
            elif solar.condition == CONDITION_MIDNIGHT_SUN:
                logger.debug("Midnight sun at lat %.2f: sun does not set today",
                             self.store.latitude)
        logger.debug("Sun az=%.2f el=%.2f daylight=%s", solar.azimuth,
                     solar.elevation, solar.is_daylight)
        return solar
