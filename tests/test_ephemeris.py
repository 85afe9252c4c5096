"""
Tests for the ephemeris: sun position, sunrise/sunset, polar edge cases,
per-facing exposure.
"""

import logging
from datetime import datetime, timezone, timedelta

import pytest

from shadehome.engines.ephemeris import (
    calculate_solar_state, sun_position, angle_difference, facing_exposure,
    exposure_summary, EphemerisEngine,
    CONDITION_NORMAL, CONDITION_MIDNIGHT_SUN, CONDITION_POLAR_NIGHT,
)
from shadehome.state import SolarState, StateStore

STOCKHOLM = (59.33, 18.07)


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestSunriseSunset:
    """Sunrise, sunset and solar noon as local HH:MM."""

    def test_stockholm_midsummer(self):
        solar = calculate_solar_state(*STOCKHOLM, _utc(2026, 6, 17, 10, 0))
        assert solar.condition == CONDITION_NORMAL
        assert "03:00" <= solar.sunrise <= "04:15"
        assert "21:30" <= solar.sunset <= "22:30"
        assert "12:30" <= solar.solar_noon <= "13:10"

    def test_stockholm_midwinter_short_day(self):
        solar = calculate_solar_state(*STOCKHOLM, _utc(2026, 12, 21, 11, 0))
        assert solar.condition == CONDITION_NORMAL
        assert "08:15" <= solar.sunrise <= "09:15"
        assert "14:30" <= solar.sunset <= "15:30"

    def test_polar_night_at_70_north(self):
        solar = calculate_solar_state(70.0, 18.0, _utc(2026, 12, 21, 11, 0))
        assert solar.condition == CONDITION_POLAR_NIGHT
        assert solar.sunrise is None
        assert solar.sunset is None
        assert solar.solar_noon is None
        assert solar.is_daylight is False

    def test_midnight_sun_at_70_north(self):
        solar = calculate_solar_state(70.0, 18.0, _utc(2026, 6, 21, 23, 0))
        assert solar.condition == CONDITION_MIDNIGHT_SUN
        assert solar.sunrise == "00:00"
        assert solar.sunset == "24:00"
        assert solar.solar_noon is not None
        assert solar.is_daylight is True

    def test_winter_time_uses_standard_offset(self):
        # Same instant-of-day, summer vs winter: local noon shifts by the DST hour
        summer = calculate_solar_state(*STOCKHOLM, _utc(2026, 10, 24, 10, 0))
        winter = calculate_solar_state(*STOCKHOLM, _utc(2026, 10, 26, 10, 0))
        s_h, s_m = map(int, summer.solar_noon.split(":"))
        w_h, w_m = map(int, winter.solar_noon.split(":"))
        diff = (s_h * 60 + s_m) - (w_h * 60 + w_m)
        assert 55 <= diff <= 65


class TestSunPosition:
    """Azimuth/elevation."""

    def test_elevation_at_solar_noon_is_daily_maximum(self):
        day = _utc(2026, 6, 17)
        solar = calculate_solar_state(*STOCKHOLM, day)
        hh, mm = map(int, solar.solar_noon.split(":"))
        # local summer offset is +2h
        noon_utc = day.replace(hour=hh, minute=mm) - timedelta(hours=2)

        elevations = [sun_position(*STOCKHOLM, day + timedelta(minutes=m))[1] for m in range(1440)]
        noon_elevation = sun_position(*STOCKHOLM, noon_utc)[1]
        assert max(elevations) - noon_elevation <= 0.1

    def test_azimuth_south_at_solar_noon(self):
        day = _utc(2026, 3, 20)
        solar = calculate_solar_state(*STOCKHOLM, day)
        hh, mm = map(int, solar.solar_noon.split(":"))
        noon_utc = day.replace(hour=hh, minute=mm) - timedelta(hours=1)
        azimuth, elevation = sun_position(*STOCKHOLM, noon_utc)
        assert abs(azimuth - 180) < 3
        assert 25 < elevation < 35

    def test_values_are_rounded_to_hundredths(self):
        solar = calculate_solar_state(*STOCKHOLM, _utc(2026, 6, 17, 9, 13))
        assert solar.azimuth == round(solar.azimuth, 2)
        assert solar.elevation == round(solar.elevation, 2)
        assert 0 <= solar.azimuth <= 360
        assert -90 <= solar.elevation <= 90

    def test_night_is_not_daylight(self):
        solar = calculate_solar_state(*STOCKHOLM, _utc(2026, 12, 21, 23, 0))
        assert solar.elevation < 0
        assert solar.is_daylight is False

    def test_seconds_are_ignored(self):
        a = calculate_solar_state(*STOCKHOLM, _utc(2026, 6, 17, 9, 13, 0))
        b = calculate_solar_state(*STOCKHOLM, _utc(2026, 6, 17, 9, 13, 59))
        assert a.azimuth == b.azimuth
        assert a.elevation == b.elevation


class TestExposure:
    """Per-facing exposure, glare and optimal position."""

    def test_angle_difference_wraps(self):
        assert angle_difference(350, 10) == 20
        assert angle_difference(10, 350) == 20
        assert angle_difference(0, 180) == 180

    def test_sun_straight_on(self):
        solar = SolarState(azimuth=180, elevation=20, is_daylight=True)
        south = facing_exposure(solar, "south")
        assert south["exposure"] == 1.0
        assert south["glare_risk"] is True
        assert south["optimal_position"] == 100

    def test_partial_exposure(self):
        solar = SolarState(azimuth=180, elevation=40, is_daylight=True)
        southeast = facing_exposure(solar, "southeast")
        assert southeast["exposure"] == 0.5
        assert southeast["glare_risk"] is False
        assert southeast["optimal_position"] == 50

    def test_facade_away_from_sun(self):
        solar = SolarState(azimuth=180, elevation=40, is_daylight=True)
        assert facing_exposure(solar, "east")["exposure"] == 0.0
        assert facing_exposure(solar, "north")["exposure"] == 0.0

    def test_no_exposure_at_night(self):
        solar = SolarState(azimuth=180, elevation=-10, is_daylight=False)
        assert facing_exposure(solar, "south")["exposure"] == 0.0

    def test_summary_covers_all_facings(self):
        summary = exposure_summary(SolarState(azimuth=90, elevation=10, is_daylight=True))
        assert len(summary) == 8
        assert summary["east"]["exposure"] == 1.0


class TestEphemerisEngine:

    def test_refresh_updates_store(self):
        store = StateStore()
        now = _utc(2026, 6, 17, 10, 0)
        solar = EphemerisEngine(store).refresh(now)
        assert store.solar is solar
        assert solar.calculated_at == now

    def test_polar_night_logged_as_degenerate_condition(self, caplog):
        caplog.set_level(logging.DEBUG, logger="shadehome.engines.ephemeris")
        store = StateStore({"latitude": 70.0, "longitude": 18.0})
        EphemerisEngine(store).refresh(_utc(2026, 12, 21, 11, 0))
        assert "Polar night" in caplog.text
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    @pytest.mark.parametrize("lat", [-60.0, 0.0, 45.0, 65.0])
    def test_sunrise_before_sunset(self, lat):
        solar = calculate_solar_state(lat, 10.0, _utc(2026, 3, 1, 12, 0))
        assert solar.sunrise < solar.sunset
