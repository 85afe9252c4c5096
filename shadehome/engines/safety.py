# ShadeHome - engines/safety.py | see version.py for version info
"""
Weather safety interlock. Overrides schedules and rules: runs last in a
full tick and immediately on every weather push, so its writes win.

    wind >= high_wind_retract_speed  -> retract exterior      (high_wind)
    wind >= storm_retract_speed      -> retract exterior      (storm, critical)
    rain >= heavy_rain_retract       -> retract exterior,
                                        close skylight blinds (heavy_rain)
    temp <= frost_protection_temp    -> close exterior        (frost)

wind = max(wind_speed, wind_gust). Every matching category acts.
"""

import logging

from ..constants import SKYLIGHT_TYPES, EVENT_WEATHER_ALERT_RETRACT
from ..helpers import utc_iso

logger = logging.getLogger("shadehome.engines.safety")


class SafetyInterlock:

    def __init__(self, store, actuator, event_bus):
        self.store = store
        self.actuator = actuator
        self.event_bus = event_bus

    def evaluate_alerts(self):
        """Alert types the current weather calls for, in evaluation order."""
        weather = self.store.weather
        thresholds = self.store.thresholds
        wind = weather.effective_wind
        alerts = []
        if wind >= thresholds.high_wind_retract_speed:
            alerts.append("high_wind")
        if wind >= thresholds.storm_retract_speed:
            alerts.append("storm")
        if (weather.rain_intensity or 0) >= thresholds.heavy_rain_retract:
            alerts.append("heavy_rain")
        if weather.temperature is not None and weather.temperature <= thresholds.frost_protection_temp:
            alerts.append("frost")
        return alerts

    def check(self, now):
        """Run one safety pass. Returns the alert list (empty when calm)."""
        alerts = self.evaluate_alerts()
        weather = self.store.weather
        weather.alerts = alerts
        if not alerts:
            return alerts

        if "high_wind" in alerts:
            self._retract_exterior("wind_safety", now)
        if "storm" in alerts:
            self._retract_exterior("storm_safety", now)
        if "heavy_rain" in alerts:
            self._retract_exterior("rain_safety", now)
            self._close_skylights("rain_safety", now)
        if "frost" in alerts:
            self._retract_exterior("frost_protection", now)
            logger.info("Frost protection active at %s°C", weather.temperature)

        severity = "critical" if "storm" in alerts else "warning"
        logger.warning("Weather alerts triggered: %s", ", ".join(alerts))
        self.event_bus.publish(EVENT_WEATHER_ALERT_RETRACT, {
            "alerts": list(alerts),
            "severity": severity,
            "wind": weather.effective_wind,
            "rain": weather.rain_intensity,
            "temperature": weather.temperature,
            "timestamp": utc_iso(now),
        }, source="safety")
        return alerts

    def _retract_exterior(self, reason, now):
        for device in list(self.store.devices.values()):
            if device.is_exterior and device.is_online:
                self.actuator.set_device_position(device.id, 0, 0, reason=reason, now=now)

    def _close_skylights(self, reason, now):
        for device in list(self.store.devices.values()):
            if device.type in SKYLIGHT_TYPES and device.is_online:
                self.actuator.set_device_position(device.id, 0, 0, reason=reason, now=now)
