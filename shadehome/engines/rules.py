# ShadeHome - engines/rules.py | see version.py for version info
"""
Automation rules: condition -> action with cooldown and season gating.

Triggers: temperature, humidity, light_level, occupancy
Actions:  close, open, tilt_45, energy_position, restore_previous
"""

import logging

from ..constants import LUX_PER_ELEVATION_DEG, EVENT_RULE_APPLIED
from ..helpers import local_now, utc_iso
from .ephemeris import facing_exposure

logger = logging.getLogger("shadehome.engines.rules")


def default_energy_position(device, season, is_daylight, solar):
    """Energy-saving (position, tilt) for a device.

    Summer blocks heat gain on sun-exposed facades, winter lets it in.
    """
    if not is_daylight:
        return 0, 0
    sun = facing_exposure(solar, device.facing)
    if season == "summer":
        return (10 if sun["exposure"] > 0.5 else 50), (60 if sun["glare_risk"] else 30)
    if season == "winter":
        return (90 if sun["exposure"] > 0.3 else 40), 0
    return 60, 15


def favorite_bucket(hour):
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def estimated_lux(weather, solar):
    """Live lux reading when available, otherwise derived from sun elevation."""
    if weather.lux is not None:
        return float(weather.lux)
    if not solar.is_daylight:
        return 0.0
    return max(0.0, solar.elevation * LUX_PER_ELEVATION_DEG)


class RuleEngine:
    """Evaluates ``store.rules`` in insertion order.

    ``energy_strategy`` is called as ``(device, season, is_daylight, solar)``
    and returns ``(position, tilt)``.
    """

    def __init__(self, store, actuator, event_bus, energy_strategy=None):
        self.store = store
        self.actuator = actuator
        self.event_bus = event_bus
        self.energy_strategy = energy_strategy or default_energy_position

    def check(self, now):
        """Evaluate all rules once. Returns the ids that fired."""
        local = local_now(now, self.store.config)
        season = self.store.current_season(local)
        fired = []

        for rule in list(self.store.rules.values()):
            if not rule.enabled:
                continue
            if rule.last_triggered_at is not None:
                elapsed_min = (now - rule.last_triggered_at).total_seconds() / 60.0
                if elapsed_min < rule.cooldown_minutes:
                    continue
            if rule.season_restriction and rule.season_restriction != season:
                continue

            triggered, rooms = self._evaluate(rule, now)
            if not triggered:
                continue

            affected = self._execute(rule, rooms, season, local, now)
            rule.last_triggered_at = now
            fired.append(rule.id)
            logger.info("Automation rule '%s' triggered (%d devices)", rule.name, affected)
            self.event_bus.publish(EVENT_RULE_APPLIED, {
                "rule_id": rule.id,
                "name": rule.name,
                "action": rule.action,
                "devices_affected": affected,
                "timestamp": utc_iso(now),
            }, source="rules")
        return fired

    # ── Conditions ──────────────────────────────────────────

    def _evaluate(self, rule, now):
        """Return (triggered, matched_rooms). matched_rooms is only set for occupancy."""
        weather = self.store.weather
        if rule.trigger == "occupancy":
            return self._evaluate_occupancy(rule, now)

        if rule.trigger == "temperature":
            reading = weather.temperature
        elif rule.trigger == "humidity":
            reading = weather.humidity
        else:
            reading = estimated_lux(weather, self.store.solar)

        if reading is None:
            return False, None
        if rule.condition == "above":
            return reading > rule.value, None
        return reading < rule.value, None

    def _evaluate_occupancy(self, rule, now):
        rooms = rule.target_rooms or list(self.store.occupancy)
        matched = []
        for room in rooms:
            occ = self.store.occupancy.get(room)
            if occ is None:
                continue
            if rule.condition == "occupied" and occ.occupied:
                matched.append(room)
            elif rule.condition == "unoccupied" and not occ.occupied:
                if rule.value <= 0 or occ.empty_minutes(now) >= rule.value:
                    matched.append(room)
        return bool(matched), matched

    # ── Targets & actions ───────────────────────────────────

    def target_devices(self, rule, rooms=None):
        room_filter = rooms if rooms is not None else rule.target_rooms
        result = []
        for device in self.store.devices.values():
            if rule.target_facing and device.facing not in rule.target_facing:
                continue
            if room_filter and device.room not in room_filter:
                continue
            result.append(device)
        return result

    def _execute(self, rule, rooms, season, local, now):
        reason = f"rule_{rule.id}"
        solar = self.store.solar
        affected = 0
        for device in self.target_devices(rule, rooms):
            if not device.is_online:
                continue
            if rule.action == "close":
                position, tilt = 0, 0
            elif rule.action == "open":
                position, tilt = 100, 0
            elif rule.action == "tilt_45":
                position, tilt = device.position, 45
            elif rule.action == "energy_position":
                position, tilt = self.energy_strategy(device, season, solar.is_daylight, solar)
            else:
                position = device.favorite_positions.get(favorite_bucket(local.hour))
                if position is None:
                    continue
                tilt = 0
            if self.actuator.set_device_position(device.id, position, tilt, reason=reason, now=now):
                affected += 1
        return affected
