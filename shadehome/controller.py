# ShadeHome - controller.py | see version.py for version info
"""
ShadeController: single owner of the StateStore.

Wires the engines together, registers the periodic cycles on the
TaskScheduler and exposes the public API. API methods return dicts and
never raise ValidationError across the boundary.

Evaluation order inside a full tick:
    ephemeris -> schedules -> rules -> safety
Later writers win; safety always runs last.
"""

import functools
import logging
import threading
from datetime import datetime, timezone

from .constants import (
    INTERVAL_EPHEMERIS, INTERVAL_SCHEDULES, INTERVAL_RULES, INTERVAL_SAFETY,
    INTERVAL_STATISTICS, INTERVAL_DAILY_RESET, INTERVAL_HEALTH,
    POSITION_MIN, POSITION_MAX, TILT_MIN, TILT_MAX, LOUVERED_TYPES,
    ZONE_PRESETS, SEASONS, ALL_DEVICES, DEFAULT_CONFIG, EVENT_SCENE_APPLIED,
)
from .errors import ValidationError, validate_range
from .event_bus import EventBus
from .helpers import ensure_utc, utc_iso, local_now
from .state import (
    StateStore, Device, Zone, Scene, Schedule, AutomationRule,
    OccupancyState, SafetyThresholds, SPEEDS, parse_timestamp,
)
from .task_scheduler import TaskScheduler
from .engines import (
    EphemerisEngine, Actuator, ScheduleEngine, RuleEngine,
    SafetyInterlock, StatisticsCollector, SolarTracker, exposure_summary,
)
from .version import VERSION

logger = logging.getLogger("shadehome.controller")

WEATHER_FIELDS = ("temperature", "wind_speed", "wind_gust", "rain_intensity", "humidity", "lux")


def api_call(func):
    """Serialise on the controller lock; turn ValidationError into a result dict."""
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            try:
                return func(self, *args, **kwargs)
            except ValidationError as e:
                logger.debug("%s rejected: %s", func.__name__, e)
                result = {"success": False, "error": str(e)}
                if e.not_found:
                    result["not_found"] = True
                return result
    return wrapper


def _float(name, value, low=None, high=None):
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{name} required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if (low is not None and number < low) or (high is not None and number > high):
        raise ValidationError(f"{name} must be {low}-{high}")
    return number


class ShadeController:
    """Owns state, engines and cycles for one home."""

    def __init__(self, config=None, scheduler=None, event_bus=None, clock=None,
                 energy_strategy=None):
        self.store = StateStore(config)
        self.scheduler = scheduler or TaskScheduler()
        self.event_bus = event_bus or EventBus()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()
        self._is_running = False

        self.actuator = Actuator(self.store, self.scheduler, self.event_bus, lock=self._lock)
        self.ephemeris = EphemerisEngine(self.store)
        self.schedules = ScheduleEngine(self.store, self.actuator, self.event_bus)
        self.rules = RuleEngine(self.store, self.actuator, self.event_bus, energy_strategy)
        self.safety = SafetyInterlock(self.store, self.actuator, self.event_bus)
        self.statistics = StatisticsCollector(self.store, self.event_bus)
        self.solar_tracker = SolarTracker(self.store, self.actuator, self.event_bus)

    def _now(self, now=None):
        return ensure_utc(now) if now is not None else ensure_utc(self._clock())

    # ── Lifecycle ───────────────────────────────────────────

    def start(self, start_scheduler=True):
        """Register the periodic cycles and (optionally) start the worker."""
        s = self.scheduler
        s.register("ephemeris", self.run_ephemeris, INTERVAL_EPHEMERIS, run_immediately=True)
        s.register("schedules", self.run_schedules, INTERVAL_SCHEDULES)
        s.register("rules", self.run_rules, INTERVAL_RULES)
        s.register("safety", self.run_safety, INTERVAL_SAFETY)
        s.register("statistics", self.collect_statistics, INTERVAL_STATISTICS)
        s.register("daily_reset", self.daily_reset, INTERVAL_DAILY_RESET, run_immediately=True)
        s.register("health_check", self.health_check, INTERVAL_HEALTH)
        self._is_running = True
        if start_scheduler:
            s.start()
        logger.info("ShadeController started (%d devices, %d zones)",
                    len(self.store.devices), len(self.store.zones))

    def stop(self):
        self._is_running = False
        self.scheduler.stop()
        logger.info("ShadeController stopped")

    # ── Cycles ──────────────────────────────────────────────

    def run_ephemeris(self, now=None):
        with self._lock:
            now = self._now(now)
            solar = self.ephemeris.refresh(now)
            self.solar_tracker.check(now)
            return solar

    def run_schedules(self, now=None):
        with self._lock:
            now = self._now(now)
            self.ephemeris.refresh(now)
            return self.schedules.check(now)

    def run_rules(self, now=None):
        with self._lock:
            now = self._now(now)
            self.ephemeris.refresh(now)
            return self.rules.check(now)

    def run_safety(self, now=None):
        with self._lock:
            return self.safety.check(self._now(now))

    def collect_statistics(self, now=None):
        with self._lock:
            self.statistics.collect(self._now(now))

    def daily_reset(self, now=None):
        with self._lock:
            return self.statistics.daily_reset(self._now(now))

    def health_check(self, now=None):
        with self._lock:
            return self.statistics.health_check(self._now(now))

    def run_tick(self, now=None):
        """One full tick: ephemeris, schedules, rules, then safety."""
        with self._lock:
            now = self._now(now)
            self.ephemeris.refresh(now)
            self.solar_tracker.check(now)
            fired_schedules = self.schedules.check(now)
            fired_rules = self.rules.check(now)
            alerts = self.safety.check(now)
            return {
                "schedules": fired_schedules,
                "rules": fired_rules,
                "alerts": alerts,
                "timestamp": utc_iso(now),
            }

    # ── Inventory ───────────────────────────────────────────

    @api_call
    def load_inventory(self, devices, zones=None, scenes=None):
        """Replace the device/zone/scene inventory."""
        parsed_devices = [Device.from_dict(d) for d in devices or []]
        parsed_zones = [Zone.from_dict(z) for z in zones or []]
        parsed_scenes = [Scene.from_dict(s) for s in scenes or []]

        self.store.devices.clear()
        self.store.statistics.clear()
        for device in parsed_devices:
            self.store.add_device(device)
        self.store.zones = {}
        for zone in parsed_zones:
            unknown = [d for d in zone.device_ids if d not in self.store.devices]
            if unknown:
                logger.warning("Zone %s references unknown devices: %s", zone.id, ", ".join(unknown))
                zone.device_ids = [d for d in zone.device_ids if d in self.store.devices]
            self.store.zones[zone.id] = zone
        self.store.scenes = {s.id: s for s in parsed_scenes}
        logger.info("Inventory loaded: %d devices, %d zones, %d scenes",
                    len(parsed_devices), len(parsed_zones), len(parsed_scenes))
        return {"success": True, "devices": len(self.store.devices),
                "zones": len(self.store.zones), "scenes": len(self.store.scenes)}

    @api_call
    def add_device(self, data):
        if not data.get("name"):
            raise ValidationError("Device name required")
        device = Device.from_dict(data)
        self.store.add_device(device)
        logger.info("Device added: %s (%s)", device.id, device.type)
        return {"success": True, "device_id": device.id}

    @api_call
    def remove_device(self, device_id):
        if device_id not in self.store.devices:
            raise ValidationError(f"Device not found: {device_id}", not_found=True)
        for zone in self.store.zones.values():
            if device_id in zone.device_ids:
                zone.device_ids.remove(device_id)
        self.scheduler.unregister(f"motion:{device_id}")
        self.scheduler.unregister(f"calibration:{device_id}")
        del self.store.devices[device_id]
        self.store.statistics.pop(device_id, None)
        logger.info("Device removed: %s", device_id)
        return {"success": True, "removed": device_id}

    def _device(self, device_id):
        device = self.store.devices.get(device_id)
        if device is None:
            raise ValidationError(f"Device not found: {device_id}", not_found=True)
        return device

    # ── Positioning ─────────────────────────────────────────

    @api_call
    def set_position(self, device_id, position, tilt=None, speed=None, now=None):
        device = self._device(device_id)
        position = validate_range("position", position, POSITION_MIN, POSITION_MAX)
        if tilt is not None:
            tilt = validate_range("tilt", tilt, TILT_MIN, TILT_MAX)
        if speed is not None and speed not in SPEEDS:
            raise ValidationError(f"speed must be one of {', '.join(SPEEDS)}")

        if not device.is_online:
            return {"success": True, "device_id": device_id, "applied": False,
                    "skipped": "offline", "position": device.position, "tilt": device.tilt}
        if speed is not None:
            device.speed = speed
        applied = self.actuator.set_device_position(device_id, position, tilt,
                                                    reason="api_set_position", now=self._now(now))
        return {"success": True, "device_id": device_id, "position": device.position,
                "tilt": device.tilt, "applied": applied}

    @api_call
    def set_tilt(self, device_id, tilt, now=None):
        device = self._device(device_id)
        if device.type not in LOUVERED_TYPES:
            raise ValidationError(f"Tilt not supported for {device.type}")
        tilt = validate_range("tilt", tilt, TILT_MIN, TILT_MAX)
        if not device.is_online:
            return {"success": True, "device_id": device_id, "applied": False,
                    "skipped": "offline", "tilt": device.tilt}
        applied = self.actuator.set_device_position(device_id, None, tilt,
                                                    reason="api_set_tilt", now=self._now(now))
        return {"success": True, "device_id": device_id, "tilt": device.tilt, "applied": applied}

    @api_call
    def set_group_position(self, zone_id, position=None, tilt=None, preset=None, now=None):
        zone = self.store.zones.get(zone_id)
        if zone is None:
            raise ValidationError(f"Zone not found: {zone_id}", not_found=True)
        if preset is not None:
            if preset not in ZONE_PRESETS:
                raise ValidationError(f"Unknown preset: {preset}")
            values = ZONE_PRESETS[preset]
            position = values["position"] if values["position"] is not None else position
            tilt = values["tilt"] if values["tilt"] is not None else tilt
        position = validate_range("position", position, POSITION_MIN, POSITION_MAX)
        if tilt is not None:
            tilt = validate_range("tilt", tilt, TILT_MIN, TILT_MAX)

        now = self._now(now)
        changed = self._apply_zone(zone, position, tilt, "api_set_group_position", now)
        zone.active_preset = preset
        zone.last_changed = now
        return {"success": True, "zone_id": zone_id, "position": position, "tilt": tilt,
                "devices_affected": len(zone.device_ids), "devices_changed": changed}

    def _apply_zone(self, zone, position, tilt, reason, now):
        changed = 0
        for device_id in zone.device_ids:
            if self.actuator.set_device_position(device_id, position, tilt, reason=reason, now=now):
                changed += 1
        return changed

    @api_call
    def set_all_positions(self, position, filter=None, now=None):
        position = validate_range("position", position, POSITION_MIN, POSITION_MAX)
        filter = filter or {}
        now = self._now(now)
        affected = 0
        for device in list(self.store.devices.values()):
            if not device.is_online:
                continue
            if filter.get("type") and device.type != filter["type"]:
                continue
            if filter.get("facing") and device.facing != filter["facing"]:
                continue
            if filter.get("room") and device.room != filter["room"]:
                continue
            if filter.get("exterior_only") and not device.is_exterior:
                continue
            if self.actuator.set_device_position(device.id, position, 0,
                                                 reason="api_set_all_positions", now=now):
                affected += 1
        return {"success": True, "affected": affected, "position": position}

    @api_call
    def calibrate(self, device_id, now=None):
        device = self._device(device_id)
        if not device.is_online:
            return {"success": True, "device_id": device_id, "applied": False, "skipped": "offline"}
        duration = self.actuator.calibrate(device_id, now=self._now(now))
        return {"success": True, "device_id": device_id, "status": device.motor_status,
                "estimated_time_seconds": duration}

    @api_call
    def activate_scene(self, scene_id, now=None):
        scene = self.store.scenes.get(scene_id)
        if scene is None:
            raise ValidationError(f"Unknown scene: {scene_id}", not_found=True)
        now = self._now(now)
        for other in self.store.scenes.values():
            other.is_active = False
        scene.is_active = True
        scene.last_triggered = now

        reason = f"scene_{scene_id}"
        zones_applied = 0
        for action in scene.actions:
            if action["zone"] == ALL_DEVICES:
                zones = list(self.store.zones.values())
            else:
                zones = [self.store.zones[action["zone"]]] if action["zone"] in self.store.zones else []
            for zone in zones:
                self._apply_zone(zone, action["position"], action["tilt"], reason, now)
                zones_applied += 1
        logger.info("Scene '%s' activated (%d zones)", scene.name, zones_applied)
        self.event_bus.publish(EVENT_SCENE_APPLIED, {
            "scene_id": scene_id,
            "name": scene.name,
            "zones_applied": zones_applied,
            "timestamp": utc_iso(now),
        }, source="controller")
        return {"success": True, "scene_id": scene_id, "zones_applied": zones_applied}

    # ── Schedules & rules ───────────────────────────────────

    @api_call
    def add_schedule(self, data):
        data = dict(data or {})
        if not data.get("name"):
            raise ValidationError("Schedule name required")
        data.setdefault("id", f"sched-{len(self.store.schedules) + 1}-{int(self._now().timestamp())}")
        schedule = Schedule.from_dict(data)
        for action in schedule.actions:
            if action.device_id != ALL_DEVICES and action.device_id not in self.store.devices:
                raise ValidationError(f"Device not found: {action.device_id}")
        self.store.schedules[schedule.id] = schedule
        logger.info("Schedule added: %s (%s)", schedule.name, schedule.trigger_type)
        return {"success": True, "schedule_id": schedule.id}

    @api_call
    def remove_schedule(self, schedule_id):
        if schedule_id not in self.store.schedules:
            raise ValidationError(f"Schedule not found: {schedule_id}", not_found=True)
        schedule = self.store.schedules.pop(schedule_id)
        logger.info("Schedule removed: %s", schedule.name)
        return {"success": True, "schedule_id": schedule_id}

    @api_call
    def get_schedules(self):
        return [s.to_dict() for s in self.store.schedules.values()]

    @api_call
    def add_rule(self, data):
        data = dict(data or {})
        if not data.get("name"):
            raise ValidationError("Rule name required")
        data.setdefault("id", f"rule-{len(self.store.rules) + 1}-{int(self._now().timestamp())}")
        rule = AutomationRule.from_dict(data)
        self.store.rules[rule.id] = rule
        logger.info("Automation rule added: %s (%s %s %s)", rule.name, rule.trigger,
                    rule.condition, rule.value)
        return {"success": True, "rule_id": rule.id}

    @api_call
    def remove_rule(self, rule_id):
        if rule_id not in self.store.rules:
            raise ValidationError(f"Rule not found: {rule_id}", not_found=True)
        rule = self.store.rules.pop(rule_id)
        logger.info("Automation rule removed: %s", rule.name)
        return {"success": True, "rule_id": rule_id}

    @api_call
    def get_rules(self):
        return [r.to_dict() for r in self.store.rules.values()]

    # ── Environment inputs ──────────────────────────────────

    @api_call
    def update_weather(self, data, now=None):
        """Apply a weather push and run the safety interlock immediately."""
        data = data or {}
        updates = {}
        for key in WEATHER_FIELDS:
            if key in data and data[key] is not None:
                updates[key] = _float(key, data[key])
        if not updates:
            raise ValidationError("No weather readings supplied")
        now = self._now(now)
        weather = self.store.weather
        for key, value in updates.items():
            setattr(weather, key, value)
        weather.updated_at = now
        alerts = self.safety.check(now)
        return {"success": True, "weather": weather.to_dict(), "alerts": alerts}

    @api_call
    def update_occupancy(self, room_id, occupied, timestamp=None):
        if not room_id:
            raise ValidationError("room_id required")
        ts = parse_timestamp(timestamp) if timestamp is not None else self._now()
        occ = self.store.occupancy.get(room_id) or OccupancyState()
        if occupied:
            occ.last_seen = ts
        elif occ.occupied or occ.last_seen is None:
            # start of the empty period
            occ.last_seen = ts
        occ.occupied = bool(occupied)
        occ.updated_at = ts
        self.store.occupancy[room_id] = occ
        return {"success": True, "room_id": room_id, **occ.to_dict()}

    @api_call
    def set_location(self, latitude, longitude, now=None):
        self.store.latitude = _float("latitude", latitude, -90, 90)
        self.store.longitude = _float("longitude", longitude, -180, 180)
        self.store.config["latitude"] = self.store.latitude
        self.store.config["longitude"] = self.store.longitude
        self.ephemeris.refresh(self._now(now))
        logger.info("Location updated: %.4f, %.4f", self.store.latitude, self.store.longitude)
        return {"success": True, "latitude": self.store.latitude, "longitude": self.store.longitude}

    @api_call
    def set_season(self, season):
        """Force a season; None returns to the month-based season."""
        if season is not None and season not in SEASONS:
            raise ValidationError(f"Unknown season: {season}")
        self.store.season_override = season
        self.store.config["season"] = season
        return {"success": True, "season": self.current_season()}

    @api_call
    def apply_config(self, updates):
        """Apply config overrides (e.g. loaded from the settings store)."""
        unknown = [k for k in updates if k not in DEFAULT_CONFIG]
        if unknown:
            raise ValidationError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        config = dict(self.store.config)
        config.update(updates)
        try:
            thresholds = SafetyThresholds.from_config(config)
        except (TypeError, ValueError):
            raise ValidationError("Safety thresholds must be numbers")
        if config.get("season") is not None and config["season"] not in SEASONS:
            raise ValidationError(f"Unknown season: {config['season']}")
        latitude = _float("latitude", config["latitude"], -90, 90)
        longitude = _float("longitude", config["longitude"], -180, 180)

        self.store.config = config
        self.store.thresholds = thresholds
        self.store.latitude, self.store.longitude = latitude, longitude
        self.store.season_override = config.get("season")
        return {"success": True, "config": dict(config)}

    def current_season(self, now=None):
        return self.store.current_season(local_now(self._now(now), self.store.config))

    # ── Read models ─────────────────────────────────────────

    @api_call
    def get_solar_data(self, now=None):
        now = self._now(now)
        solar = self.ephemeris.refresh(now)
        return {
            "sun": solar.to_dict(),
            "window_exposure": exposure_summary(solar),
            "season": self.current_season(now),
            "location": {"latitude": self.store.latitude, "longitude": self.store.longitude},
            "timestamp": utc_iso(now),
        }

    @api_call
    def get_statistics(self, room_id=None):
        report = self.statistics.report(room_id)
        report["timestamp"] = utc_iso(self._now())
        return report

    @api_call
    def get_devices(self):
        return [d.to_dict() for d in self.store.devices.values()]

    @api_call
    def get_device(self, device_id):
        return self._device(device_id).to_dict()

    @api_call
    def get_status(self):
        active_scene = next((s.id for s in self.store.scenes.values() if s.is_active), None)
        return {
            "version": VERSION,
            "running": self._is_running,
            "devices": [d.to_dict() for d in self.store.devices.values()],
            "zones": [z.to_dict() for z in self.store.zones.values()],
            "scenes": [s.to_dict() for s in self.store.scenes.values()],
            "active_scene": active_scene,
            "solar": self.store.solar.to_dict(),
            "weather": self.store.weather.to_dict(),
            "season": self.current_season(),
            "schedules": len(self.store.schedules),
            "rules": len(self.store.rules),
            "occupancy": {room: occ.to_dict() for room, occ in self.store.occupancy.items()},
            "solar_tracking_enabled": self.solar_tracker.enabled,
            "events": self.event_bus.get_stats(),
        }

    @api_call
    def get_weather_status(self):
        return {
            "current": self.store.weather.to_dict(),
            "thresholds": self.store.thresholds.to_dict(),
            "timestamp": utc_iso(self._now()),
        }

    @api_call
    def get_position_log(self, device_id=None, room=None, limit=None):
        entries = self.store.position_log
        if device_id:
            entries = [e for e in entries if e.device_id == device_id]
        if room:
            entries = [e for e in entries if e.room == room]
        if limit:
            entries = entries[-int(limit):]
        return [e.to_dict() for e in entries]
