# ShadeHome - state.py | see version.py for version info
"""
In-memory domain model.

The Controller owns one StateStore and hands it to every engine by
reference. Device position/tilt/motor fields are written only by the
actuator (engines/actuator.py); everything else here is plain data.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict

from .constants import (
    DEVICE_TYPES, FACING_AZIMUTHS, MOTOR_IDLE, POSITION_MIN, POSITION_MAX,
    TILT_MIN, TILT_MAX, WEEKDAYS, SCHEDULE_TRIGGERS, TRIGGER_TIME, ALL_DEVICES,
    RULE_TRIGGERS, RULE_CONDITIONS, RULE_ACTIONS, SEASONS, DEFAULT_CONFIG,
)
from .errors import ValidationError, validate_range
from .helpers import utc_iso, ensure_utc, parse_time_str, season_for_month

SPEEDS = ("slow", "normal", "fast")
FAVORITE_BUCKETS = ("morning", "afternoon", "evening", "night")
DEFAULT_FAVORITES = {"morning": 80, "afternoon": 50, "evening": 10, "night": 0}


def _clamp(value, low, high, name="value"):
    try:
        value = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{name} must be a number")
    return max(low, min(high, value))


def parse_timestamp(value):
    if value is None or isinstance(value, datetime):
        return ensure_utc(value) if value else None
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value}")


def _str_list(value, name, allowed=None, lower=True):
    if value in (None, "", []):
        return None
    if isinstance(value, str):
        value = [value]
    items = [str(v).lower() if lower else str(v) for v in value]
    if allowed is not None:
        bad = [v for v in items if v not in allowed]
        if bad:
            raise ValidationError(f"Invalid {name}: {', '.join(bad)}")
    return items


# ==============================================================================
# Devices & zones
# ==============================================================================

@dataclass
class Device:
    """A single motorised window covering."""
    id: str
    name: str
    room: str
    type: str = "roller_blind"
    facing: Optional[str] = None
    is_exterior: bool = False
    is_street_facing: bool = False
    position: int = 100
    target_position: int = 100
    tilt: int = 0
    target_tilt: int = 0
    motor_status: str = MOTOR_IDLE
    motor_cycle_count: int = 0
    battery_level: float = 100.0
    is_online: bool = True
    speed: str = "normal"
    last_moved: Optional[datetime] = None
    last_calibrated: Optional[datetime] = None
    favorite_positions: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_FAVORITES))

    @property
    def facing_azimuth(self) -> Optional[int]:
        return FACING_AZIMUTHS.get(self.facing) if self.facing else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "room": self.room,
            "type": self.type,
            "facing": self.facing,
            "is_exterior": self.is_exterior,
            "is_street_facing": self.is_street_facing,
            "position": self.position,
            "target_position": self.target_position,
            "tilt": self.tilt,
            "target_tilt": self.target_tilt,
            "motor_status": self.motor_status,
            "motor_cycle_count": self.motor_cycle_count,
            "battery_level": round(self.battery_level, 2),
            "is_online": self.is_online,
            "speed": self.speed,
            "last_moved": utc_iso(self.last_moved),
            "last_calibrated": utc_iso(self.last_calibrated),
            "favorite_positions": dict(self.favorite_positions),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Device":
        device_id = data.get("id")
        if not device_id:
            raise ValidationError("Device id required")
        dtype = data.get("type", "roller_blind")
        if dtype not in DEVICE_TYPES:
            raise ValidationError(f"Unknown device type: {dtype}")
        facing = data.get("facing")
        if facing is not None and facing not in FACING_AZIMUTHS:
            raise ValidationError(f"Unknown facing: {facing}")
        speed = data.get("speed", "normal")
        if speed not in SPEEDS:
            raise ValidationError(f"Unknown speed: {speed}")

        position = _clamp(data.get("position", 100), POSITION_MIN, POSITION_MAX, "position")
        tilt = _clamp(data.get("tilt", 0), TILT_MIN, TILT_MAX, "tilt")
        favorites = dict(DEFAULT_FAVORITES)
        favorites.update({
            k: _clamp(v, POSITION_MIN, POSITION_MAX, f"favorite_positions.{k}")
            for k, v in (data.get("favorite_positions") or {}).items()
            if k in FAVORITE_BUCKETS
        })
        try:
            cycles = int(data.get("motor_cycle_count", 0))
            battery = float(data.get("battery_level", 100.0))
        except (TypeError, ValueError):
            raise ValidationError("motor_cycle_count and battery_level must be numbers")
        return cls(
            id=str(device_id),
            name=data.get("name", str(device_id)),
            room=data.get("room", ""),
            type=dtype,
            facing=facing,
            is_exterior=bool(data.get("is_exterior", dtype == "external_shutter")),
            is_street_facing=bool(data.get("is_street_facing", False)),
            position=position,
            target_position=position,
            tilt=tilt,
            target_tilt=tilt,
            motor_cycle_count=cycles,
            battery_level=battery,
            is_online=bool(data.get("is_online", True)),
            speed=speed,
            last_moved=parse_timestamp(data.get("last_moved")),
            last_calibrated=parse_timestamp(data.get("last_calibrated")),
            favorite_positions=favorites,
        )


@dataclass
class Zone:
    id: str
    name: str
    device_ids: List[str] = field(default_factory=list)
    active_preset: Optional[str] = None
    last_changed: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "device_ids": list(self.device_ids),
            "active_preset": self.active_preset,
            "last_changed": utc_iso(self.last_changed),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Zone":
        if not data.get("id"):
            raise ValidationError("Zone id required")
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            device_ids=[str(d) for d in data.get("device_ids", data.get("devices", []))],
        )


@dataclass
class Scene:
    """Externally supplied scene: zone ("all" = every zone) -> position/tilt."""
    id: str
    name: str
    actions: List[dict] = field(default_factory=list)
    is_active: bool = False
    last_triggered: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "actions": [dict(a) for a in self.actions],
            "is_active": self.is_active,
            "last_triggered": utc_iso(self.last_triggered),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Scene":
        if not data.get("id"):
            raise ValidationError("Scene id required")
        actions = []
        for action in data.get("actions") or []:
            tilt = action.get("tilt")
            actions.append({
                "zone": str(action.get("zone", ALL_DEVICES)),
                "position": validate_range("position", action.get("position"), POSITION_MIN, POSITION_MAX),
                "tilt": None if tilt is None else validate_range("tilt", tilt, TILT_MIN, TILT_MAX),
            })
        return cls(id=str(data["id"]), name=data.get("name", str(data["id"])), actions=actions)


# ==============================================================================
# Sun
# ==============================================================================

@dataclass
class SolarState:
    azimuth: float = 0.0
    elevation: float = 0.0
    is_daylight: bool = False
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    solar_noon: Optional[str] = None
    condition: str = "normal"
    calculated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "azimuth": self.azimuth,
            "elevation": self.elevation,
            "is_daylight": self.is_daylight,
            "sunrise": self.sunrise,
            "sunset": self.sunset,
            "solar_noon": self.solar_noon,
            "condition": self.condition,
            "calculated_at": utc_iso(self.calculated_at),
        }


# ==============================================================================
# Schedules & rules
# ==============================================================================

@dataclass
class ScheduleAction:
    device_id: str
    position: int
    tilt: Optional[int] = None

    def to_dict(self) -> dict:
        return {"device_id": self.device_id, "position": self.position, "tilt": self.tilt}

    @classmethod
    def from_dict(cls, data: dict) -> "ScheduleAction":
        device_id = data.get("device_id", ALL_DEVICES)
        tilt = data.get("tilt")
        return cls(
            device_id=str(device_id),
            position=validate_range("position", data.get("position"), POSITION_MIN, POSITION_MAX),
            tilt=None if tilt is None else validate_range("tilt", tilt, TILT_MIN, TILT_MAX),
        )


@dataclass
class Schedule:
    """Time, sunrise or sunset triggered schedule."""
    id: str
    name: str
    trigger_type: str = TRIGGER_TIME
    trigger_value: Optional[str] = None
    offset_minutes: int = 0
    days: List[str] = field(default_factory=lambda: list(WEEKDAYS))
    actions: List[ScheduleAction] = field(default_factory=list)
    enabled: bool = True
    last_fired_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "days": list(self.days),
            "trigger_type": self.trigger_type,
            "trigger_value": self.trigger_value,
            "offset_minutes": self.offset_minutes,
            "actions": [a.to_dict() for a in self.actions],
            "last_fired_at": utc_iso(self.last_fired_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Schedule":
        if not data.get("id"):
            raise ValidationError("Schedule id required")
        trigger_type = data.get("trigger_type", TRIGGER_TIME)
        if trigger_type not in SCHEDULE_TRIGGERS:
            raise ValidationError(f"Unknown trigger_type: {trigger_type}")

        trigger_value = None
        if trigger_type == TRIGGER_TIME:
            trigger_value = parse_time_str(data.get("trigger_value"))
            if trigger_value is None:
                raise ValidationError("trigger_value must be HH:MM")

        try:
            offset = int(data.get("offset_minutes", 0) or 0)
        except (TypeError, ValueError):
            raise ValidationError("offset_minutes must be an integer")

        days = _str_list(data.get("days"), "days", WEEKDAYS) or list(WEEKDAYS)
        actions = [ScheduleAction.from_dict(a) for a in data.get("actions") or []]
        if not actions:
            raise ValidationError("Schedule needs at least one action")

        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            offset_minutes=offset if trigger_type != TRIGGER_TIME else 0,
            days=days,
            actions=actions,
            enabled=bool(data.get("enabled", True)),
            last_fired_at=parse_timestamp(data.get("last_fired_at")),
        )


@dataclass
class AutomationRule:
    """Condition -> action rule with cooldown and optional season gate."""
    id: str
    name: str
    trigger: str
    condition: str
    value: float
    action: str
    target_facing: Optional[List[str]] = None
    target_rooms: Optional[List[str]] = None
    cooldown_minutes: int = 30
    season_restriction: Optional[str] = None
    enabled: bool = True
    last_triggered_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "trigger": self.trigger,
            "condition": self.condition,
            "value": self.value,
            "target_facing": self.target_facing,
            "target_rooms": self.target_rooms,
            "action": self.action,
            "cooldown_minutes": self.cooldown_minutes,
            "season_restriction": self.season_restriction,
            "last_triggered_at": utc_iso(self.last_triggered_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AutomationRule":
        if not data.get("id"):
            raise ValidationError("Rule id required")
        trigger = data.get("trigger")
        condition = data.get("condition")
        action = data.get("action")
        if trigger not in RULE_TRIGGERS:
            raise ValidationError(f"Unknown trigger: {trigger}")
        if condition not in RULE_CONDITIONS:
            raise ValidationError(f"Unknown condition: {condition}")
        if (trigger == "occupancy") != (condition in ("occupied", "unoccupied")):
            raise ValidationError(f"Condition '{condition}' does not apply to trigger '{trigger}'")
        if action not in RULE_ACTIONS:
            raise ValidationError(f"Unknown action: {action}")
        try:
            value = float(data.get("value", 0) or 0)
            cooldown = int(data.get("cooldown_minutes", 30))
        except (TypeError, ValueError):
            raise ValidationError("value and cooldown_minutes must be numbers")
        if cooldown < 0:
            raise ValidationError("cooldown_minutes must be >= 0")
        season = data.get("season_restriction")
        if season is not None and season not in SEASONS:
            raise ValidationError(f"Unknown season: {season}")

        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            trigger=trigger,
            condition=condition,
            value=value,
            action=action,
            target_facing=_str_list(data.get("target_facing"), "target_facing", FACING_AZIMUTHS),
            target_rooms=_str_list(data.get("target_rooms"), "target_rooms", lower=False),
            cooldown_minutes=cooldown,
            season_restriction=season,
            enabled=bool(data.get("enabled", True)),
            last_triggered_at=parse_timestamp(data.get("last_triggered_at")),
        )


# ==============================================================================
# Environment
# ==============================================================================

@dataclass
class WeatherState:
    temperature: Optional[float] = None
    wind_speed: float = 0.0
    wind_gust: float = 0.0
    rain_intensity: float = 0.0
    humidity: Optional[float] = None
    lux: Optional[float] = None
    alerts: List[str] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    @property
    def effective_wind(self) -> float:
        return max(self.wind_speed or 0.0, self.wind_gust or 0.0)

    def readings(self) -> dict:
        return {
            "temperature": self.temperature,
            "wind_speed": self.wind_speed,
            "wind_gust": self.wind_gust,
            "rain_intensity": self.rain_intensity,
            "humidity": self.humidity,
            "lux": self.lux,
        }

    def to_dict(self) -> dict:
        data = self.readings()
        data["alerts"] = list(self.alerts)
        data["updated_at"] = utc_iso(self.updated_at)
        return data


@dataclass
class SafetyThresholds:
    high_wind_retract_speed: float = 15.0
    storm_retract_speed: float = 20.0
    heavy_rain_retract: float = 5.0
    frost_protection_temp: float = -5.0

    @classmethod
    def from_config(cls, config: dict) -> "SafetyThresholds":
        return cls(
            high_wind_retract_speed=float(config["high_wind_retract_speed"]),
            storm_retract_speed=float(config["storm_retract_speed"]),
            heavy_rain_retract=float(config["heavy_rain_retract"]),
            frost_protection_temp=float(config["frost_protection_temp"]),
        )

    def to_dict(self) -> dict:
        return {
            "high_wind_retract_speed": self.high_wind_retract_speed,
            "storm_retract_speed": self.storm_retract_speed,
            "heavy_rain_retract": self.heavy_rain_retract,
            "frost_protection_temp": self.frost_protection_temp,
        }


@dataclass
class OccupancyState:
    # last_seen: last instant the room was reported occupied, or the
    # instant it was first reported empty
    occupied: bool = False
    last_seen: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def empty_minutes(self, now: datetime) -> float:
        if self.occupied:
            return 0.0
        if self.last_seen is None:
            return float("inf")
        return (now - self.last_seen).total_seconds() / 60.0

    def to_dict(self) -> dict:
        return {
            "occupied": self.occupied,
            "last_seen": utc_iso(self.last_seen),
            "updated_at": utc_iso(self.updated_at),
        }


# ==============================================================================
# Statistics & log
# ==============================================================================

@dataclass
class DeviceStatistics:
    total_cycles: int = 0
    daily_cycles: int = 0
    total_tilt_changes: int = 0
    daily_tilt_changes: int = 0
    position_history: deque = field(default_factory=lambda: deque(maxlen=DEFAULT_CONFIG["history_size"]))
    avg_daily_position: float = 50.0
    last_reset_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "total_cycles": self.total_cycles,
            "daily_cycles": self.daily_cycles,
            "total_tilt_changes": self.total_tilt_changes,
            "daily_tilt_changes": self.daily_tilt_changes,
            "avg_daily_position": self.avg_daily_position,
            "history_samples": len(self.position_history),
            "last_reset_date": self.last_reset_date,
        }


@dataclass
class PositionLogEntry:
    device_id: str
    room: str
    position: int
    tilt: int
    reason: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "device_id": self.device_id,
            "room": self.room,
            "position": self.position,
            "tilt": self.tilt,
            "reason": self.reason,
            "timestamp": utc_iso(self.timestamp),
        }


# ==============================================================================
# Store
# ==============================================================================

class StateStore:
    """Everything the engines read and write, owned by the Controller."""

    def __init__(self, config: Optional[dict] = None):
        self.config = dict(DEFAULT_CONFIG)
        if config:
            self.config.update(config)
        self.devices: Dict[str, Device] = {}
        self.zones: Dict[str, Zone] = {}
        self.scenes: Dict[str, Scene] = {}
        self.schedules: Dict[str, Schedule] = {}
        self.rules: Dict[str, AutomationRule] = {}
        self.weather = WeatherState()
        self.thresholds = SafetyThresholds.from_config(self.config)
        self.occupancy: Dict[str, OccupancyState] = {}
        self.solar = SolarState()
        self.statistics: Dict[str, DeviceStatistics] = {}
        self.position_log: List[PositionLogEntry] = []
        self.season_override: Optional[str] = self.config.get("season")
        self.latitude = float(self.config["latitude"])
        self.longitude = float(self.config["longitude"])

    def add_device(self, device: Device):
        self.devices[device.id] = device
        if device.id not in self.statistics:
            self.statistics[device.id] = DeviceStatistics(
                position_history=deque(maxlen=int(self.config["history_size"])))

    def current_season(self, local_dt: datetime) -> str:
        return self.season_override or season_for_month(local_dt.month)
