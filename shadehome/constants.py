# ShadeHome - constants.py | see version.py for version info
"""Shared constants: device vocabulary, event names, defaults."""

# ==============================================================================
# Device vocabulary
# ==============================================================================

DEVICE_TYPES = (
    "roller_blind", "venetian_blind", "vertical_blind",
    "roman_shade", "curtain", "external_shutter", "skylight_blind",
)
LOUVERED_TYPES = {"venetian_blind", "vertical_blind"}
SKYLIGHT_TYPES = {"skylight_blind"}

FACING_AZIMUTHS = {
    "north": 0, "northeast": 45, "east": 90, "southeast": 135,
    "south": 180, "southwest": 225, "west": 270, "northwest": 315,
}

MOTOR_IDLE = "idle"
MOTOR_MOVING = "moving"
MOTOR_CALIBRATING = "calibrating"

POSITION_MIN, POSITION_MAX = 0, 100
TILT_MIN, TILT_MAX = 0, 90

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

# Python weekday() -> 0=Monday
WEEKDAY_BY_INDEX = dict(enumerate(WEEKDAYS))

# ==============================================================================
# Schedules & rules
# ==============================================================================

TRIGGER_TIME = "time"
TRIGGER_SUNRISE = "sunrise"
TRIGGER_SUNSET = "sunset"
SCHEDULE_TRIGGERS = (TRIGGER_TIME, TRIGGER_SUNRISE, TRIGGER_SUNSET)
ALL_DEVICES = "all"

RULE_TRIGGERS = ("temperature", "humidity", "light_level", "occupancy")
RULE_CONDITIONS = ("above", "below", "unoccupied", "occupied")
RULE_ACTIONS = ("close", "open", "tilt_45", "energy_position", "restore_previous")

# Lux per degree of sun elevation when no photometric sensor is wired
LUX_PER_ELEVATION_DEG = 1500

# Nordic season table: month -> season
SEASON_MONTHS = {
    "summer": (6, 7, 8),
    "winter": (11, 12, 1, 2, 3),
    "spring": (4, 5),
    "autumn": (9, 10),
}
SEASONS = tuple(SEASON_MONTHS)

# ==============================================================================
# Zone presets (position/tilt None = leave as requested)
# ==============================================================================

ZONE_PRESETS = {
    "open_all": {"position": 100, "tilt": 0},
    "close_all": {"position": 0, "tilt": 0},
    "privacy": {"position": 15, "tilt": 45},
    "movie_mode": {"position": 0, "tilt": 0},
    "ventilation": {"position": 30, "tilt": 90},
}

# ==============================================================================
# Events
# ==============================================================================

EVENT_WEATHER_ALERT_RETRACT = "weather_alert_retract"
EVENT_SCENE_APPLIED = "scene_applied"
EVENT_SOLAR_APPLIED = "solar_applied"
EVENT_SCHEDULE_APPLIED = "schedule_applied"
EVENT_RULE_APPLIED = "rule_applied"
EVENT_CALIBRATION_COMPLETED = "calibration_completed"
EVENT_CALIBRATION_NEEDED = "calibration_needed"
EVENT_BATTERY_LOW = "battery_low"
EVENT_MOTOR_STUCK = "motor_stuck"

# ==============================================================================
# Cycle intervals (seconds)
# ==============================================================================

INTERVAL_EPHEMERIS = 300
INTERVAL_SCHEDULES = 60
INTERVAL_RULES = 120
INTERVAL_SAFETY = 600
INTERVAL_STATISTICS = 3600
INTERVAL_DAILY_RESET = 3600
INTERVAL_HEALTH = 21600

# ==============================================================================
# Defaults
# ==============================================================================

SETTINGS_KEY_CONFIG = "shadehome.config"

DEFAULT_CONFIG = {
    # Location (Stockholm)
    "latitude": 59.33,
    "longitude": 18.07,
    # DST heuristic: standard offset, +1h during EU summer time
    "utc_offset_standard_h": 1,
    "dst_enabled": True,
    # Safety thresholds (m/s, mm/h, degC)
    "high_wind_retract_speed": 15.0,
    "storm_retract_speed": 20.0,
    "heavy_rain_retract": 5.0,
    "frost_protection_temp": -5.0,
    # Actuator
    "battery_drain_per_move": 0.02,
    "battery_low_threshold": 15,
    "motor_cycle_warning": 8000,
    "motor_cycle_critical": 12000,
    "max_log_entries": 5000,
    "log_retain_ratio": 0.8,
    "calibration_duration_s": 10,
    # Statistics
    "history_size": 168,
    "calibration_interval_days": 180,
    # Solar tracking (glare / heat gain)
    "solar_tracking_enabled": False,
    # Season: None = derive from month
    "season": None,
}
