# ShadeHome - helpers.py | see version.py for version info
"""
Shared helper functions: settings store, local-time heuristic,
HH:MM arithmetic and season lookup.
"""

import calendar
import json
import logging
from datetime import datetime, timezone, timedelta

from .constants import DEFAULT_CONFIG, SETTINGS_KEY_CONFIG, SEASON_MONTHS
from .db import get_db_session, get_db_readonly

logger = logging.getLogger("shadehome.helpers")


# ==============================================================================
# Settings
# ==============================================================================

def get_setting(key, default=None):
    """Get a system setting value."""
    from .models import SystemSetting
    with get_db_readonly() as session:
        setting = session.query(SystemSetting).filter_by(key=key).first()
        return setting.value if setting else default


def set_setting(key, value):
    """Set a system setting value."""
    from .models import SystemSetting
    with get_db_session() as session:
        setting = session.query(SystemSetting).filter_by(key=key).first()
        if setting:
            setting.value = str(value)
        else:
            setting = SystemSetting(key=key, value=str(value))
            session.add(setting)


def load_config():
    """DEFAULT_CONFIG merged with the stored JSON overrides."""
    config = dict(DEFAULT_CONFIG)
    stored = get_setting(SETTINGS_KEY_CONFIG)
    if stored:
        try:
            config.update(json.loads(stored))
        except (json.JSONDecodeError, TypeError):
            logger.warning("Stored config is not valid JSON, using defaults")
    return config


def save_config(updates):
    """Persist config overrides (only known keys) and return the merged config."""
    config = load_config()
    config.update({k: v for k, v in updates.items() if k in DEFAULT_CONFIG})
    overrides = {k: v for k, v in config.items() if DEFAULT_CONFIG.get(k) != v}
    set_setting(SETTINGS_KEY_CONFIG, json.dumps(overrides))
    return config


# ==============================================================================
# Time
# ==============================================================================

def ensure_utc(dt):
    """Naive datetimes are taken as UTC."""
    if dt is None:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_iso(dt):
    """Convert datetime to ISO string with Z suffix for UTC. Handles None."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def _last_sunday(year, month):
    last_day = calendar.monthrange(year, month)[1]
    d = datetime(year, month, last_day, tzinfo=timezone.utc)
    return d - timedelta(days=(d.weekday() - 6) % 7)


def is_summer_time(now):
    """Calendar heuristic: EU summer time, last Sunday of March to last Sunday
    of October, switching at 01:00 UTC. Not a timezone database lookup."""
    now = ensure_utc(now)
    start = _last_sunday(now.year, 3).replace(hour=1)
    end = _last_sunday(now.year, 10).replace(hour=1)
    return start <= now < end


def utc_offset_hours(now, config=None):
    config = config or DEFAULT_CONFIG
    offset = config.get("utc_offset_standard_h", 1)
    if config.get("dst_enabled", True) and is_summer_time(now):
        offset += 1
    return offset


def local_now(now=None, config=None):
    """Local wall-clock time using the fixed-offset heuristic."""
    now = ensure_utc(now)
    tz = timezone(timedelta(hours=utc_offset_hours(now, config)))
    return now.astimezone(tz)


def format_time(dt):
    return dt.strftime("%H:%M")


def decimal_hours_to_time(hours):
    """14.5 -> '14:30'. Wraps into [0, 24)."""
    hours = hours % 24
    h = int(hours)
    m = int(round((hours - h) * 60))
    if m == 60:
        h, m = h + 1, 0
    return f"{h % 24:02d}:{m:02d}"


def add_minutes_to_time(time_str, minutes):
    """Add (possibly negative) minutes to 'HH:MM', wrapping at day boundaries."""
    if not time_str:
        return None
    hh, mm = time_str.split(":")[:2]
    total = (int(hh) * 60 + int(mm) + int(minutes)) % 1440
    return f"{total // 60:02d}:{total % 60:02d}"


def is_time_match(time1, time2):
    """Same hour and minute."""
    if not time1 or not time2:
        return False
    return time1[:5] == time2[:5]


def parse_time_str(value):
    """Validate 'HH:MM'; returns the normalised string or None."""
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) < 2:
        return None
    try:
        h, m = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= h <= 23 and 0 <= m <= 59):
        return None
    return f"{h:02d}:{m:02d}"


def season_for_month(month):
    for season, months in SEASON_MONTHS.items():
        if month in months:
            return season
    return "spring"
