# ShadeHome - engines/schedules.py | see version.py for version info
"""
Trigger scheduler: fixed-time and sunrise/sunset (+ offset) schedules
with a weekday mask. Evaluated once per minute; a schedule fires at most
once per local minute.
"""

import logging
from collections import Counter
from datetime import timedelta

from ..constants import (
    TRIGGER_TIME, TRIGGER_SUNRISE, TRIGGER_SUNSET, ALL_DEVICES,
    WEEKDAY_BY_INDEX, EVENT_SCHEDULE_APPLIED,
)
from ..helpers import local_now, format_time, add_minutes_to_time, is_time_match, utc_iso

logger = logging.getLogger("shadehome.engines.schedules")


class ScheduleEngine:
    """Evaluates ``store.schedules`` in insertion order."""

    def __init__(self, store, actuator, event_bus):
        self.store = store
        self.actuator = actuator
        self.event_bus = event_bus

    def resolve_trigger_time(self, schedule):
        """Local 'HH:MM' the schedule fires at today, or None."""
        if schedule.trigger_type == TRIGGER_TIME:
            return schedule.trigger_value
        solar = self.store.solar
        base = solar.sunrise if schedule.trigger_type == TRIGGER_SUNRISE else solar.sunset
        if base is None:
            return None
        return add_minutes_to_time(base, schedule.offset_minutes)

    def check(self, now):
        """Fire every schedule due this minute. Returns the ids fired."""
        local = local_now(now, self.store.config)
        minute_start = local.replace(second=0, microsecond=0)
        current_time = format_time(local)
        # A late tick still catches the previous minute
        prev_start = minute_start - timedelta(minutes=1)
        prev_time = format_time(prev_start)
        today = WEEKDAY_BY_INDEX[local.weekday()]
        fired = []
        touched = Counter()

        for schedule in list(self.store.schedules.values()):
            if not schedule.enabled or today not in schedule.days:
                continue

            trigger_time = self.resolve_trigger_time(schedule)
            if trigger_time is None:
                logger.debug("Schedule %s: no %s today (%s), not firing",
                             schedule.id, schedule.trigger_type, self.store.solar.condition)
                continue
            if is_time_match(current_time, trigger_time):
                trigger_start = minute_start
            elif is_time_match(prev_time, trigger_time) and WEEKDAY_BY_INDEX[prev_start.weekday()] in schedule.days:
                trigger_start = prev_start
            else:
                continue

            # Dedup: once per trigger minute
            if schedule.last_fired_at is not None and schedule.last_fired_at >= trigger_start:
                continue

            affected = self._apply(schedule, now, touched)
            schedule.last_fired_at = now
            fired.append(schedule.id)
            logger.info("Schedule '%s' fired at %s (%d devices)", schedule.name, current_time, affected)
            self.event_bus.publish(EVENT_SCHEDULE_APPLIED, {
                "schedule_id": schedule.id,
                "name": schedule.name,
                "trigger_type": schedule.trigger_type,
                "trigger_time": trigger_time,
                "devices_affected": affected,
                "timestamp": utc_iso(now),
            }, source="schedules")

        for device_id, hits in touched.items():
            if hits > 1:
                logger.info("Device %s targeted by %d schedules this minute, last applied wins",
                            device_id, hits)
        return fired

    def _apply(self, schedule, now, touched):
        reason = f"schedule_{schedule.id}"
        affected = 0
        seen = set()
        for action in schedule.actions:
            if action.device_id == ALL_DEVICES:
                device_ids = list(self.store.devices)
            else:
                device_ids = [action.device_id]
            for device_id in device_ids:
                seen.add(device_id)
                if self.actuator.set_device_position(device_id, action.position, action.tilt,
                                                     reason=reason, now=now):
                    affected += 1
        touched.update(seen)
        return affected
