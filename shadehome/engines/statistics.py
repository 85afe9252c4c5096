# ShadeHome - engines/statistics.py | see version.py for version info
"""
Usage statistics: hourly position history, daily counter reset and the
periodic device health check (calibration age).
"""

import logging

from ..constants import EVENT_CALIBRATION_NEEDED, EVENT_BATTERY_LOW
from ..helpers import local_now, utc_iso

logger = logging.getLogger("shadehome.engines.statistics")


class StatisticsCollector:

    def __init__(self, store, event_bus):
        self.store = store
        self.event_bus = event_bus

    def collect(self, now):
        """Append one (position, tilt) sample per device, refresh averages."""
        for device_id, device in self.store.devices.items():
            stats = self.store.statistics.get(device_id)
            if stats is None:
                continue
            stats.position_history.append({
                "position": device.position,
                "tilt": device.tilt,
                "timestamp": utc_iso(now),
            })
            samples = [s["position"] for s in stats.position_history]
            stats.avg_daily_position = round(sum(samples) / len(samples)) if samples else 50

    def daily_reset(self, now):
        """Zero daily counters once the local date has changed."""
        today = local_now(now, self.store.config).date().isoformat()
        reset = 0
        for stats in self.store.statistics.values():
            if stats.last_reset_date != today:
                stats.daily_cycles = 0
                stats.daily_tilt_changes = 0
                stats.last_reset_date = today
                reset += 1
        if reset:
            logger.debug("Daily counters reset for %d devices (%s)", reset, today)
        return reset

    def health_check(self, now):
        """Emit battery_low for drained devices and calibration_needed for devices
        past the calibration interval."""
        limit_days = self.store.config["calibration_interval_days"]
        low_battery = self.store.config["battery_low_threshold"]
        due = []
        for device in self.store.devices.values():
            if device.battery_level <= low_battery:
                self.event_bus.publish(EVENT_BATTERY_LOW, {
                    "device_id": device.id,
                    "name": device.name,
                    "battery_level": round(device.battery_level, 2),
                    "timestamp": utc_iso(now),
                }, source="statistics")
            if device.last_calibrated is None:
                continue
            days = (now - device.last_calibrated).total_seconds() / 86400
            if days > limit_days:
                due.append(device.id)
                self.event_bus.publish(EVENT_CALIBRATION_NEEDED, {
                    "device_id": device.id,
                    "name": device.name,
                    "days_since_calibration": round(days),
                    "timestamp": utc_iso(now),
                }, source="statistics")
        if due:
            logger.info("Calibration needed: %s", ", ".join(due))
        return due

    def report(self, room_id=None):
        devices = []
        total_cycles = 0
        position_sum = 0
        for device in self.store.devices.values():
            if room_id and device.room != room_id:
                continue
            stats = self.store.statistics.get(device.id)
            if stats is None:
                continue
            devices.append({
                "id": device.id,
                "name": device.name,
                "room": device.room,
                "motor_cycle_count": device.motor_cycle_count,
                **stats.to_dict(),
            })
            total_cycles += stats.total_cycles
            position_sum += stats.avg_daily_position
        return {
            "devices": devices,
            "totals": {
                "device_count": len(devices),
                "total_cycles": total_cycles,
                "avg_position": round(position_sum / len(devices)) if devices else 0,
            },
        }
