# ShadeHome - engines/actuator.py | see version.py for version info
"""
Actuator state machine: the only writer of device position, tilt and
motor status.

    idle -> moving -> idle          (set_device_position)
    idle -> calibrating -> idle     (calibrate)

Position/tilt are written immediately; the motor completion runs later
as a one-shot task on the TaskScheduler and only flips motor_status.
"""

import logging
import threading
from datetime import timedelta

from ..constants import (
    MOTOR_IDLE, MOTOR_MOVING, MOTOR_CALIBRATING,
    POSITION_MIN, POSITION_MAX, TILT_MIN, TILT_MAX,
    EVENT_BATTERY_LOW, EVENT_MOTOR_STUCK, EVENT_CALIBRATION_COMPLETED,
)
from ..helpers import ensure_utc, utc_iso
from ..state import DeviceStatistics, PositionLogEntry

logger = logging.getLogger("shadehome.engines.actuator")

# Seconds for a full 0-100 travel
FULL_TRAVEL_SECONDS = {"slow": 30.0, "normal": 20.0, "fast": 12.0}
FULL_TILT_SECONDS = 4.0
MIN_MOTION_SECONDS = 2.0


def _clamp(value, low, high):
    return max(low, min(high, int(round(value))))


def motion_duration(speed, position_travel, tilt_travel):
    """Simulated motor run time, proportional to travel, bounded."""
    full = FULL_TRAVEL_SECONDS.get(speed, FULL_TRAVEL_SECONDS["normal"])
    seconds = max(abs(position_travel) / 100.0 * full,
                  abs(tilt_travel) / 90.0 * FULL_TILT_SECONDS)
    return max(MIN_MOTION_SECONDS, min(full, seconds))


class Actuator:
    """Applies position/tilt directives to devices in the StateStore."""

    def __init__(self, store, scheduler, event_bus, lock=None):
        self.store = store
        self.scheduler = scheduler
        self.event_bus = event_bus
        self._lock = lock or threading.RLock()

    # ── Motion ──────────────────────────────────────────────

    def set_device_position(self, device_id, position=None, tilt=None,
                            reason="manual", now=None):
        """Move a device. Returns True when the device state changed.

        ``None`` for position or tilt keeps the current value. Unknown,
        offline or calibrating devices and no-change requests are ignored.
        """
        now = ensure_utc(now)
        device = self.store.devices.get(device_id)
        if device is None:
            logger.debug("Ignoring %s for unknown device %s", reason, device_id)
            return False
        if not device.is_online:
            logger.debug("Skipping offline device %s (%s)", device_id, reason)
            return False
        if device.motor_status == MOTOR_CALIBRATING:
            logger.info("Device %s is calibrating, ignoring %s", device_id, reason)
            return False

        new_pos = device.position if position is None else _clamp(position, POSITION_MIN, POSITION_MAX)
        new_tilt = device.tilt if tilt is None else _clamp(tilt, TILT_MIN, TILT_MAX)
        if new_pos == device.position and new_tilt == device.tilt:
            return False

        pos_travel = new_pos - device.position
        tilt_travel = new_tilt - device.tilt

        device.target_position = new_pos
        device.target_tilt = new_tilt
        device.position = new_pos
        device.tilt = new_tilt
        device.last_moved = now
        device.motor_status = MOTOR_MOVING

        stats = self.store.statistics.setdefault(device_id, DeviceStatistics())
        if pos_travel:
            device.motor_cycle_count += 1
            stats.total_cycles += 1
            stats.daily_cycles += 1
            self._check_motor_cycles(device, now)
        if tilt_travel:
            stats.total_tilt_changes += 1
            stats.daily_tilt_changes += 1

        duration = motion_duration(device.speed, pos_travel, tilt_travel)
        self.scheduler.schedule_once(
            f"motion:{device_id}", lambda: self._finish_motion(device_id),
            duration, now=now)

        self._drain_battery(device, now)
        self._log_position(device, reason, now)
        logger.info("Cover %s -> position %s%% tilt %s° (%s)", device_id, new_pos, new_tilt, reason)
        return True

    def _finish_motion(self, device_id):
        with self._lock:
            device = self.store.devices.get(device_id)
            if device is not None and device.motor_status == MOTOR_MOVING:
                device.motor_status = MOTOR_IDLE

    # ── Calibration ─────────────────────────────────────────

    def calibrate(self, device_id, now=None):
        """Start a calibration run. Returns the duration in seconds, or None."""
        now = ensure_utc(now)
        device = self.store.devices.get(device_id)
        if device is None or not device.is_online:
            return None

        duration = float(self.store.config["calibration_duration_s"])
        device.motor_status = MOTOR_CALIBRATING
        self.scheduler.unregister(f"motion:{device_id}")
        finished_at = now + timedelta(seconds=duration)
        self.scheduler.schedule_once(
            f"calibration:{device_id}",
            lambda: self._finish_calibration(device_id, finished_at),
            duration, now=now)
        logger.info("Calibrating device %s (%ss)", device_id, duration)
        return duration

    def _finish_calibration(self, device_id, finished_at):
        with self._lock:
            device = self.store.devices.get(device_id)
            if device is None:
                return
            device.motor_status = MOTOR_IDLE
            device.position = device.target_position = 0
            device.tilt = device.target_tilt = 0
            device.last_calibrated = finished_at
            self._log_position(device, "calibration", finished_at)
            logger.info("Calibration complete: %s", device_id)
            self.event_bus.publish(EVENT_CALIBRATION_COMPLETED, {
                "device_id": device.id,
                "name": device.name,
                "timestamp": utc_iso(finished_at),
            }, source="actuator")

    # ── Health side effects ─────────────────────────────────

    def _drain_battery(self, device, now):
        config = self.store.config
        before = device.battery_level
        if before <= 0:
            return
        device.battery_level = max(0.0, before - float(config["battery_drain_per_move"]))
        threshold = config["battery_low_threshold"]
        if before > threshold >= device.battery_level:
            logger.warning("Battery low: %s (%.1f%%)", device.id, device.battery_level)
            self.event_bus.publish(EVENT_BATTERY_LOW, {
                "device_id": device.id,
                "name": device.name,
                "battery_level": round(device.battery_level, 2),
                "timestamp": utc_iso(now),
            }, source="actuator")

    def _check_motor_cycles(self, device, now):
        config = self.store.config
        count = device.motor_cycle_count
        if count == config["motor_cycle_critical"]:
            level = "critical"
        elif count == config["motor_cycle_warning"]:
            level = "warning"
        else:
            return
        logger.warning("Motor cycles for %s reached %d (%s)", device.id, count, level)
        self.event_bus.publish(EVENT_MOTOR_STUCK, {
            "device_id": device.id,
            "name": device.name,
            "motor_cycles": count,
            "level": level,
            "timestamp": utc_iso(now),
        }, source="actuator")

    # ── Position log ────────────────────────────────────────

    def _log_position(self, device, reason, now):
        log = self.store.position_log
        log.append(PositionLogEntry(
            device_id=device.id, room=device.room, position=device.position,
            tilt=device.tilt, reason=reason, timestamp=now,
        ))
        max_entries = int(self.store.config["max_log_entries"])
        if len(log) > max_entries:
            keep = int(max_entries * float(self.store.config["log_retain_ratio"]))
            del log[:len(log) - keep]
