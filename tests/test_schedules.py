"""
Tests for time and sunrise/sunset schedules: weekday mask, once-per-minute
firing, late-tick catch-up, polar night.
"""

from datetime import datetime, timezone, timedelta

from shadehome.constants import EVENT_SCHEDULE_APPLIED
from shadehome.engines.ephemeris import calculate_solar_state
from shadehome.helpers import add_minutes_to_time


def _schedule(**overrides):
    data = {
        "name": "Morning close",
        "trigger_type": "time",
        "trigger_value": "10:00",
        "actions": [{"device_id": "living_south", "position": 0, "tilt": 30}],
    }
    data.update(overrides)
    return data


def _local_to_utc(day, hhmm, offset_hours):
    hh, mm = map(int, hhmm.split(":"))
    return day.replace(hour=hh, minute=mm) - timedelta(hours=offset_hours)


class TestTimeSchedules:
    """Fixed-time triggers (clock starts Wednesday 10:00 local)."""

    def test_fires_at_trigger_minute(self, controller, clock, events):
        result = controller.add_schedule(_schedule(id="s1"))
        assert result["success"]

        fired = controller.run_schedules(clock())
        assert fired == ["s1"]
        device = controller.store.devices["living_south"]
        assert (device.position, device.tilt) == (0, 30)
        assert controller.store.position_log[-1].reason == "schedule_s1"

        applied = [e for e in events if e.event_type == EVENT_SCHEDULE_APPLIED]
        assert applied[0].data["schedule_id"] == "s1"
        assert applied[0].data["devices_affected"] == 1

    def test_fires_once_per_minute(self, controller, clock):
        controller.add_schedule(_schedule(id="s1"))
        assert controller.run_schedules(clock()) == ["s1"]

        # user opens the blind again within the same minute
        controller.set_position("living_south", 100)
        assert controller.run_schedules(clock.advance(seconds=30)) == []
        assert controller.run_schedules(clock.advance(seconds=40)) == []
        assert controller.store.devices["living_south"].position == 100

    def test_fired_stamp_survives_reload(self, controller, clock):
        controller.add_schedule(_schedule(id="s1"))
        assert controller.run_schedules(clock()) == ["s1"]

        saved = controller.store.schedules["s1"].to_dict()
        controller.remove_schedule("s1")
        controller.add_schedule(saved)
        assert controller.store.schedules["s1"].last_fired_at == clock()

        controller.set_position("living_south", 100)
        assert controller.run_schedules(clock.advance(seconds=30)) == []
        assert controller.store.devices["living_south"].position == 100

    def test_late_tick_catches_previous_minute(self, controller, clock):
        controller.add_schedule(_schedule(id="s1"))
        clock.advance(minutes=1, seconds=10)
        assert controller.run_schedules(clock()) == ["s1"]
        assert controller.store.devices["living_south"].position == 0

    def test_other_minutes_do_not_fire(self, controller, clock):
        controller.add_schedule(_schedule(id="s1", trigger_value="10:05"))
        assert controller.run_schedules(clock()) == []
        assert controller.store.schedules["s1"].last_fired_at is None

    def test_weekday_mask(self, controller, clock):
        controller.add_schedule(_schedule(id="weekend", days=["sat", "sun"]))
        assert controller.run_schedules(clock()) == []

        # Saturday 10:00 local
        assert controller.run_schedules(clock() + timedelta(days=3)) == ["weekend"]

    def test_disabled_schedule_never_fires(self, controller, clock):
        controller.add_schedule(_schedule(id="s1", enabled=False))
        assert controller.run_schedules(clock()) == []

    def test_all_devices_action(self, controller, clock):
        controller.add_schedule(_schedule(id="s1", actions=[{"device_id": "all", "position": 20}]))
        controller.run_schedules(clock())
        assert {d.position for d in controller.store.devices.values()} == {20}

    def test_tilt_omitted_keeps_current_tilt(self, controller, clock):
        controller.store.devices["living_south"].tilt = 45
        controller.add_schedule(_schedule(id="s1", actions=[{"device_id": "living_south", "position": 40}]))
        controller.run_schedules(clock())
        device = controller.store.devices["living_south"]
        assert (device.position, device.tilt) == (40, 45)

    def test_offline_device_skipped(self, controller, clock):
        controller.store.devices["living_south"].is_online = False
        controller.add_schedule(_schedule(id="s1"))
        assert controller.run_schedules(clock()) == ["s1"]
        assert controller.store.devices["living_south"].position == 100


class TestSunSchedules:

    def test_sunrise_with_offset(self, controller):
        day = datetime(2026, 6, 17, tzinfo=timezone.utc)
        solar = calculate_solar_state(controller.store.latitude, controller.store.longitude, day)
        fire_local = add_minutes_to_time(solar.sunrise, 30)

        controller.add_schedule(_schedule(id="dawn", trigger_type="sunrise", offset_minutes=30,
                                          trigger_value=None))
        at = _local_to_utc(day, fire_local, 2)
        assert controller.run_schedules(at - timedelta(minutes=2)) == []
        assert controller.run_schedules(at) == ["dawn"]
        assert controller.schedules.resolve_trigger_time(controller.store.schedules["dawn"]) == fire_local

    def test_sunset_negative_offset(self, controller):
        day = datetime(2026, 6, 17, tzinfo=timezone.utc)
        solar = calculate_solar_state(controller.store.latitude, controller.store.longitude, day)
        fire_local = add_minutes_to_time(solar.sunset, -15)

        controller.add_schedule(_schedule(id="dusk", trigger_type="sunset", offset_minutes=-15))
        assert controller.run_schedules(_local_to_utc(day, fire_local, 2)) == ["dusk"]

    def test_polar_night_never_fires(self, controller):
        start = datetime(2026, 12, 21, tzinfo=timezone.utc)
        controller.set_location(70.0, 18.0, now=start)
        controller.add_schedule(_schedule(id="dawn", trigger_type="sunrise"))
        controller.add_schedule(_schedule(id="dusk", trigger_type="sunset"))

        for minute in range(0, 1440):
            assert controller.run_schedules(start + timedelta(minutes=minute)) == []
        assert controller.store.devices["living_south"].position == 100
        assert controller.store.solar.sunrise is None


class TestScheduleValidation:

    def test_unknown_device_rejected(self, controller):
        result = controller.add_schedule(_schedule(actions=[{"device_id": "ghost", "position": 0}]))
        assert result["success"] is False
        assert "ghost" in result["error"]

    def test_time_trigger_needs_hhmm(self, controller):
        result = controller.add_schedule(_schedule(trigger_value="25:00"))
        assert result["success"] is False

    def test_bad_weekday_rejected(self, controller):
        assert controller.add_schedule(_schedule(days=["funday"]))["success"] is False

    def test_name_required(self, controller):
        assert controller.add_schedule(_schedule(name=""))["success"] is False

    def test_generated_id_and_removal(self, controller):
        schedule_id = controller.add_schedule(_schedule())["schedule_id"]
        assert [s["id"] for s in controller.get_schedules()] == [schedule_id]
        assert controller.remove_schedule(schedule_id)["success"]
        result = controller.remove_schedule(schedule_id)
        assert result["success"] is False
        assert result["not_found"] is True
