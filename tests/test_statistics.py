"""
Tests for usage statistics, the daily reset and the device health check.
"""

from datetime import timedelta

from shadehome.constants import EVENT_CALIBRATION_NEEDED, EVENT_BATTERY_LOW


class TestCollect:

    def test_hourly_sample_and_average(self, controller, clock):
        controller.collect_statistics(clock())
        controller.set_position("living_south", 0)
        controller.collect_statistics(clock.advance(minutes=60))

        stats = controller.store.statistics["living_south"]
        assert len(stats.position_history) == 2
        assert stats.avg_daily_position == 50
        assert stats.position_history[-1]["position"] == 0

    def test_history_is_bounded(self, make_controller, clock):
        ctl = make_controller(config={"history_size": 3})
        for _ in range(5):
            ctl.collect_statistics(clock.advance(minutes=60))
        assert len(ctl.store.statistics["living_south"].position_history) == 3


class TestDailyReset:

    def test_reset_once_per_local_day(self, controller, clock):
        controller.set_position("living_south", 0)
        stats = controller.store.statistics["living_south"]
        assert stats.daily_cycles == 1

        assert controller.daily_reset(clock()) == 4
        assert stats.daily_cycles == 0
        assert stats.total_cycles == 1

        controller.set_position("living_south", 100)
        assert controller.daily_reset(clock.advance(minutes=60)) == 0
        assert stats.daily_cycles == 1

        # 22:30 UTC is already tomorrow in CEST
        assert controller.daily_reset(clock().replace(hour=22, minute=30)) == 4
        assert stats.daily_cycles == 0


class TestHealthCheck:

    def test_calibration_due(self, controller, clock, events):
        controller.store.devices["bedroom_east"].last_calibrated = clock() - timedelta(days=200)
        controller.store.devices["living_south"].last_calibrated = clock() - timedelta(days=30)

        assert controller.health_check(clock()) == ["bedroom_east"]
        needed = [e for e in events if e.event_type == EVENT_CALIBRATION_NEEDED]
        assert len(needed) == 1
        assert needed[0].data["days_since_calibration"] == 200

    def test_never_calibrated_is_not_flagged(self, controller, clock):
        assert controller.health_check(clock()) == []

    def test_low_battery_reported_as_event(self, controller, clock, events):
        controller.store.devices["skylight"].battery_level = 9.5
        controller.health_check(clock())
        low = [e for e in events if e.event_type == EVENT_BATTERY_LOW]
        assert [e.data["device_id"] for e in low] == ["skylight"]
        assert low[0].source == "statistics"
        assert low[0].data["battery_level"] == 9.5


class TestReport:

    def test_room_filter_and_totals(self, controller, clock):
        controller.set_position("living_south", 0)
        controller.set_position("ext_west", 20)
        controller.collect_statistics(clock())

        result = controller.get_statistics("living")
        assert {d["id"] for d in result["devices"]} == {"living_south", "ext_west"}
        assert result["totals"]["device_count"] == 2
        assert result["totals"]["total_cycles"] == 2
        assert result["totals"]["avg_position"] == 10

    def test_unknown_room_is_empty(self, controller):
        result = controller.get_statistics("garage")
        assert result["devices"] == []
        assert result["totals"]["avg_position"] == 0
