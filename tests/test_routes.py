"""
Tests for the Flask API: status codes and payloads through the test client.
"""

import json

import pytest

from shadehome.app import create_app, load_inventory_file
from shadehome.helpers import load_config


@pytest.fixture
def app(controller, settings_db):
    return create_app(controller, engine=settings_db)


@pytest.fixture
def client(app):
    return app.test_client()


class TestCoverRoutes:

    def test_list_covers(self, client):
        resp = client.get("/api/covers")
        assert resp.status_code == 200
        assert {c["id"] for c in resp.get_json()} == {"living_south", "bedroom_east", "ext_west", "skylight"}

    def test_set_position(self, client):
        resp = client.post("/api/covers/living_south/position", json={"position": 25, "tilt": 10})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["position"] == 25
        assert body["applied"] is True

    def test_invalid_position_is_400(self, client, controller):
        resp = client.post("/api/covers/living_south/position", json={"position": -5})
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False
        assert controller.store.devices["living_south"].position == 100

    def test_unknown_device_is_404(self, client):
        assert client.get("/api/covers/ghost").status_code == 404
        assert client.post("/api/covers/ghost/position", json={"position": 5}).status_code == 404

    def test_add_and_delete_cover(self, client):
        resp = client.post("/api/covers", json={"id": "hall", "name": "Hall", "room": "hall"})
        assert resp.status_code == 201
        assert client.delete("/api/covers/hall").status_code == 200
        assert client.delete("/api/covers/hall").status_code == 404

    def test_add_cover_with_bad_number_is_400(self, client):
        resp = client.post("/api/covers", json={"id": "hall", "name": "Hall", "position": "abc"})
        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_tilt_and_calibrate(self, client):
        assert client.post("/api/covers/living_south/tilt", json={"tilt": 30}).status_code == 200
        assert client.post("/api/covers/bedroom_east/tilt", json={"tilt": 30}).status_code == 400
        resp = client.post("/api/covers/living_south/calibrate")
        assert resp.get_json()["status"] == "calibrating"

    def test_all_positions(self, client):
        resp = client.post("/api/covers/all/position", json={"position": 0, "filter": {"room": "living"}})
        assert resp.status_code == 200
        assert resp.get_json()["affected"] == 2

    def test_zone_and_scene(self, client):
        resp = client.post("/api/zones/upstairs/position", json={"preset": "close_all"})
        assert resp.get_json()["devices_changed"] == 2
        assert client.post("/api/zones/garage/position", json={"position": 0}).status_code == 404
        assert client.post("/api/scenes/movie/activate").status_code == 200
        assert client.post("/api/scenes/party/activate").status_code == 404

    def test_position_log_and_statistics(self, client):
        client.post("/api/covers/living_south/position", json={"position": 10})
        log = client.get("/api/position-log?device_id=living_south").get_json()
        assert log[-1]["position"] == 10
        stats = client.get("/api/statistics?room=living").get_json()
        assert stats["totals"]["device_count"] == 2


class TestScheduleRoutes:

    def test_schedule_lifecycle(self, client):
        resp = client.post("/api/schedules", json={
            "id": "eve", "name": "Evening", "trigger_type": "sunset", "offset_minutes": 20,
            "actions": [{"device_id": "all", "position": 0}],
        })
        assert resp.status_code == 201
        assert [s["id"] for s in client.get("/api/schedules").get_json()] == ["eve"]
        assert client.delete("/api/schedules/eve").status_code == 200
        assert client.delete("/api/schedules/eve").status_code == 404

    def test_invalid_schedule_is_400(self, client):
        resp = client.post("/api/schedules", json={"name": "Broken", "trigger_type": "moonrise",
                                                   "actions": [{"position": 0}]})
        assert resp.status_code == 400

    def test_rule_lifecycle(self, client):
        resp = client.post("/api/rules", json={
            "id": "hot", "name": "Hot", "trigger": "temperature", "condition": "above",
            "value": 26, "action": "energy_position", "target_facing": ["south", "west"],
        })
        assert resp.status_code == 201
        rules = client.get("/api/rules").get_json()
        assert rules[0]["target_facing"] == ["south", "west"]
        assert client.delete("/api/rules/hot").status_code == 200
        assert client.delete("/api/rules/hot").status_code == 404


class TestSystemRoutes:

    def test_solar(self, client):
        body = client.get("/api/solar").get_json()
        assert "sunrise" in body["sun"]
        assert body["location"]["latitude"] == pytest.approx(59.33)

    def test_weather_push_runs_safety(self, client, controller):
        resp = client.post("/api/weather", json={"wind_speed": 22})
        assert resp.status_code == 200
        assert resp.get_json()["alerts"] == ["high_wind", "storm"]
        assert controller.store.devices["ext_west"].position == 0
        assert client.get("/api/weather").get_json()["current"]["wind_speed"] == 22
        assert client.post("/api/weather", json={}).status_code == 400

    def test_occupancy(self, client):
        assert client.post("/api/occupancy", json={"room_id": "living", "occupied": True}).status_code == 200
        assert client.post("/api/occupancy", json={"room_id": "living"}).status_code == 400

    def test_location_is_persisted(self, client):
        resp = client.put("/api/location", json={"latitude": 48.14, "longitude": 11.58})
        assert resp.status_code == 200
        assert load_config()["latitude"] == 48.14
        assert client.put("/api/location", json={"latitude": 100, "longitude": 0}).status_code == 400

    def test_season(self, client):
        assert client.put("/api/season", json={"season": "winter"}).get_json()["season"] == "winter"
        assert client.put("/api/season", json={"season": None}).get_json()["season"] == "summer"
        assert client.put("/api/season", json={"season": "rainy"}).status_code == 400

    def test_config_round_trip(self, client):
        resp = client.put("/api/config", json={"heavy_rain_retract": 3.5})
        assert resp.status_code == 200
        assert client.get("/api/config").get_json()["heavy_rain_retract"] == 3.5
        assert client.put("/api/config", json={"colour": "blue"}).status_code == 400
        assert "colour" not in client.get("/api/config").get_json()

    def test_status_tasks_events(self, client):
        client.post("/api/scenes/movie/activate")
        status = client.get("/api/status").get_json()
        assert status["active_scene"] == "movie"
        assert client.get("/api/tasks").status_code == 200
        events = client.get("/api/events?type=scene_applied").get_json()
        assert events[-1]["data"]["scene_id"] == "movie"

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["task_scheduler"]["status"] == "stopped"

    def test_missing_controller_is_503(self, app, client):
        app.config["SHADEHOME_DEPS"]["controller"] = None
        assert client.get("/api/covers").status_code == 503
        assert client.get("/api/schedules").status_code == 503
        assert client.get("/api/solar").status_code == 503
        assert client.get("/api/health").status_code == 503


class TestInventoryFile:

    def test_load_inventory_file(self, controller, tmp_path):
        path = tmp_path / "home.json"
        path.write_text(json.dumps({
            "devices": [{"id": "d1", "name": "D1", "room": "office", "facing": "west"}],
            "zones": [{"id": "office", "name": "Office", "devices": ["d1"]}],
            "schedules": [
                {"id": "s1", "name": "Close", "trigger_type": "time", "trigger_value": "21:00",
                 "actions": [{"device_id": "d1", "position": 0}]},
                {"id": "bad", "name": "Bad", "trigger_type": "time", "trigger_value": "x",
                 "actions": [{"device_id": "d1", "position": 0}]},
            ],
            "rules": [{"id": "r1", "name": "Cold", "trigger": "temperature",
                       "condition": "below", "value": 0, "action": "close"}],
        }), encoding="utf-8")

        result = load_inventory_file(controller, str(path))
        assert result["devices"] == 1
        assert list(controller.store.schedules) == ["s1"]
        assert list(controller.store.rules) == ["r1"]

    def test_invalid_inventory_raises(self, controller, tmp_path):
        path = tmp_path / "home.json"
        path.write_text(json.dumps({"devices": [{"id": "d1", "type": "trapdoor"}]}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_inventory_file(controller, str(path))
