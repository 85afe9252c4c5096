"""
Shared test fixtures for ShadeHome.

Provides:
  - clock: controllable UTC clock (datetime), also drives the TaskScheduler
  - settings_db: in-memory SQLite settings store
  - event_bus / events: bus plus a list of every published event
  - controller: ShadeController with a small sample home loaded
"""

from datetime import datetime, timezone, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from shadehome import db
from shadehome.controller import ShadeController
from shadehome.event_bus import EventBus
from shadehome.task_scheduler import TaskScheduler


class FakeClock:
    """Callable returning a settable UTC datetime."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def timestamp(self):
        return self.now.timestamp()

    def set(self, dt):
        self.now = dt

    def advance(self, seconds=0, minutes=0):
        self.now = self.now + timedelta(seconds=seconds, minutes=minutes)
        return self.now


SAMPLE_DEVICES = [
    {"id": "living_south", "name": "Living room south", "room": "living",
     "type": "venetian_blind", "facing": "south", "position": 100, "tilt": 0},
    {"id": "bedroom_east", "name": "Bedroom east", "room": "bedroom",
     "type": "roller_blind", "facing": "east", "position": 100},
    {"id": "ext_west", "name": "Terrace shutter", "room": "living",
     "type": "external_shutter", "facing": "west", "is_exterior": True, "position": 100},
    {"id": "skylight", "name": "Attic skylight", "room": "attic",
     "type": "skylight_blind", "facing": "south", "position": 100},
]

SAMPLE_ZONES = [
    {"id": "living", "name": "Living room", "device_ids": ["living_south", "ext_west"]},
    {"id": "upstairs", "name": "Upstairs", "device_ids": ["bedroom_east", "skylight"]},
]

SAMPLE_SCENES = [
    {"id": "movie", "name": "Movie night", "actions": [
        {"zone": "living", "position": 0, "tilt": 0},
    ]},
]


@pytest.fixture
def clock():
    # Wednesday, local (CEST) 10:00
    return FakeClock(datetime(2026, 6, 17, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings_db():
    engine = create_engine("sqlite://", poolclass=StaticPool,
                           connect_args={"check_same_thread": False})
    db.init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def scheduler(clock):
    return TaskScheduler(clock=clock.timestamp)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def events(event_bus):
    """Every event published on the bus, in order."""
    received = []
    event_bus.subscribe("*", received.append)
    return received


@pytest.fixture
def make_controller(clock, scheduler, event_bus):
    """Factory: ShadeController on the shared clock/scheduler/bus with the sample home."""
    def _make(**kwargs):
        ctl = ShadeController(scheduler=scheduler, event_bus=event_bus, clock=clock, **kwargs)
        result = ctl.load_inventory(SAMPLE_DEVICES, SAMPLE_ZONES, SAMPLE_SCENES)
        assert result["success"]
        return ctl
    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()
