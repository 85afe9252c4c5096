# ShadeHome - engines/__init__.py | see version.py for version info
"""
Engine modules. Each engine receives the shared StateStore by reference;
only the Actuator writes device state.
"""

from .ephemeris import EphemerisEngine, calculate_solar_state, exposure_summary
from .actuator import Actuator
from .schedules import ScheduleEngine
from .rules import RuleEngine, default_energy_position
from .safety import SafetyInterlock
from .statistics import StatisticsCollector
from .solar_tracking import SolarTracker

__all__ = [
    "EphemerisEngine",
    "calculate_solar_state",
    "exposure_summary",
    "Actuator",
    "ScheduleEngine",
    "RuleEngine",
    "default_energy_position",
    "SafetyInterlock",
    "StatisticsCollector",
    "SolarTracker",
]
