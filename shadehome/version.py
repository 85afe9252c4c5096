# ShadeHome - version.py | Central version info
"""
ShadeHome Version Info
All modules import from here - change the version in ONE place only.
"""

VERSION = "0.3.2"
BUILD = 14
BUILD_DATE = "2026-10-12"
CODENAME = "Interlock"

# Changelog
# Build 14: v0.3.2 Safety interlock re-entrant from weather push
#   - Weather push now triggers an immediate interlock pass
#   - Fix: skylight blinds were not closed on heavy rain
#
# Build 13: v0.3.1 Position log overflow keeps latest 80%
#   - Fix: log trimmed one entry at a time under sustained automation load
#
# Build 12: v0.3.0 Rule engine cooldown on wall clock
#   - Cooldown survives restarts when last_triggered_at is restored
#   - Occupancy rules narrow targets to the rooms that matched
#
# Build 10: v0.2.0 Sunrise/sunset schedules
#   - Polar night: sun-relative schedules are skipped, not failed
#   - Once-per-minute dedup for schedules


def version_string():
    return f"ShadeHome v{VERSION} (Build {BUILD}, {BUILD_DATE})"
