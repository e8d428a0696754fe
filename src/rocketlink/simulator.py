"""Deterministic rocket flight simulator.

Synthesizes telemetry when no radio hardware is attached. Each call to
advance() moves one fixed simulated step through a flight cycle that
loops forever:

    LANDED -> LAUNCHING -> APEX -> DESCENDING -> LANDED

Kinematics always integrate with the fixed step, never with the real time
between calls, so trajectories are reproducible regardless of scheduler
jitter. The wall clock is read only for the LANDED dwell check and for
record timestamps.

A simulator instance is single-owner state: advance it from one driver only.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable

from rocketdata.records import FlightPhase, GeoPosition, TelemetryRecord
from rocketlink.config import SimulatorConfig

logger = logging.getLogger(__name__)

SIM_SIGNAL = -50        # fixed simulated RSSI
SIM_PITCH = 90.0        # vertical attitude
SIM_SAMPLE_RATE = 10.0

_IN_FLIGHT = (FlightPhase.LAUNCHING, FlightPhase.APEX, FlightPhase.DESCENDING)


@dataclass(slots=True)
class SimulatorState:
    """Mutable flight state owned by exactly one simulator."""
    phase: FlightPhase = FlightPhase.LANDED
    altitude: float = 0.0       # meters
    velocity: float = 0.0       # m/s, positive up
    lat: float = 0.0
    lon: float = 0.0
    phase_started: float = 0.0  # wall-clock seconds the LANDED dwell began


class FlightSimulator:
    """Fixed-step flight state machine.

    Usage:
        sim = FlightSimulator()
        record = sim.advance()   # call every ~0.5s
    """

    def __init__(
        self,
        config: SimulatorConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or SimulatorConfig()
        self._clock = clock
        self._state = self._initial_state()

    def _initial_state(self) -> SimulatorState:
        return SimulatorState(
            lat=self._config.origin_lat,
            lon=self._config.origin_lon,
            phase_started=self._clock(),
        )

    @property
    def state(self) -> SimulatorState:
        """Snapshot of the current state."""
        return replace(self._state)

    @property
    def origin(self) -> GeoPosition:
        return GeoPosition(self._config.origin_lat, self._config.origin_lon)

    def reset(self) -> None:
        """Return to LANDED at the origin; the dwell restarts now."""
        self._state = self._initial_state()

    def advance(self) -> TelemetryRecord:
        """Advance one fixed step and emit a record. Never fails."""
        cfg = self._config
        s = self._state
        dt = cfg.step_s
        now = self._clock()
        previous = s.phase

        if s.phase == FlightPhase.LANDED:
            if now - s.phase_started > cfg.launch_delay_s:
                s.phase = FlightPhase.LAUNCHING
                s.velocity = cfg.launch_velocity

        elif s.phase == FlightPhase.LAUNCHING:
            s.altitude += s.velocity * dt
            s.velocity -= cfg.gravity * dt
            if s.velocity <= 0:
                s.phase = FlightPhase.APEX

        elif s.phase == FlightPhase.APEX:
            s.phase = FlightPhase.DESCENDING

        elif s.phase == FlightPhase.DESCENDING:
            s.velocity -= cfg.gravity * dt
            # Parachute terminal velocity
            if s.velocity < cfg.terminal_velocity:
                s.velocity = cfg.terminal_velocity
            s.altitude += s.velocity * dt
            if s.altitude <= 0:
                s.altitude = 0.0
                s.velocity = 0.0
                s.phase = FlightPhase.LANDED
                s.phase_started = now
                s.lat = cfg.origin_lat
                s.lon = cfg.origin_lon

        # Straight-line drift while airborne, not geodesic
        if s.phase in _IN_FLIGHT:
            s.lat += cfg.drift_rate * dt
            s.lon += cfg.drift_rate * dt

        if s.phase != previous:
            logger.debug("Phase %s -> %s (alt=%.1fm, v=%.1fm/s)",
                         previous.name, s.phase.name, s.altitude, s.velocity)

        return TelemetryRecord(
            signal=SIM_SIGNAL,
            timestamp=float(int(now * 1000)),
            pitch=SIM_PITCH,
            roll=0.0,
            yaw=0.0,
            gforce=1.0 + (s.velocity / cfg.gravity) / 10.0,
            altitude=s.altitude,
            position=GeoPosition(latitude=s.lat, longitude=s.lon),
            phase=s.phase,
            sample_rate=SIM_SAMPLE_RATE,
        )
