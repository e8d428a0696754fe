"""Telemetry record model shared by every producer and consumer.

A record is one flight sample: attitude, apparent acceleration, altitude,
GPS position, flight phase and link quality. Records are immutable and
always fully populated.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class FlightPhase(IntEnum):
    """Discrete flight state. Integer values are the relay mapping."""
    LANDED = 0
    LAUNCHING = 1
    APEX = 2
    DESCENDING = 3
    CALIBRATION = 4


def phase_from_name(name: str) -> FlightPhase:
    """Map a textual phase name to a FlightPhase.

    Matching is case-insensitive. Unknown, empty or garbled names
    resolve to LANDED; this never raises.
    """
    return FlightPhase.__members__.get(name.strip().upper(), FlightPhase.LANDED)


@dataclass(slots=True, frozen=True)
class GeoPosition:
    """Decimal-degree coordinate."""
    latitude: float
    longitude: float


@dataclass(slots=True, frozen=True)
class TelemetryRecord:
    """A single flight sample."""
    signal: int             # RSSI, dBm-like, closer to 0 is stronger
    timestamp: float        # milliseconds since epoch
    pitch: float            # degrees
    roll: float             # degrees
    yaw: float              # degrees
    gforce: float           # apparent acceleration / standard gravity
    altitude: float         # meters above ground reference
    position: GeoPosition
    phase: FlightPhase
    sample_rate: float      # instrument samples per second

    @property
    def timestamp_ms(self) -> int:
        """Timestamp as a 64-bit millisecond count.

        Non-finite timestamps map to 0 and out-of-range ones saturate.
        """
        if not math.isfinite(self.timestamp):
            return 0
        return max(INT64_MIN, min(int(self.timestamp), INT64_MAX))

    def to_dict(self) -> dict:
        return {
            "signal": self.signal,
            "timestamp": self.timestamp,
            "pitch": self.pitch,
            "roll": self.roll,
            "yaw": self.yaw,
            "gforce": self.gforce,
            "altitude": self.altitude,
            "latitude": self.position.latitude,
            "longitude": self.position.longitude,
            "phase": self.phase.name,
            "state": int(self.phase),
            "sample_rate": self.sample_rate,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TelemetryRecord:
        """Rebuild a record from `to_dict` output."""
        if "phase" in data:
            phase = phase_from_name(str(data["phase"]))
        else:
            phase = FlightPhase(int(data.get("state", 0)))
        return cls(
            signal=int(data["signal"]),
            timestamp=float(data["timestamp"]),
            pitch=float(data["pitch"]),
            roll=float(data["roll"]),
            yaw=float(data["yaw"]),
            gforce=float(data["gforce"]),
            altitude=float(data["altitude"]),
            position=GeoPosition(
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
            ),
            phase=phase,
            sample_rate=float(data["sample_rate"]),
        )
