"""Runtime configuration for the ground telemetry link."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class SimulatorConfig(BaseModel):
    """Flight simulator tunables."""
    step_s: float = 0.5             # simulated seconds per advance()
    launch_delay_s: float = 5.0     # LANDED dwell before launch (wall clock)
    launch_velocity: float = 150.0  # m/s at ignition
    gravity: float = 9.8            # m/s^2
    terminal_velocity: float = -10.0  # parachute descent floor, m/s
    drift_rate: float = 0.0001      # degrees per simulated second, lat and lon
    origin_lat: float = 37.7749
    origin_lon: float = -122.4194


class RadioConfig(BaseModel):
    """Serial radio receiver settings."""
    port: str = "/dev/ttyUSB0"
    baudrate: int = 115200
    timeout: float = 1.0
    enabled: bool = False   # use the radio instead of the simulator


class StreamConfig(BaseModel):
    """Frame streaming settings."""
    interval_s: float = 0.5
    fields: list[str] = []  # empty = all fields


class LinkConfig(BaseModel):
    """Top-level configuration."""
    simulator: SimulatorConfig = SimulatorConfig()
    radio: RadioConfig = RadioConfig()
    stream: StreamConfig = StreamConfig()
    log_level: str = "INFO"
    health_interval_s: float = 30.0  # link health log period


def load_config(path: Path | None = None) -> LinkConfig:
    """Load configuration from a JSON file, defaults if absent."""
    if path is None or not path.exists():
        return LinkConfig()
    return LinkConfig.model_validate_json(path.read_text())
