"""Flight track extraction and post-flight analysis.

Builds a 3D path from streamed frames (or records), exports it as
GeoJSON, and computes summary statistics for a recorded flight.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from numbers import Real
from typing import Iterable, Mapping

from rocketdata.records import FlightPhase, TelemetryRecord


@dataclass(slots=True, frozen=True)
class TrackPoint:
    lat: float
    lon: float
    alt: float


@dataclass(slots=True)
class TrackView:
    """Path as (lon, lat, alt) triples plus the most recent point."""
    path: list[tuple[float, float, float]] = field(default_factory=list)
    last_point: TrackPoint | None = None
    has_data: bool = False


def _find_field(row: Mapping[str, object], name: str, default: str) -> str | None:
    if name in row:
        return name
    for key in row:
        if key.lower() == default:
            return key
    return None


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def build_track(
    rows: Iterable[Mapping[str, object]],
    lat_field: str = "latitude",
    lon_field: str = "longitude",
    alt_field: str = "altitude",
) -> TrackView:
    """Build a track from field-name -> value rows (frame fields or record dicts).

    Configured field names win; otherwise the default names are matched
    case-insensitively. Rows missing any of the three fields, or holding
    non-numeric values, are skipped.
    """
    track = TrackView()
    for row in rows:
        lat_key = _find_field(row, lat_field, "latitude")
        lon_key = _find_field(row, lon_field, "longitude")
        alt_key = _find_field(row, alt_field, "altitude")
        if lat_key is None or lon_key is None or alt_key is None:
            continue

        lat, lon, alt = row[lat_key], row[lon_key], row[alt_key]
        if _is_number(lat) and _is_number(lon) and _is_number(alt):
            track.path.append((float(lon), float(lat), float(alt)))
            track.last_point = TrackPoint(lat=float(lat), lon=float(lon), alt=float(alt))

    track.has_data = len(track.path) > 0
    return track


def track_to_geojson(track: TrackView) -> dict:
    """Convert a track to a GeoJSON FeatureCollection."""
    features = []

    if track.path:
        features.append({
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": [list(p) for p in track.path]},
            "properties": {"type": "trajectory"},
        })

    if track.last_point is not None:
        p = track.last_point
        features.append({
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [p.lon, p.lat, p.alt]},
            "properties": {"type": "last_point", "altitude": p.alt},
        })

    return {"type": "FeatureCollection", "features": features}


@dataclass(slots=True)
class FlightStats:
    """Statistics from a sequence of telemetry records."""
    duration_s: float = 0.0
    samples: int = 0
    launches: int = 0
    apogee_m: float = 0.0
    max_gforce: float = 0.0
    min_gforce: float = 0.0
    mean_signal: float = 0.0
    min_signal: int = 0
    phase_counts: dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        phases = " | ".join(f"{name}: {n}" for name, n in self.phase_counts.items())
        return "\n".join([
            f"Flight Duration: {self.duration_s:.1f}s",
            f"Samples: {self.samples}",
            f"Launches: {self.launches}",
            f"Apogee: {self.apogee_m:.1f}m",
            f"G-Force: {self.min_gforce:.2f} min, {self.max_gforce:.2f} max",
            f"Signal: {self.mean_signal:.0f} dBm avg, {self.min_signal} dBm min",
            f"Phases: {phases}",
        ])


def analyze_flight(records: list[TelemetryRecord]) -> FlightStats:
    """Compute statistics from flight records."""
    if not records:
        return FlightStats()

    stats = FlightStats()
    stats.samples = len(records)
    stats.duration_s = (records[-1].timestamp - records[0].timestamp) / 1000.0
    stats.apogee_m = max(r.altitude for r in records)
    stats.max_gforce = max(r.gforce for r in records)
    stats.min_gforce = min(r.gforce for r in records)
    stats.mean_signal = sum(r.signal for r in records) / len(records)
    stats.min_signal = min(r.signal for r in records)

    counts = Counter(r.phase for r in records)
    stats.phase_counts = {p.name: counts[p] for p in FlightPhase if counts[p]}

    previous = records[0].phase
    for r in records[1:]:
        if r.phase == FlightPhase.LAUNCHING and previous != FlightPhase.LAUNCHING:
            stats.launches += 1
        previous = r.phase
    if records[0].phase == FlightPhase.LAUNCHING:
        stats.launches += 1

    return stats
