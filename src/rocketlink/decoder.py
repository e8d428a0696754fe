"""Radio telemetry packet decoder.

The ground receiver forwards each radio packet as one text line,
optionally wrapped in its own diagnostics:

    Received - RSSI: -89, Message: <payload>

The payload is 10 comma-separated fields in fixed order:

    timestamp,pitch,roll,yaw,gforce,altitude,lat,lon,phase,sample_rate

Decoding is lenient inside a payload of the right arity: a numeric field
that does not parse becomes 0.0 and an unknown phase name becomes LANDED.
A timestamp must also fit a 64-bit millisecond count.
Only a wrong field count rejects the packet.

All functions here are pure and safe to call from any thread.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

from rocketdata.records import (
    INT64_MAX,
    INT64_MIN,
    GeoPosition,
    TelemetryRecord,
    phase_from_name,
)

logger = logging.getLogger(__name__)

DEFAULT_SIGNAL = -50    # nominal link quality when the receiver adds no RSSI

PAYLOAD_FIELDS = (
    "timestamp",
    "pitch",
    "roll",
    "yaw",
    "gforce",
    "altitude",
    "latitude",
    "longitude",
    "phase",
    "sample_rate",
)
NUM_FIELDS = len(PAYLOAD_FIELDS)

_FRAMING_RE = re.compile(r"RSSI\s*:\s*(-?\d+)\s*,\s*Message\s*:\s*(.+)", re.ASCII)

# Plain decimal or scientific notation, plus nan and inf
_NUMBER_RE = re.compile(
    r"[+-]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?|inf(?:inity)?|nan)",
    re.ASCII | re.IGNORECASE,
)


class DecodeError(ValueError):
    """Packet payload does not have the expected field count."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"malformed field count: expected {expected} fields, got {actual}"
        )


@dataclass(slots=True, frozen=True)
class ParsedPacket:
    """A decoded packet plus partial-decode diagnostics."""
    record: TelemetryRecord
    defaulted_fields: tuple[str, ...] = ()  # numeric fields that fell back to 0.0
    framed: bool = False                    # receiver RSSI framing was present


def unwrap_framing(raw: str) -> tuple[int, str, bool]:
    """Strip receiver framing.

    Returns:
        (signal, payload, framed)
    """
    m = _FRAMING_RE.search(raw)
    if m is None:
        return DEFAULT_SIGNAL, raw, False
    text = m.group(1)
    signal = DEFAULT_SIGNAL
    # int64 holds at most 19 digits; longer strings are never parsed
    if len(text.lstrip("-")) <= 19 and INT64_MIN <= int(text) <= INT64_MAX:
        signal = int(text)
    else:
        logger.debug("RSSI %.24s out of range, using default", text)
    return signal, m.group(2).strip(), True


def _parse_float(text: str) -> float | None:
    if _NUMBER_RE.fullmatch(text) is None:
        return None
    value = float(text)
    if math.isinf(value) and "inf" not in text.lower():
        return None  # overflow
    return value


def _valid_timestamp(value: float) -> bool:
    return math.isfinite(value) and INT64_MIN <= value < INT64_MAX


def parse_packet(raw: str) -> ParsedPacket:
    """Decode one radio line, reporting fields that defaulted to 0.0.

    Raises:
        DecodeError: payload does not split into exactly 10 fields.
    """
    signal, payload, framed = unwrap_framing(raw)

    parts = [p.strip() for p in payload.split(",")]
    if len(parts) != NUM_FIELDS:
        raise DecodeError(NUM_FIELDS, len(parts))

    values: dict[str, float] = {}
    defaulted = []
    for name, text in zip(PAYLOAD_FIELDS, parts):
        if name == "phase":
            continue
        value = _parse_float(text)
        if name == "timestamp" and value is not None and not _valid_timestamp(value):
            value = None
        if value is None:
            defaulted.append(name)
            value = 0.0
        values[name] = value

    if defaulted:
        logger.debug("Defaulted unparseable fields to 0.0: %s", ", ".join(defaulted))

    record = TelemetryRecord(
        signal=signal,
        timestamp=values["timestamp"],
        pitch=values["pitch"],
        roll=values["roll"],
        yaw=values["yaw"],
        gforce=values["gforce"],
        altitude=values["altitude"],
        position=GeoPosition(
            latitude=values["latitude"],
            longitude=values["longitude"],
        ),
        phase=phase_from_name(parts[8]),
        sample_rate=values["sample_rate"],
    )
    return ParsedPacket(record=record, defaulted_fields=tuple(defaulted), framed=framed)


def decode(raw: str) -> TelemetryRecord:
    """Decode one radio line into a TelemetryRecord.

    Raises:
        DecodeError: payload does not split into exactly 10 fields.
    """
    return parse_packet(raw).record


def encode_payload(record: TelemetryRecord) -> str:
    """Format a record as a bare 10-field radio payload.

    Floats are written with repr() so decode() reproduces them exactly.
    """
    fields = [
        record.timestamp,
        record.pitch,
        record.roll,
        record.yaw,
        record.gforce,
        record.altitude,
        record.position.latitude,
        record.position.longitude,
    ]
    parts = [repr(float(v)) for v in fields]
    parts.append(record.phase.name)
    parts.append(repr(float(record.sample_rate)))
    return ",".join(parts)


def encode_framed(record: TelemetryRecord) -> str:
    """Format a record the way the ground receiver prints it."""
    return f"Received - RSSI: {record.signal}, Message: {encode_payload(record)}"
