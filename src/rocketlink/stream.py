"""Telemetry frame streaming.

Turns TelemetryRecords into single-row, field-oriented frames for a live
subscription. Each subscription owns its own FlightSimulator (unless a
record source is supplied) and is advanced by exactly one driver loop on
a fixed cadence. The driver stops when its stop event is set.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import BaseModel, ValidationError

from rocketdata.records import TelemetryRecord
from rocketlink.simulator import FlightSimulator

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Canonical frame order after "time"
STREAM_FIELDS = (
    "altitude",
    "latitude",
    "longitude",
    "state",
    "pitch",
    "roll",
    "yaw",
    "gforce",
    "signal",
)


class StreamQuery(BaseModel):
    """Subscription query. Empty `fields` streams everything."""
    fields: list[str] = []

    @classmethod
    def parse(cls, data: bytes | str | None) -> StreamQuery:
        """Parse a query payload, falling back to all fields if invalid."""
        if not data:
            return cls()
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            logger.warning("Ignoring invalid stream query: %s", e)
            return cls()

    def includes(self, name: str) -> bool:
        return not self.fields or name in self.fields


@dataclass(slots=True)
class Frame:
    """One streamed data frame: field name -> value, `time` first."""
    name: str = "response"
    values: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict:
        out: dict[str, object] = {}
        for key, value in self.values.items():
            out[key] = value.isoformat() if isinstance(value, datetime) else value
        return {"name": self.name, "fields": out}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


def _field_value(record: TelemetryRecord, name: str) -> object:
    if name == "latitude":
        return record.position.latitude
    if name == "longitude":
        return record.position.longitude
    if name == "state":
        return int(record.phase)
    if name == "signal":
        return int(record.signal)
    return float(getattr(record, name))


def _frame_time(record: TelemetryRecord) -> datetime:
    try:
        return EPOCH + timedelta(milliseconds=record.timestamp_ms)
    except (OverflowError, ValueError):
        # Decoded timestamps are not validated; NaN or out-of-range values land here
        logger.warning("Unrepresentable timestamp %r, using epoch", record.timestamp)
        return EPOCH


def build_frame(record: TelemetryRecord, query: StreamQuery | None = None) -> Frame:
    """Build a frame holding the query's fields for one record."""
    query = query or StreamQuery()
    values: dict[str, object] = {
        "time": _frame_time(record),
    }
    for name in STREAM_FIELDS:
        if query.includes(name):
            values[name] = _field_value(record, name)
    return Frame(values=values)


def channel_path(query: StreamQuery) -> str:
    """Per-query live channel path; distinct field sets get distinct channels."""
    return "custom-" + "_".join(query.fields)


class TelemetryStream:
    """Drives one subscription: record source -> frames -> sink.

    Usage:
        stream = TelemetryStream(StreamQuery(fields=["altitude"]))
        stop = threading.Event()
        stream.run(sink=print, stop_event=stop)
    """

    def __init__(
        self,
        query: StreamQuery | None = None,
        source: Callable[[], TelemetryRecord | None] | None = None,
        interval_s: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
    ):
        self._query = query or StreamQuery()
        self._simulator: FlightSimulator | None = None
        if source is None:
            self._simulator = FlightSimulator()
            source = self._simulator.advance
        self._source = source
        self._interval = interval_s
        self._clock = clock
        self._sleep = sleep
        self._frames_sent = 0
        self._send_errors = 0

    @property
    def query(self) -> StreamQuery:
        return self._query

    @property
    def simulator(self) -> FlightSimulator | None:
        return self._simulator

    @property
    def frames_sent(self) -> int:
        return self._frames_sent

    @property
    def send_errors(self) -> int:
        return self._send_errors

    def tick(self) -> Frame | None:
        """Pull one record from the source and frame it."""
        record = self._source()
        if record is None:
            return None
        return build_frame(record, self._query)

    def run(
        self,
        sink: Callable[[Frame], None],
        stop_event: threading.Event,
        max_frames: int | None = None,
    ) -> int:
        """Stream frames to `sink` until `stop_event` is set.

        Returns the number of frames delivered.
        """
        logger.info("Starting stream (fields=%s)", self._query.fields or "all")
        sleep = self._sleep or stop_event.wait

        while not stop_event.is_set():
            t0 = self._clock()

            frame = self.tick()
            if frame is not None:
                try:
                    sink(frame)
                    self._frames_sent += 1
                except Exception as e:
                    self._send_errors += 1
                    logger.error("Failed to send frame: %s", e)

            if max_frames is not None and self._frames_sent >= max_frames:
                break

            remaining = self._interval - (self._clock() - t0)
            if remaining > 0:
                sleep(remaining)

        logger.info("Stream stopped after %d frames (%d send errors)",
                    self._frames_sent, self._send_errors)
        return self._frames_sent
