"""Serial radio receiver feeding the packet decoder.

The ground receiver prints one packet per line over USB serial. This
module owns the port lifecycle (open, read, close, reconnect on failure)
and turns each line into a TelemetryRecord. A bad line is counted and
skipped; it never desynchronizes the lines that follow.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator

import serial

from rocketdata.records import TelemetryRecord
from rocketlink.decoder import DecodeError, parse_packet
from rocketlink.health import LinkMonitor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RadioStats:
    """Receiver statistics."""
    lines_read: int = 0
    decoded: int = 0
    rejected: int = 0
    defaulted_fields: int = 0
    reconnects: int = 0
    last_signal: int | None = None
    connected: bool = False


class RadioReceiver:
    """Reads and decodes telemetry lines from a serial radio.

    Usage:
        with RadioReceiver("/dev/ttyUSB0") as radio:
            for record in radio.records():
                ...
    """

    def __init__(
        self,
        port: str = "/dev/ttyUSB0",
        baudrate: int = 115200,
        timeout: float = 1.0,
        retry_delay_s: float = 1.0,
        monitor: LinkMonitor | None = None,
        port_factory: Callable[..., serial.Serial] = serial.Serial,
    ):
        self._port = port
        self._baudrate = baudrate
        self._timeout = timeout
        self._retry_delay = retry_delay_s
        self._monitor = monitor
        self._port_factory = port_factory
        self._serial = None
        self._closed = True
        self._stats = RadioStats()

    @property
    def stats(self) -> RadioStats:
        return self._stats

    @property
    def is_connected(self) -> bool:
        return self._stats.connected

    def open(self) -> bool:
        """Open the serial port. Returns True on success."""
        self._closed = False
        return self._connect()

    def _connect(self) -> bool:
        try:
            self._serial = self._port_factory(
                port=self._port,
                baudrate=self._baudrate,
                timeout=self._timeout,
            )
            # Drop any partial line buffered before we attached
            self._serial.reset_input_buffer()
            self._stats.connected = True
            logger.info("Radio opened: %s @ %d", self._port, self._baudrate)
            return True
        except (serial.SerialException, OSError) as e:
            logger.error("Failed to open radio %s: %s", self._port, e)
            self._serial = None
            self._stats.connected = False
            return False

    def close(self) -> None:
        """Close the serial port and end any running records() loop."""
        self._closed = True
        self._release()

    def _release(self) -> None:
        if self._serial is not None:
            try:
                self._serial.close()
            except (serial.SerialException, OSError) as e:
                logger.debug("Error closing radio %s: %s", self._port, e)
            self._serial = None
        self._stats.connected = False

    def _reconnect(self) -> bool:
        self._release()
        self._stats.reconnects += 1
        logger.info("Reconnecting radio %s (attempt #%d)", self._port, self._stats.reconnects)
        return self._connect()

    def read_line(self) -> str | None:
        """Read one raw line. None on timeout or link failure."""
        if self._serial is None or not self._stats.connected:
            if not self._reconnect():
                time.sleep(self._retry_delay)
                return None

        try:
            raw = self._serial.readline()
        except (serial.SerialException, OSError) as e:
            logger.warning("Radio read failed on %s: %s", self._port, e)
            self._stats.connected = False
            return None

        if not raw:
            return None
        return raw.decode("utf-8", errors="replace").strip()

    def handle_line(self, line: str) -> TelemetryRecord | None:
        """Decode one line and update statistics."""
        if not line:
            return None

        self._stats.lines_read += 1
        try:
            packet = parse_packet(line)
        except DecodeError as e:
            self._stats.rejected += 1
            if self._monitor is not None:
                self._monitor.record_packet(ok=False)
            logger.warning("Rejected radio line %r: %s", line, e)
            return None

        record = packet.record
        self._stats.decoded += 1
        self._stats.defaulted_fields += len(packet.defaulted_fields)
        self._stats.last_signal = record.signal
        if self._monitor is not None:
            self._monitor.record_packet(
                ok=True, signal=record.signal, defaulted=len(packet.defaulted_fields),
            )
        return record

    def read_record(self) -> TelemetryRecord | None:
        """Read and decode the next line. None if nothing usable arrived."""
        line = self.read_line()
        if line is None:
            return None
        return self.handle_line(line)

    def records(self) -> Iterator[TelemetryRecord]:
        """Yield decoded records until the receiver is closed.

        A lost link does not end the loop; reads keep reconnecting.
        """
        while not self._closed:
            record = self.read_record()
            if record is not None:
                yield record

    def summary(self) -> str:
        """Human-readable receiver summary."""
        s = self._stats
        return (
            f"Radio {self._port}: "
            f"{'connected' if s.connected else 'disconnected'}, "
            f"{s.decoded} decoded, {s.rejected} rejected, "
            f"{s.defaulted_fields} defaulted fields, {s.reconnects} reconnects"
        )

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()
