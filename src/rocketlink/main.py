"""Ground telemetry link service.

Streams telemetry frames as JSON lines on stdout. Frames come from the
flight simulator, or from the serial radio receiver when it is enabled
in the config.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
import time
from pathlib import Path

import click

from rocketlink.config import LinkConfig, load_config
from rocketlink.health import LinkMonitor
from rocketlink.radio import RadioReceiver
from rocketlink.simulator import FlightSimulator
from rocketlink.stream import Frame, StreamQuery, TelemetryStream

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("/etc/rocketlink/config.json")

_stop = threading.Event()


def _signal_handler(sig, frame):
    logger.info("Shutdown signal received")
    _stop.set()


def _emit(frame: Frame) -> None:
    sys.stdout.write(frame.to_json() + "\n")
    sys.stdout.flush()


def build_stream(config: LinkConfig, radio: RadioReceiver | None = None) -> TelemetryStream:
    """Wire a stream to the configured record source.

    The radio paces itself (readline blocks until a packet or timeout),
    so a radio-backed stream does not sleep between ticks.
    """
    query = StreamQuery(fields=config.stream.fields)
    if radio is not None:
        return TelemetryStream(query, source=radio.read_record, interval_s=0.0)
    simulator = FlightSimulator(config.simulator)
    return TelemetryStream(query, source=simulator.advance, interval_s=config.stream.interval_s)


def run(config: LinkConfig, stop_event: threading.Event) -> int:
    """Run the service until stopped. Returns frames sent."""
    monitor = LinkMonitor()
    radio: RadioReceiver | None = None
    if config.radio.enabled:
        radio = RadioReceiver(
            config.radio.port,
            config.radio.baudrate,
            timeout=config.radio.timeout,
            monitor=monitor,
        )
        if not radio.open():
            logger.warning("Radio unavailable at startup, will keep retrying")
    else:
        logger.info("No radio configured, streaming simulated flight")

    stream = build_stream(config, radio)

    health_stop = threading.Event()

    def _health_loop():
        while not health_stop.wait(config.health_interval_s):
            monitor.log_status()

    if radio is not None:
        threading.Thread(target=_health_loop, name="link-health", daemon=True).start()

    try:
        return stream.run(_emit, stop_event)
    finally:
        health_stop.set()
        if radio is not None:
            logger.info(radio.summary())
            radio.close()


@click.command()
@click.option("--config", "config_path", type=click.Path(path_type=Path),
              default=DEFAULT_CONFIG_PATH, show_default=True, help="JSON config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(config_path: Path, verbose: bool):
    """Stream rocket telemetry frames as JSON lines."""
    config = load_config(config_path)

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    t0 = time.monotonic()
    sent = run(config, _stop)
    logger.info("Service shutdown. %d frames in %.0fs", sent, time.monotonic() - t0)


if __name__ == "__main__":
    main()
