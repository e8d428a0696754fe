"""CLI for the ground station operator.

Usage:
    rocketctl simulate --count 200 --format radio > flight.txt
    rocketctl decode flight.txt > records.jsonl
    rocketctl track records.jsonl --output track.geojson
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

import click

from rocketdata.records import TelemetryRecord
from rocketctl.track import analyze_flight, build_track, track_to_geojson
from rocketlink.config import SimulatorConfig
from rocketlink.decoder import DecodeError, encode_framed, encode_payload, parse_packet
from rocketlink.simulator import FlightSimulator
from rocketlink.stream import STREAM_FIELDS, StreamQuery, build_frame

logger = logging.getLogger(__name__)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Rocket telemetry ground tools: simulate, decode and track flights."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@cli.command()
@click.option("--count", "-n", type=int, default=120, show_default=True, help="Records to emit")
@click.option("--format", "fmt", type=click.Choice(["record", "frame", "radio", "payload"]),
              default="record", show_default=True, help="Output format")
@click.option("--field", "fields", multiple=True, type=click.Choice(STREAM_FIELDS),
              help="Frame field to include (repeatable, default: all)")
@click.option("--realtime", is_flag=True, help="Pace output on the wall clock")
@click.option("--launch-delay", type=float, default=5.0, show_default=True,
              help="Seconds on the pad before launch")
def simulate(count: int, fmt: str, fields: tuple[str, ...], realtime: bool, launch_delay: float):
    """Emit simulated flight telemetry, one line per step."""
    config = SimulatorConfig(launch_delay_s=launch_delay)

    if realtime:
        sim = FlightSimulator(config)
    else:
        # Simulated clock: the launch dwell elapses without waiting
        now = [time.time()]
        sim = FlightSimulator(config, clock=lambda: now[0])

    query = StreamQuery(fields=list(fields))
    for _ in range(count):
        record = sim.advance()
        if fmt == "record":
            line = json.dumps(record.to_dict())
        elif fmt == "frame":
            line = build_frame(record, query).to_json()
        elif fmt == "radio":
            line = encode_framed(record)
        else:
            line = encode_payload(record)
        click.echo(line)

        if realtime:
            time.sleep(config.step_s)
        else:
            now[0] += config.step_s


@cli.command()
@click.argument("input_file", type=click.File("r"), default="-")
@click.option("--strict", is_flag=True, help="Exit non-zero if any line is rejected")
def decode(input_file, strict: bool):
    """Decode radio lines into JSON-line records."""
    decoded = rejected = defaulted = 0
    for line in input_file:
        line = line.strip()
        if not line:
            continue
        try:
            packet = parse_packet(line)
        except DecodeError as e:
            rejected += 1
            logger.warning("Rejected %r: %s", line, e)
            continue
        decoded += 1
        defaulted += len(packet.defaulted_fields)
        click.echo(json.dumps(packet.record.to_dict()))

    click.echo(f"Decoded {decoded} lines, rejected {rejected}, "
               f"defaulted fields {defaulted}", err=True)
    if strict and rejected:
        raise SystemExit(1)


def _load_rows(path: Path) -> list[dict]:
    rows = []
    with open(path) as f:
        for n, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as e:
                raise click.ClickException(f"{path}:{n}: invalid JSON: {e}") from e
            if not isinstance(row, dict):
                raise click.ClickException(f"{path}:{n}: expected a JSON object")
            # Frames nest their values under "fields"
            if isinstance(row.get("fields"), dict):
                row = row["fields"]
            rows.append(row)
    return rows


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path),
              default=Path("flight_track.geojson"), show_default=True)
@click.option("--lat-field", default="latitude", show_default=True)
@click.option("--lon-field", default="longitude", show_default=True)
@click.option("--alt-field", default="altitude", show_default=True)
def track(input_file: Path, output: Path, lat_field: str, lon_field: str, alt_field: str):
    """Build a GeoJSON flight track from JSON-line records or frames."""
    rows = _load_rows(input_file)
    view = build_track(rows, lat_field=lat_field, lon_field=lon_field, alt_field=alt_field)
    if not view.has_data:
        raise click.ClickException(f"No position data in {input_file}")

    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w") as f:
        json.dump(track_to_geojson(view), f, indent=2)
    click.echo(f"Track with {len(view.path)} points saved to {output}")

    # Full records carry enough to summarize the flight
    records = []
    for row in rows:
        try:
            records.append(TelemetryRecord.from_dict(row))
        except (KeyError, TypeError, ValueError):
            records = []
            break
    if records:
        click.echo(analyze_flight(records).summary())


if __name__ == "__main__":
    cli()
