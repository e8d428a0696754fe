"""Radio link health monitoring.

Tracks decode outcomes and signal strength over a rolling window and
flags a degraded link. Also backs the datasource health check.

Monitors:
- Decode rate (fraction of lines that produced a record)
- Signal strength (RSSI reported by the receiver)
- Consecutive rejected lines
- Numeric fields silently defaulted to 0.0
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LinkStatus:
    """Snapshot of link health."""
    decode_rate: float = 0.0      # rolling decode rate [0, 1]
    avg_signal: float = 0.0       # rolling mean RSSI of decoded packets
    packets_total: int = 0
    decoded_total: int = 0
    rejected_total: int = 0
    defaulted_total: int = 0      # numeric fields defaulted to 0.0
    consecutive_failures: int = 0
    uptime_s: float = 0.0
    healthy: bool = True
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class HealthCheckResult:
    ok: bool
    message: str


class LinkMonitor:
    """Monitors radio link health with rolling windows.

    Triggers warnings when:
    - Decode rate drops below threshold
    - Average signal is weaker than threshold
    - Too many consecutive rejected lines
    - Numeric fields were defaulted to 0.0
    """

    def __init__(
        self,
        window_size: int = 100,
        min_decode_rate: float = 0.5,
        min_signal: float = -110.0,
        max_consecutive_failures: int = 20,
    ):
        self._window = window_size
        self._min_decode_rate = min_decode_rate
        self._min_signal = min_signal
        self._max_consecutive_failures = max_consecutive_failures

        self._decoded: deque[bool] = deque(maxlen=window_size)
        self._signals: deque[int] = deque(maxlen=window_size)
        self._consecutive_failures = 0
        self._total = 0
        self._total_decoded = 0
        self._total_rejected = 0
        self._total_defaulted = 0
        self._start_time = time.monotonic()

    def record_packet(self, ok: bool, signal: int | None = None, defaulted: int = 0) -> None:
        """Record the outcome of decoding one line."""
        self._total += 1
        self._decoded.append(ok)

        if ok:
            self._total_decoded += 1
            self._consecutive_failures = 0
            if signal is not None:
                self._signals.append(signal)
        else:
            self._total_rejected += 1
            self._consecutive_failures += 1

        self._total_defaulted += defaulted

    @property
    def status(self) -> LinkStatus:
        """Get current link status."""
        warnings = []
        healthy = True

        decode_rate = sum(self._decoded) / len(self._decoded) if self._decoded else 0.0
        if self._total > 10 and decode_rate < self._min_decode_rate:
            warnings.append(f"Low decode rate: {decode_rate:.0%} (min {self._min_decode_rate:.0%})")
            healthy = False

        avg_signal = sum(self._signals) / len(self._signals) if self._signals else 0.0
        if self._signals and avg_signal < self._min_signal:
            warnings.append(f"Weak signal: {avg_signal:.0f} dBm (min {self._min_signal:.0f})")
            healthy = False

        if self._consecutive_failures >= self._max_consecutive_failures:
            warnings.append(f"Lost link: {self._consecutive_failures} consecutive rejected packets")
            healthy = False

        # Not unhealthy by itself, but worth surfacing
        if self._total_defaulted > 0:
            warnings.append(f"Defaulted numeric fields: {self._total_defaulted}")

        return LinkStatus(
            decode_rate=decode_rate,
            avg_signal=avg_signal,
            packets_total=self._total,
            decoded_total=self._total_decoded,
            rejected_total=self._total_rejected,
            defaulted_total=self._total_defaulted,
            consecutive_failures=self._consecutive_failures,
            uptime_s=time.monotonic() - self._start_time,
            healthy=healthy,
            warnings=warnings,
        )

    def log_status(self) -> None:
        """Log current link status."""
        s = self.status
        level = logging.INFO if s.healthy else logging.WARNING
        logger.log(
            level,
            "Link: decode=%.0f%% rssi=%.0f packets=%d rejected=%d defaulted=%d%s",
            s.decode_rate * 100,
            s.avg_signal,
            s.packets_total,
            s.rejected_total,
            s.defaulted_total,
            f" WARNINGS: {'; '.join(s.warnings)}" if s.warnings else "",
        )


def check_health(monitor: LinkMonitor | None = None) -> HealthCheckResult:
    """Datasource health check."""
    if monitor is None:
        return HealthCheckResult(ok=True, message="Data source is working")
    s = monitor.status
    if s.healthy:
        return HealthCheckResult(ok=True, message="Data source is working")
    return HealthCheckResult(ok=False, message="; ".join(s.warnings))
