"""Network information base, stack configuration, timers and LQI linearisation."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Callable

from lwmesh.primitives import ENDPOINTS_AMOUNT, DataInd

EndpointHandler = Callable[[DataInd], bool]

_LQI_STEPS = (3, 8, 26, 64, 128, 190, 230, 247, 252)
_LQI_THRESHOLDS = tuple(25 * (i + 1) for i in range(len(_LQI_STEPS)))
_LQI_MAX = 255
_SEQ_MODULO = 256
_ROUTE_SCORE_LIMIT = 15


@dataclass(frozen=True)
class NwkConfig:
    """Build-time options of the network layer."""

    buffers_amount: int = 5
    duplicate_rejection_table_size: int = 10
    duplicate_rejection_ttl: int = 3000
    route_table_size: int = 10
    route_default_score: int = 3
    ack_wait_time: int = 1000
    groups_amount: int = 10
    route_discovery_table_size: int = 5
    route_discovery_timeout: int = 1000
    enable_routing: bool = True
    enable_security: bool = False
    enable_multicast: bool = False
    enable_route_discovery: bool = False
    enable_secure_commands: bool = False
    address_filter: Callable[[int, int], int | None] | None = None

    def __post_init__(self) -> None:
        for name in (
            "buffers_amount",
            "duplicate_rejection_table_size",
            "route_table_size",
            "groups_amount",
            "route_discovery_table_size",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        for name in ("duplicate_rejection_ttl", "ack_wait_time", "route_discovery_timeout"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if not 1 <= self.route_default_score <= _ROUTE_SCORE_LIMIT:
            raise ValueError(f"route_default_score must be between 1 and {_ROUTE_SCORE_LIMIT}")
        if self.enable_route_discovery and not self.enable_routing:
            raise ValueError("route discovery requires routing")
        if self.enable_secure_commands and not self.enable_security:
            raise ValueError("secure commands require security")


@dataclass
class NetworkInfo:
    """Shared state of the network layer: addresses, sequence numbers, endpoints, lock."""

    addr: int = 0
    pan_id: int = 0
    nwk_seq_num: int = 0
    mac_seq_num: int = 0
    endpoints: list[EndpointHandler | None] = field(
        default_factory=lambda: [None] * ENDPOINTS_AMOUNT
    )
    key: bytes = bytes(16)
    lock_count: int = 0

    def open_endpoint(self, endpoint_id: int, handler: EndpointHandler | None) -> None:
        """Register the indication handler for an endpoint (0-15)."""
        if not 0 <= endpoint_id < ENDPOINTS_AMOUNT:
            raise ValueError(f"endpoint id must be between 0 and {ENDPOINTS_AMOUNT - 1}")
        self.endpoints[endpoint_id] = handler

    def lock(self) -> None:
        """Mark one more pending operation."""
        self.lock_count += 1

    def unlock(self) -> None:
        """Release one pending operation."""
        if self.lock_count == 0:
            raise RuntimeError("network layer is not locked")
        self.lock_count -= 1

    def busy(self) -> bool:
        """True while any operation keeps the layer from sleeping."""
        return self.lock_count > 0

    def next_nwk_seq(self) -> int:
        """Advance and return the network sequence number."""
        self.nwk_seq_num = (self.nwk_seq_num + 1) % _SEQ_MODULO
        return self.nwk_seq_num

    def next_mac_seq(self) -> int:
        """Advance and return the MAC sequence number."""
        self.mac_seq_num = (self.mac_seq_num + 1) % _SEQ_MODULO
        return self.mac_seq_num


class IntervalTimer:
    """One-shot software timer driven by explicit time advances.

    The handler receives the timer and may start it again.
    """

    def __init__(self, interval_ms: int, handler: Callable[[IntervalTimer], None]) -> None:
        if interval_ms <= 0:
            raise ValueError("interval must be positive")
        self.interval_ms = interval_ms
        self.handler = handler
        self._running = False
        self._remaining = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def remaining(self) -> int:
        """Milliseconds left until the timer fires, 0 when stopped."""
        return self._remaining if self._running else 0

    def start(self) -> None:
        """Start the timer; a timer already running keeps its deadline."""
        if not self._running:
            self._running = True
            self._remaining = self.interval_ms

    def stop(self) -> None:
        self._running = False
        self._remaining = 0

    def advance(self, elapsed_ms: int) -> int:
        """Let time pass and fire the handler as often as due; returns the count."""
        if elapsed_ms < 0:
            raise ValueError("elapsed time must not be negative")
        fired = 0
        while self._running and elapsed_ms >= self._remaining:
            elapsed_ms -= self._remaining
            self._running = False
            self._remaining = 0
            fired += 1
            self.handler(self)
        if self._running:
            self._remaining -= elapsed_ms
        return fired


def linearize_lqi(lqi: int) -> int:
    """Map a transceiver LQI to a value proportional to delivery probability."""
    if not 0 <= lqi <= _LQI_MAX:
        raise ValueError("lqi must be between 0 and 255")
    index = bisect_right(_LQI_THRESHOLDS, lqi)
    return _LQI_STEPS[index] if index < len(_LQI_STEPS) else _LQI_MAX