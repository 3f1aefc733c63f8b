"""Routing table and the routing decisions taken on received and sent frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

from lwmesh.commands import RouteErrorCommand, decode_command
from lwmesh.core import NetworkInfo, NwkConfig
from lwmesh.frame import Frame, FramePool
from lwmesh.groups import GroupTable
from lwmesh.primitives import (
    BROADCAST_ADDR,
    BROADCAST_PANID,
    DataInd,
    Status,
    TxControl,
)

ROUTE_UNKNOWN = 0xFFFF
ROUTE_NON_ROUTING = 0x8000
ROUTE_MAX_RANK = 255
ROUTE_DEFAULT_RANK = 128

_ADDR_LIMIT = 0xFFFF
_LQI_LIMIT = 0xFF


def _check_addr(name: str, value: int) -> None:
    if not 0 <= value <= _ADDR_LIMIT:
        raise ValueError(f"{name} must be between 0 and 0xffff, got {value!r}")


@dataclass(eq=False)
class RouteEntry:
    """One routing table record."""

    dst_addr: int = ROUTE_UNKNOWN
    next_hop_addr: int = 0
    fixed: bool = False
    multicast: int = 0
    score: int = 0
    rank: int = 0
    lqi: int = 0


class RouteTable:
    """Fixed-size routing table with rank-based replacement."""

    def __init__(self, config: NwkConfig | None = None) -> None:
        self._config = config if config is not None else NwkConfig()
        self._entries = [RouteEntry() for _ in range(self._config.route_table_size)]

    @property
    def default_score(self) -> int:
        return self._config.route_default_score

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def find(self, dst: int, multicast: int) -> RouteEntry | None:
        """The entry for ``dst`` with the given multicast flag, or None."""
        multicast = int(multicast)
        return next(
            (
                entry
                for entry in self._entries
                if entry.dst_addr == dst and entry.multicast == multicast
            ),
            None,
        )

    def new_entry(self) -> RouteEntry:
        """Claim an unused entry, or evict the non-fixed entry of lowest rank."""
        chosen: RouteEntry | None = None
        for entry in self._entries:
            if entry.fixed:
                continue
            if entry.rank == 0:
                chosen = entry
                break
            if chosen is None or entry.rank < chosen.rank:
                chosen = entry
        if chosen is None:
            raise RuntimeError("every route table entry is fixed")
        chosen.multicast = 0
        chosen.score = self.default_score
        chosen.rank = ROUTE_DEFAULT_RANK
        return chosen

    def free_entry(self, entry: RouteEntry) -> None:
        """Release a non-fixed entry; fixed entries are kept."""
        if entry.fixed:
            return
        entry.dst_addr = ROUTE_UNKNOWN
        entry.rank = 0

    def next_hop(self, dst: int, multicast: int) -> int:
        """The next hop towards ``dst``, or ``ROUTE_UNKNOWN``."""
        entry = self.find(dst, multicast)
        return entry.next_hop_addr if entry is not None else ROUTE_UNKNOWN

    def update_entry(self, dst: int, multicast: int, next_hop: int, lqi: int) -> RouteEntry:
        """Create or refresh the route to ``dst``."""
        _check_addr("dst", dst)
        _check_addr("next_hop", next_hop)
        if not 0 <= lqi <= _LQI_LIMIT:
            raise ValueError(f"lqi must be between 0 and 255, got {lqi!r}")
        multicast = int(multicast) & 1
        entry = self.find(dst, multicast)
        if entry is None:
            entry = self.new_entry()
        entry.dst_addr = dst
        entry.next_hop_addr = next_hop
        entry.multicast = multicast
        entry.score = self.default_score
        entry.rank = ROUTE_DEFAULT_RANK
        entry.lqi = lqi
        return entry

    def remove(self, dst: int, multicast: int) -> None:
        """Drop the route to ``dst`` if one exists and is not fixed."""
        entry = self.find(dst, multicast)
        if entry is not None:
            self.free_entry(entry)

    def normalize_ranks(self) -> None:
        """Halve every rank (plus one) so that ranks stay below the maximum."""
        for entry in self._entries:
            entry.rank = (entry.rank >> 1) + 1


class Router:
    """Routing decisions of the network layer.

    ``send`` queues a frame for transmission. ``discovery_request`` starts
    route discovery for a frame with no known next hop and is required when
    route discovery is enabled.
    """

    def __init__(
        self,
        info: NetworkInfo,
        table: RouteTable,
        pool: FramePool,
        send: Callable[[Frame], None],
        *,
        config: NwkConfig | None = None,
        groups: GroupTable | None = None,
        discovery_request: Callable[[Frame], None] | None = None,
    ) -> None:
        self._config = config if config is not None else NwkConfig()
        if self._config.enable_multicast and groups is None:
            raise ValueError("multicast routing needs a group table")
        if self._config.enable_route_discovery and discovery_request is None:
            raise ValueError("route discovery needs a discovery request handler")
        self.info = info
        self.table = table
        self.pool = pool
        self._send = send
        self._groups = groups
        self._discovery_request = discovery_request

    def frame_received(self, frame: Frame) -> None:
        """Learn a route back to the frame's originator."""
        if self._config.enable_route_discovery:
            return
        header = frame.header
        if header.mac_src_addr & ROUTE_NON_ROUTING and header.mac_src_addr != header.nwk_src_addr:
            return
        if header.mac_dst_pan_id == BROADCAST_PANID:
            return

        entry = self.table.find(header.nwk_src_addr, 0)
        if entry is not None:
            discovery = (
                header.mac_dst_addr == BROADCAST_ADDR
                and header.nwk_dst_addr == self.info.addr
            )
            if (
                entry.next_hop_addr != header.mac_src_addr and frame.lqi > entry.lqi
            ) or discovery:
                entry.next_hop_addr = header.mac_src_addr
                entry.score = self.table.default_score
        else:
            entry = self.table.new_entry()
            entry.dst_addr = header.nwk_src_addr
            entry.next_hop_addr = header.mac_src_addr
        entry.lqi = frame.lqi

    def frame_sent(self, frame: Frame) -> None:
        """Reward or penalise the route used by a transmitted frame."""
        header = frame.header
        if header.nwk_dst_addr == BROADCAST_ADDR:
            return
        entry = self.table.find(header.nwk_dst_addr, int(header.nwk_fcf.multicast))
        if entry is None or entry.fixed:
            return
        if frame.tx_status == Status.SUCCESS:
            entry.score = self.table.default_score
            entry.rank += 1
            if entry.rank == ROUTE_MAX_RANK:
                self.table.normalize_ranks()
        else:
            entry.score -= 1
            if entry.score == 0:
                self.table.free_entry(entry)

    def prepare_tx(self, frame: Frame) -> None:
        """Choose the MAC destination of an outgoing frame."""
        header = frame.header
        if header.nwk_dst_addr == BROADCAST_ADDR:
            header.mac_dst_addr = BROADCAST_ADDR
        elif header.nwk_fcf.link_local:
            header.mac_dst_addr = header.nwk_dst_addr
        elif (
            self._config.enable_multicast
            and header.nwk_fcf.multicast
            and self._groups is not None
            and self._groups.is_member(header.nwk_dst_addr)
        ):
            header.mac_dst_addr = BROADCAST_ADDR
            header.nwk_fcf.link_local = True
        else:
            header.mac_dst_addr = self.table.next_hop(
                header.nwk_dst_addr, int(header.nwk_fcf.multicast)
            )
            if (
                self._config.enable_route_discovery
                and header.mac_dst_addr == ROUTE_UNKNOWN
                and self._discovery_request is not None
            ):
                self._discovery_request(frame)

    def route_frame(self, frame: Frame) -> None:
        """Forward a frame addressed to another node, or report a route error."""
        header = frame.header
        multicast = int(header.nwk_fcf.multicast)
        if self.table.next_hop(header.nwk_dst_addr, multicast) != ROUTE_UNKNOWN:
            frame.tx_confirm = None
            frame.tx_control = TxControl.ROUTING
            self._send(frame)
        else:
            self._send_route_error(header.nwk_src_addr, header.nwk_dst_addr, multicast)
            self.pool.free(frame)

    def error_received(self, ind: DataInd) -> bool:
        """Handle a route error command; False when the payload is malformed."""
        if ind.size != RouteErrorCommand.SIZE:
            return False
        try:
            command = decode_command(ind.data)
        except ValueError:
            return False
        if not isinstance(command, RouteErrorCommand):
            return False
        self.table.remove(command.dst_addr, command.multicast)
        return True

    def _send_route_error(self, src: int, dst: int, multicast: int) -> None:
        frame = self.pool.alloc()
        if frame is None:
            return
        self.pool.command_init(frame)
        frame.body.extend(RouteErrorCommand(src, dst, multicast).pack())
        frame.tx_confirm = None
        frame.header.nwk_dst_addr = src
        self._send(frame)