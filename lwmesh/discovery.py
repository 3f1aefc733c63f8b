"""Route discovery: flooding route requests and collecting route replies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypeVar

from lwmesh.commands import RouteReplyCommand, RouteRequestCommand, decode_command
from lwmesh.core import IntervalTimer, NetworkInfo
from lwmesh.frame import Frame, FramePool
from lwmesh.groups import GroupTable
from lwmesh.primitives import BROADCAST_ADDR, DataInd, Status, TxControl
from lwmesh.routing import ROUTE_NON_ROUTING, RouteTable

RD_STATE_WAIT_FOR_ROUTE = 0x40
BEST_LINK_QUALITY = 255
NO_LINK = 0
TIMER_INTERVAL = 100
DEFAULT_TABLE_SIZE = 5
DEFAULT_TIMEOUT = 1000

_LQ_LIMIT = 0xFF

_C = TypeVar("_C", RouteRequestCommand, RouteReplyCommand)


def update_link_quality(lqa: int, lqb: int) -> int:
    """Combine two link qualities into the quality of the joined path."""
    for name, value in (("lqa", lqa), ("lqb", lqb)):
        if not 0 <= value <= _LQ_LIMIT:
            raise ValueError(f"{name} must be between 0 and 255, got {value!r}")
    return (lqa * lqb) >> 8


@dataclass(eq=False)
class _DiscoveryEntry:
    src_addr: int = 0
    dst_addr: int = 0
    multicast: int = 0
    sender_addr: int = 0
    forward_link_quality: int = NO_LINK
    reverse_link_quality: int = NO_LINK
    timeout: int = 0


class _Transmitter(Protocol):
    def send(self, frame: Frame) -> None: ...

    def confirm(self, frame: Frame, status: int) -> None: ...


class RouteDiscovery:
    """Finds routes on demand by flooding requests and following replies back.

    Frames waiting for a route are parked in the ``RD_STATE_WAIT_FOR_ROUTE``
    state and are sent, or failed with ``Status.NO_ROUTE``, when their
    discovery entry times out.
    """

    def __init__(
        self,
        info: NetworkInfo,
        pool: FramePool,
        table: RouteTable,
        tx: _Transmitter,
        *,
        groups: GroupTable | None = None,
        table_size: int = DEFAULT_TABLE_SIZE,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        if table_size < 1:
            raise ValueError("discovery table needs at least one entry")
        if timeout < 1:
            raise ValueError("discovery timeout must be positive")
        self.info = info
        self.pool = pool
        self.table = table
        self.tx = tx
        self.groups = groups
        self._timeout = timeout
        self._entries = [_DiscoveryEntry() for _ in range(table_size)]
        self.timer = IntervalTimer(TIMER_INTERVAL, lambda timer: self.timer_fired())

    @property
    def active_entries(self) -> int:
        """Number of discoveries still in progress."""
        return sum(entry.timeout > 0 for entry in self._entries)

    def request(self, frame: Frame) -> None:
        """Start (or join) discovery of a route for an outgoing frame."""
        header = frame.header
        multicast = int(header.nwk_fcf.multicast)
        own = self.info.addr

        if self._find(own, header.nwk_dst_addr, multicast) is not None:
            frame.state = RD_STATE_WAIT_FOR_ROUTE
            return

        entry = self._new_entry()
        if entry is not None:
            entry.src_addr = own
            entry.dst_addr = header.nwk_dst_addr
            entry.multicast = multicast
            entry.sender_addr = BROADCAST_ADDR
            if self._send_request(entry, BEST_LINK_QUALITY):
                frame.state = RD_STATE_WAIT_FOR_ROUTE
                return

        self.tx.confirm(frame, Status.NO_ROUTE)

    def request_received(self, ind: DataInd) -> bool:
        """Handle a route request command; False when the payload is malformed."""
        command = self._decode(ind, RouteRequestCommand)
        if command is None:
            return False

        own = self.info.addr
        reply = False
        if (
            self.groups is not None
            and command.multicast == 1
            and self.groups.is_member(command.dst_addr)
        ):
            reply = True
        if command.multicast == 0 and command.dst_addr == own:
            reply = True

        if command.src_addr == own:
            return True
        if not reply and own & ROUTE_NON_ROUTING:
            return True

        link_quality = update_link_quality(command.link_quality, ind.lqi)

        entry = self._find(command.src_addr, command.dst_addr, command.multicast)
        if entry is not None:
            if link_quality <= entry.forward_link_quality:
                return True
        else:
            entry = self._new_entry()
            if entry is None:
                return True

        entry.src_addr = command.src_addr
        entry.dst_addr = command.dst_addr
        entry.multicast = command.multicast
        entry.sender_addr = ind.src_addr
        entry.forward_link_quality = link_quality

        if reply:
            self.table.update_entry(command.src_addr, 0, ind.src_addr, link_quality)
            self._send_reply(entry, link_quality, BEST_LINK_QUALITY)
        else:
            self._send_request(entry, link_quality)
        return True

    def reply_received(self, ind: DataInd) -> bool:
        """Handle a route reply command; False when the payload is malformed."""
        command = self._decode(ind, RouteReplyCommand)
        if command is None:
            return False

        entry = self._find(command.src_addr, command.dst_addr, command.multicast)
        link_quality = update_link_quality(command.reverse_link_quality, ind.lqi)

        if entry is not None and command.forward_link_quality > entry.reverse_link_quality:
            entry.reverse_link_quality = command.forward_link_quality

            if command.src_addr == self.info.addr:
                self.table.update_entry(
                    command.dst_addr, command.multicast, ind.src_addr, command.forward_link_quality
                )
            else:
                self.table.update_entry(
                    command.dst_addr, command.multicast, ind.src_addr, link_quality
                )
                self.table.update_entry(
                    command.src_addr, 0, entry.sender_addr, entry.forward_link_quality
                )
                self._send_reply(entry, command.forward_link_quality, link_quality)
        return True

    def timer_fired(self) -> None:
        """Age discovery entries and finish those that have run out of time."""
        restart = False
        for entry in self._entries:
            if entry.timeout > TIMER_INTERVAL:
                entry.timeout -= TIMER_INTERVAL
                restart = True
            else:
                entry.timeout = 0
                if entry.src_addr == self.info.addr:
                    self._done(entry, entry.reverse_link_quality > 0)
        if restart:
            self.timer.start()

    def _decode(self, ind: DataInd, cls: type[_C]) -> _C | None:
        if ind.size != cls.SIZE:
            return None
        try:
            command = decode_command(ind.data)
        except ValueError:
            return None
        return command if isinstance(command, cls) else None

    def _find(self, src: int, dst: int, multicast: int) -> _DiscoveryEntry | None:
        return next(
            (
                entry
                for entry in self._entries
                if entry.timeout > 0
                and entry.src_addr == src
                and entry.dst_addr == dst
                and entry.multicast == multicast
            ),
            None,
        )

    def _new_entry(self) -> _DiscoveryEntry | None:
        entry = next((e for e in self._entries if e.timeout == 0), None)
        if entry is not None:
            entry.forward_link_quality = NO_LINK
            entry.reverse_link_quality = NO_LINK
            entry.timeout = self._timeout
            self.timer.start()
        return entry

    def _send_request(self, entry: _DiscoveryEntry, link_quality: int) -> bool:
        frame = self.pool.alloc()
        if frame is None:
            return False
        self.pool.command_init(frame)
        frame.body.extend(
            RouteRequestCommand(
                entry.src_addr, entry.dst_addr, entry.multicast, link_quality
            ).pack()
        )
        frame.tx_confirm = None
        frame.header.nwk_fcf.link_local = True
        frame.header.nwk_dst_addr = BROADCAST_ADDR
        self.tx.send(frame)
        return True

    def _send_reply(self, entry: _DiscoveryEntry, forward: int, reverse: int) -> None:
        frame = self.pool.alloc()
        if frame is None:
            return
        self.pool.command_init(frame)
        frame.body.extend(
            RouteReplyCommand(
                entry.src_addr, entry.dst_addr, entry.multicast, forward, reverse
            ).pack()
        )
        frame.tx_confirm = None
        frame.tx_control = TxControl.DIRECT_LINK
        frame.header.nwk_dst_addr = entry.sender_addr
        self.tx.send(frame)

    def _done(self, entry: _DiscoveryEntry, found: bool) -> None:
        for frame in self.pool.active():
            if frame.state != RD_STATE_WAIT_FOR_ROUTE:
                continue
            if (
                entry.dst_addr != frame.header.nwk_dst_addr
                or entry.multicast != int(frame.header.nwk_fcf.multicast)
            ):
                continue
            if found:
                self.tx.send(frame)
            else:
                self.tx.confirm(frame, Status.NO_ROUTE)