"""Frame buffers: header layout, multicast header, frames and the frame pool."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Callable, Iterator

from lwmesh.core import NetworkInfo, NwkConfig
from lwmesh.primitives import FRAME_HEADER_SIZE, Status

FRAME_MAX_SIZE = 127
MULTICAST_HEADER_SIZE = 2
FRAME_STATE_FREE = 0

_HEADER = struct.Struct("<HBHHHBBHHB")
_MULTICAST = struct.Struct("<H")
_NIBBLE = 0x0F


def _check_nibble(name: str, value: int) -> None:
    if not 0 <= value <= _NIBBLE:
        raise ValueError(f"{name} must be between 0 and 15, got {value!r}")


@dataclass
class FrameControl:
    """Network frame control field (one byte of bit flags)."""

    ack_request: bool = False
    security: bool = False
    link_local: bool = False
    multicast: bool = False
    reserved: int = 0

    def to_byte(self) -> int:
        """Encode the flags as they appear on the wire."""
        _check_nibble("reserved", self.reserved)
        return (
            int(bool(self.ack_request))
            | int(bool(self.security)) << 1
            | int(bool(self.link_local)) << 2
            | int(bool(self.multicast)) << 3
            | self.reserved << 4
        )

    @classmethod
    def from_byte(cls, value: int) -> FrameControl:
        """Decode a wire byte into flags."""
        if not 0 <= value <= 0xFF:
            raise ValueError(f"frame control byte out of range: {value!r}")
        return cls(
            ack_request=bool(value & 0x01),
            security=bool(value & 0x02),
            link_local=bool(value & 0x04),
            multicast=bool(value & 0x08),
            reserved=value >> 4,
        )


@dataclass
class FrameHeader:
    """The 16-byte MAC and network header that opens every frame."""

    mac_fcf: int = 0
    mac_seq: int = 0
    mac_dst_pan_id: int = 0
    mac_dst_addr: int = 0
    mac_src_addr: int = 0
    nwk_fcf: FrameControl = field(default_factory=FrameControl)
    nwk_seq: int = 0
    nwk_src_addr: int = 0
    nwk_dst_addr: int = 0
    nwk_src_endpoint: int = 0
    nwk_dst_endpoint: int = 0

    def pack(self) -> bytes:
        """Encode the header in wire order (little-endian)."""
        _check_nibble("nwk_src_endpoint", self.nwk_src_endpoint)
        _check_nibble("nwk_dst_endpoint", self.nwk_dst_endpoint)
        try:
            return _HEADER.pack(
                self.mac_fcf,
                self.mac_seq,
                self.mac_dst_pan_id,
                self.mac_dst_addr,
                self.mac_src_addr,
                self.nwk_fcf.to_byte(),
                self.nwk_seq,
                self.nwk_src_addr,
                self.nwk_dst_addr,
                self.nwk_src_endpoint | self.nwk_dst_endpoint << 4,
            )
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc


def parse_header(data: bytes) -> FrameHeader:
    """Decode the header at the start of a frame."""
    if len(data) < FRAME_HEADER_SIZE:
        raise ValueError(
            f"frame of {len(data)} bytes is shorter than the {FRAME_HEADER_SIZE}-byte header"
        )
    (
        mac_fcf,
        mac_seq,
        mac_dst_pan_id,
        mac_dst_addr,
        mac_src_addr,
        fcf,
        nwk_seq,
        nwk_src_addr,
        nwk_dst_addr,
        endpoints,
    ) = _HEADER.unpack_from(bytes(data[:FRAME_HEADER_SIZE]))
    return FrameHeader(
        mac_fcf=mac_fcf,
        mac_seq=mac_seq,
        mac_dst_pan_id=mac_dst_pan_id,
        mac_dst_addr=mac_dst_addr,
        mac_src_addr=mac_src_addr,
        nwk_fcf=FrameControl.from_byte(fcf),
        nwk_seq=nwk_seq,
        nwk_src_addr=nwk_src_addr,
        nwk_dst_addr=nwk_dst_addr,
        nwk_src_endpoint=endpoints & _NIBBLE,
        nwk_dst_endpoint=endpoints >> 4,
    )


@dataclass
class MulticastHeader:
    """Two-byte multicast header carrying four 4-bit radius counters."""

    non_member_radius: int = 0
    max_non_member_radius: int = 0
    member_radius: int = 0
    max_member_radius: int = 0

    def pack(self) -> bytes:
        """Encode the header in wire order."""
        for name in (
            "non_member_radius",
            "max_non_member_radius",
            "member_radius",
            "max_member_radius",
        ):
            _check_nibble(name, getattr(self, name))
        value = (
            self.non_member_radius
            | self.max_non_member_radius << 4
            | self.member_radius << 8
            | self.max_member_radius << 12
        )
        return _MULTICAST.pack(value)


def parse_multicast_header(data: bytes) -> MulticastHeader:
    """Decode a multicast header from the start of ``data``."""
    if len(data) < MULTICAST_HEADER_SIZE:
        raise ValueError("multicast header needs two bytes")
    (value,) = _MULTICAST.unpack_from(bytes(data[:MULTICAST_HEADER_SIZE]))
    return MulticastHeader(
        non_member_radius=value & _NIBBLE,
        max_non_member_radius=(value >> 4) & _NIBBLE,
        member_radius=(value >> 8) & _NIBBLE,
        max_member_radius=(value >> 12) & _NIBBLE,
    )


@dataclass(eq=False)
class Frame:
    """A frame buffer: header, the bytes after it, and receive/transmit bookkeeping.

    ``body`` holds everything that follows the header; ``payload_offset`` marks
    where the application payload starts inside it.
    """

    state: int = FRAME_STATE_FREE
    header: FrameHeader = field(default_factory=FrameHeader)
    body: bytearray = field(default_factory=bytearray)
    payload_offset: int = 0
    lqi: int = 0
    rssi: int = 0
    tx_status: Status = Status.SUCCESS
    tx_timeout: int = 0
    tx_control: int = 0
    tx_confirm: Callable[[Frame], None] | None = None

    @property
    def size(self) -> int:
        """Total frame length in bytes, header included."""
        return FRAME_HEADER_SIZE + len(self.body)

    @property
    def payload(self) -> bytes:
        return bytes(self.body[self.payload_offset :])

    @payload.setter
    def payload(self, value: bytes) -> None:
        self.body[self.payload_offset :] = value

    def payload_size(self) -> int:
        """Number of bytes from the payload start to the end of the frame."""
        return len(self.body) - self.payload_offset

    def to_bytes(self) -> bytes:
        """The frame as sent over the air, without CRC."""
        if self.size > FRAME_MAX_SIZE:
            raise ValueError(f"frame of {self.size} bytes exceeds {FRAME_MAX_SIZE} bytes")
        return self.header.pack() + bytes(self.body)


class FramePool:
    """Fixed number of frame buffers shared by the whole network layer."""

    def __init__(self, info: NetworkInfo, config: NwkConfig | None = None) -> None:
        self._info = info
        self._config = config if config is not None else NwkConfig()
        self._slots: list[Frame | None] = [None] * self._config.buffers_amount

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return sum(slot is not None for slot in self._slots)

    def alloc(self) -> Frame | None:
        """Take a cleared frame from the pool, or None when all are in use."""
        for index, slot in enumerate(self._slots):
            if slot is None:
                frame = Frame()
                self._slots[index] = frame
                self._info.lock()
                return frame
        return None

    def free(self, frame: Frame) -> None:
        """Return a frame to the pool."""
        for index, slot in enumerate(self._slots):
            if slot is frame:
                self._slots[index] = None
                frame.state = FRAME_STATE_FREE
                self._info.unlock()
                return
        raise ValueError("frame is not allocated from this pool")

    def active(self) -> Iterator[Frame]:
        """Yield allocated frames whose state is set, in slot order.

        Slots are examined lazily, so frames allocated during iteration in a
        later slot are still visited.
        """
        for frame in self._slots:
            if frame is not None and frame.state != FRAME_STATE_FREE:
                yield frame

    def command_init(self, frame: Frame) -> None:
        """Fill in the defaults of a network command frame."""
        frame.tx_status = Status.SUCCESS
        frame.header.nwk_seq = self._info.next_nwk_seq()
        frame.header.nwk_src_addr = self._info.addr
        if self._config.enable_secure_commands:
            frame.header.nwk_fcf.security = True