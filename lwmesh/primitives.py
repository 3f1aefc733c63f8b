"""Public network-layer types: status codes, option flags, request and indication."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Any, Callable

FRAME_HEADER_SIZE = 16
CRC_SIZE = 2
MAX_PAYLOAD_SIZE = 127 - FRAME_HEADER_SIZE - CRC_SIZE

BROADCAST_PANID = 0xFFFF
BROADCAST_ADDR = 0xFFFF

ENDPOINTS_AMOUNT = 16

_ADDR_LIMIT = 0xFFFF
_ENDPOINT_LIMIT = ENDPOINTS_AMOUNT - 1
_RADIUS_LIMIT = 0x0F


class Status(IntEnum):
    """Outcome reported to the application for a data request."""

    SUCCESS = 0x00
    ERROR = 0x01
    OUT_OF_MEMORY = 0x02
    NO_ACK = 0x10
    NO_ROUTE = 0x11
    PHY_CHANNEL_ACCESS_FAILURE = 0x20
    PHY_NO_ACK = 0x21


class DataReqOption(IntFlag):
    """Options of an outgoing data request."""

    NONE = 0
    ACK_REQUEST = 1 << 0
    ENABLE_SECURITY = 1 << 1
    BROADCAST_PAN_ID = 1 << 2
    LINK_LOCAL = 1 << 3
    MULTICAST = 1 << 4


class IndOption(IntFlag):
    """Properties of a received data indication."""

    NONE = 0
    ACK_REQUESTED = 1 << 0
    SECURED = 1 << 1
    BROADCAST = 1 << 2
    LOCAL = 1 << 3
    BROADCAST_PAN_ID = 1 << 4
    LINK_LOCAL = 1 << 5
    MULTICAST = 1 << 6


class TxControl(IntFlag):
    """Transmission control flags of an outgoing frame."""

    NONE = 0
    BROADCAST_PAN_ID = 1 << 0
    ROUTING = 1 << 1
    DIRECT_LINK = 1 << 2


def _check_range(name: str, value: int, upper: int) -> None:
    if not 0 <= value <= upper:
        raise ValueError(f"{name} must be between 0 and {upper:#x}, got {value!r}")


@dataclass
class DataReq:
    """A data request queued by the application; status and control are filled on confirm."""

    dst_addr: int
    dst_endpoint: int
    src_endpoint: int
    data: bytes = b""
    options: DataReqOption = DataReqOption.NONE
    member_radius: int = 0
    non_member_radius: int = 0
    confirm: Callable[[DataReq], None] | None = None
    status: Status = Status.SUCCESS
    control: int = 0
    frame: Any = field(default=None, repr=False, compare=False)
    state: int = field(default=0, repr=False, compare=False)

    def __post_init__(self) -> None:
        _check_range("dst_addr", self.dst_addr, _ADDR_LIMIT)
        _check_range("dst_endpoint", self.dst_endpoint, _ENDPOINT_LIMIT)
        _check_range("src_endpoint", self.src_endpoint, _ENDPOINT_LIMIT)
        _check_range("member_radius", self.member_radius, _RADIUS_LIMIT)
        _check_range("non_member_radius", self.non_member_radius, _RADIUS_LIMIT)
        self.data = bytes(self.data)
        if len(self.data) > MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"payload of {len(self.data)} bytes exceeds {MAX_PAYLOAD_SIZE} bytes"
            )
        self.options = DataReqOption(self.options)


@dataclass(frozen=True)
class DataInd:
    """A data indication delivered to an endpoint handler."""

    src_addr: int
    dst_addr: int
    src_endpoint: int
    dst_endpoint: int
    options: IndOption = IndOption.NONE
    data: bytes = b""
    lqi: int = 0
    rssi: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", IndOption(self.options))
        object.__setattr__(self, "data", bytes(self.data))

    @property
    def size(self) -> int:
        """Number of payload bytes."""
        return len(self.data)