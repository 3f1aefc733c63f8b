"""Network-layer command frames: acknowledgement and route management."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Union

_ACK = struct.Struct("<BBB")
_ROUTE_ERROR = struct.Struct("<BHHB")
_ROUTE_REQUEST = struct.Struct("<BHHBB")
_ROUTE_REPLY = struct.Struct("<BHHBBB")


class CommandId(IntEnum):
    """First byte of every command payload."""

    ACK = 0x00
    ROUTE_ERROR = 0x01
    ROUTE_REQUEST = 0x02
    ROUTE_REPLY = 0x03


def _pack(layout: struct.Struct, *values: int) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ValueError(f"command field out of range: {exc}") from exc


@dataclass(frozen=True)
class AckCommand:
    """Acknowledgement of a frame with the given network sequence number."""

    seq: int
    control: int = 0

    command_id: ClassVar[CommandId] = CommandId.ACK
    SIZE: ClassVar[int] = _ACK.size

    def pack(self) -> bytes:
        return _pack(_ACK, self.command_id, self.seq, self.control)


@dataclass(frozen=True)
class RouteErrorCommand:
    """Report that no route to ``dst_addr`` exists."""

    src_addr: int
    dst_addr: int
    multicast: int = 0

    command_id: ClassVar[CommandId] = CommandId.ROUTE_ERROR
    SIZE: ClassVar[int] = _ROUTE_ERROR.size

    def pack(self) -> bytes:
        return _pack(_ROUTE_ERROR, self.command_id, self.src_addr, self.dst_addr, self.multicast)


@dataclass(frozen=True)
class RouteRequestCommand:
    """Route discovery request flooded towards ``dst_addr``."""

    src_addr: int
    dst_addr: int
    multicast: int = 0
    link_quality: int = 0

    command_id: ClassVar[CommandId] = CommandId.ROUTE_REQUEST
    SIZE: ClassVar[int] = _ROUTE_REQUEST.size

    def pack(self) -> bytes:
        return _pack(
            _ROUTE_REQUEST,
            self.command_id,
            self.src_addr,
            self.dst_addr,
            self.multicast,
            self.link_quality,
        )


@dataclass(frozen=True)
class RouteReplyCommand:
    """Route discovery reply sent back towards the requester."""

    src_addr: int
    dst_addr: int
    multicast: int = 0
    forward_link_quality: int = 0
    reverse_link_quality: int = 0

    command_id: ClassVar[CommandId] = CommandId.ROUTE_REPLY
    SIZE: ClassVar[int] = _ROUTE_REPLY.size

    def pack(self) -> bytes:
        return _pack(
            _ROUTE_REPLY,
            self.command_id,
            self.src_addr,
            self.dst_addr,
            self.multicast,
            self.forward_link_quality,
            self.reverse_link_quality,
        )


Command = Union[AckCommand, RouteErrorCommand, RouteRequestCommand, RouteReplyCommand]

_LAYOUTS: dict[CommandId, tuple[type, struct.Struct]] = {
    CommandId.ACK: (AckCommand, _ACK),
    CommandId.ROUTE_ERROR: (RouteErrorCommand, _ROUTE_ERROR),
    CommandId.ROUTE_REQUEST: (RouteRequestCommand, _ROUTE_REQUEST),
    CommandId.ROUTE_REPLY: (RouteReplyCommand, _ROUTE_REPLY),
}


def decode_command(data: bytes) -> Command:
    """Decode a command payload; its length must match the command exactly."""
    data = bytes(data)
    if not data:
        raise ValueError("empty command payload")
    try:
        command_id = CommandId(data[0])
    except ValueError:
        raise ValueError(f"unknown command id {data[0]:#04x}") from None
    cls, layout = _LAYOUTS[command_id]
    if len(data) != layout.size:
        raise ValueError(
            f"{command_id.name} command must be {layout.size} bytes, got {len(data)}"
        )
    _, *fields = layout.unpack(data)
    return cls(*fields)