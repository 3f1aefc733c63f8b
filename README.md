# lwmesh

`lwmesh` provides the building blocks of a lightweight mesh network layer for IEEE 802.15.4-style radios. It is pure Python and has no dependencies.

| Module | Contents |
| --- | --- |
| `lwmesh.primitives` | `Status`, the option flags `DataReqOption`, `IndOption` and `TxControl`, the `DataReq` and `DataInd` records, and the broadcast constants |
| `lwmesh.core` | `NwkConfig` (table sizes, timeouts and feature switches), `NetworkInfo` (address, PAN ID, sequence numbers, endpoints, lock counter), `IntervalTimer`, `linearize_lqi()` |
| `lwmesh.frame` | the 16-byte frame header (`FrameHeader`, `FrameControl`, `parse_header()`), the multicast header (`MulticastHeader`, `parse_multicast_header()`), `Frame` and the fixed-size `FramePool` |
| `lwmesh.commands` | network commands `AckCommand`, `RouteErrorCommand`, `RouteRequestCommand` and `RouteReplyCommand`, plus `decode_command()` |
| `lwmesh.groups` | `GroupTable`, which holds multicast group membership |
| `lwmesh.routing` | `RouteTable`, which replaces entries by rank and ages them by score, and `Router`, which makes the routing decisions for received, sent and forwarded frames |
| `lwmesh.discovery` | `RouteDiscovery`, which finds routes on demand, and `update_link_quality()` |
| `lwmesh.nmea` | `parse_sentence()`, which reads the sentence type and the GGA UTC time from GPS sentences |

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install .[test]
```

## Parsing an NMEA sentence

```python
from lwmesh.nmea import parse_sentence

data = parse_sentence("$GPGGA,123519.25,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47")
print(data.sentence_type)  # GPGGA
print(data.time)           # 12:35:19,25 UTC
```

A time is filled in only for `GPGGA` sentences. For any other sentence type, `time` stays empty.

## Frames and commands

```python
from lwmesh.commands import AckCommand, decode_command
from lwmesh.core import NetworkInfo
from lwmesh.frame import FramePool, parse_header

info = NetworkInfo(addr=0x0001, pan_id=0x1234)
pool = FramePool(info)

frame = pool.alloc()            # None when every buffer is in use
pool.command_init(frame)        # next network sequence number, own source address
frame.body.extend(AckCommand(seq=7).pack())
wire = frame.to_bytes()         # header + body, without CRC

assert parse_header(wire).nwk_src_addr == 0x0001
assert decode_command(wire[16:]) == AckCommand(seq=7)
pool.free(frame)
```

Each allocated frame increments `NetworkInfo`'s lock counter, and freeing the frame decrements it. `NetworkInfo.busy()` returns true while any frame is still held.

## Routing

```python
from lwmesh.routing import ROUTE_UNKNOWN, RouteTable

table = RouteTable()
table.update_entry(dst=0x0005, multicast=0, next_hop=0x0002, lqi=200)
assert table.next_hop(0x0005, 0) == 0x0002
table.remove(0x0005, 0)
assert table.next_hop(0x0005, 0) == ROUTE_UNKNOWN
```

`Router` combines a `RouteTable`, a `FramePool` and a `send` function that you supply. It provides the following methods:

- `frame_received()` learns routes back to the originators of received frames.
- `frame_sent()` rewards or penalises a route based on the frame's `tx_status`.
- `prepare_tx()` chooses the MAC destination of an outgoing frame.
- `route_frame()` forwards a frame, or sends a route error command when no route exists.
- `error_received()` removes the route named in a route error command.

`RouteDiscovery` needs an object that has two methods, `send(frame)` and `confirm(frame, status)`. It floods route requests and answers or relays route replies, and its results go into the route table. Its `timer` is an `IntervalTimer`. Drive the timer with `discovery.timer.advance(elapsed_ms)`. When a discovery entry expires, frames that were waiting for that route are passed to `send`, or to `confirm` with `Status.NO_ROUTE`.

## Groups and link quality

```python
from lwmesh.core import linearize_lqi
from lwmesh.groups import GroupTable

groups = GroupTable()
groups.add(0x0100)
assert groups.is_member(0x0100)

print(linearize_lqi(100))  # 128
```

## What this package does not do

`lwmesh` is not a complete, runnable node. The following are not included:

- a transmit or receive state machine;
- duplicate-frame rejection;
- a queue for `DataReq` requests;
- frame encryption or message integrity codes;
- any driver for a radio.

The `enable_security` option in `NwkConfig` only affects secure-command checks. It does not encrypt anything.

The caller must wire the pieces together. That means:

- passing frames to the radio;
- delivering `DataInd` records to the handlers registered with `NetworkInfo.open_endpoint()`;
- advancing the timers.

## Running the tests

```
pytest
```