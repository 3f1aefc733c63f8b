import pytest
from hypothesis import given, strategies as st

from lwmesh.commands import AckCommand, RouteErrorCommand
from lwmesh.core import NetworkInfo, NwkConfig
from lwmesh.frame import Frame, FrameControl, FrameHeader, FramePool
from lwmesh.groups import GroupTable
from lwmesh.primitives import BROADCAST_ADDR, BROADCAST_PANID, DataInd, Status, TxControl
from lwmesh.routing import (
    ROUTE_DEFAULT_RANK,
    ROUTE_MAX_RANK,
    ROUTE_NON_ROUTING,
    ROUTE_UNKNOWN,
    Router,
    RouteTable,
)


def make_router(config=None, groups=None, discovery_request=None, addr=1):
    config = config if config is not None else NwkConfig()
    info = NetworkInfo(addr=addr)
    table = RouteTable(config)
    pool = FramePool(info, config)
    sent = []
    router = Router(
        info,
        table,
        pool,
        sent.append,
        config=config,
        groups=groups,
        discovery_request=discovery_request,
    )
    return router, sent


def test_new_table_is_empty():
    table = RouteTable()
    assert len(table) == NwkConfig().route_table_size
    assert all(entry.dst_addr == ROUTE_UNKNOWN and entry.rank == 0 for entry in table)


def test_next_hop_unknown():
    table = RouteTable()
    assert table.next_hop(5, 0) == ROUTE_UNKNOWN
    assert ROUTE_UNKNOWN == 0xFFFF


def test_update_and_find():
    table = RouteTable()
    entry = table.update_entry(5, 0, 7, 200)
    assert table.find(5, 0) is entry
    assert table.find(5, 1) is None
    assert table.next_hop(5, 0) == 7
    assert entry.rank == ROUTE_DEFAULT_RANK
    assert entry.score == NwkConfig().route_default_score
    assert entry.lqi == 200


def test_update_existing_does_not_duplicate():
    table = RouteTable()
    first = table.update_entry(5, 0, 7, 10)
    second = table.update_entry(5, 0, 9, 20)
    assert first is second
    assert sum(entry.dst_addr == 5 for entry in table) == 1
    assert table.next_hop(5, 0) == 9


@given(st.lists(st.integers(0, 0xFFFE), min_size=1, max_size=30))
def test_update_last_route_is_kept(dsts):
    table = RouteTable(NwkConfig(route_table_size=4))
    for hop, dst in enumerate(dsts):
        table.update_entry(dst, 0, hop, 0)
    assert table.next_hop(dsts[-1], 0) == len(dsts) - 1


def test_new_entry_evicts_lowest_rank_and_skips_fixed():
    table = RouteTable(NwkConfig(route_table_size=3))
    entries = list(table)
    for index, entry in enumerate(entries):
        entry.dst_addr = index
        entry.rank = 50 + index
    entries[0].fixed = True
    chosen = table.new_entry()
    assert chosen is entries[1]
    assert chosen.rank == ROUTE_DEFAULT_RANK


def test_new_entry_all_fixed_raises():
    table = RouteTable(NwkConfig(route_table_size=2))
    for entry in table:
        entry.fixed = True
    with pytest.raises(RuntimeError):
        table.new_entry()


def test_free_entry_keeps_fixed():
    table = RouteTable()
    entry = table.update_entry(5, 0, 7, 0)
    entry.fixed = True
    table.free_entry(entry)
    assert table.next_hop(5, 0) == 7
    entry.fixed = False
    table.remove(5, 0)
    assert table.find(5, 0) is None
    assert entry.rank == 0


def test_normalize_ranks():
    table = RouteTable(NwkConfig(route_table_size=2))
    first, second = list(table)
    first.rank = ROUTE_MAX_RANK
    table.normalize_ranks()
    assert first.rank == ROUTE_DEFAULT_RANK
    assert second.rank == 1


def test_update_rejects_bad_address():
    with pytest.raises(ValueError):
        RouteTable().update_entry(0x10000, 0, 1, 0)


def _sent_frame(dst, status):
    return Frame(header=FrameHeader(nwk_dst_addr=dst), tx_status=status)


def test_frame_sent_success_raises_rank_and_normalizes():
    router, _ = make_router()
    entry = router.table.update_entry(5, 0, 7, 0)
    router.frame_sent(_sent_frame(5, Status.SUCCESS))
    assert entry.rank == ROUTE_DEFAULT_RANK + 1
    entry.rank = ROUTE_MAX_RANK - 1
    router.frame_sent(_sent_frame(5, Status.SUCCESS))
    assert entry.rank == ROUTE_DEFAULT_RANK


def test_frame_sent_failures_drop_route():
    router, _ = make_router()
    router.table.update_entry(5, 0, 7, 0)
    for _ in range(NwkConfig().route_default_score):
        assert router.table.next_hop(5, 0) == 7
        router.frame_sent(_sent_frame(5, Status.NO_ACK))
    assert router.table.next_hop(5, 0) == ROUTE_UNKNOWN


def test_frame_received_learns_route():
    router, _ = make_router()
    frame = Frame(
        header=FrameHeader(mac_src_addr=3, nwk_src_addr=9, mac_dst_addr=1, nwk_dst_addr=1),
        lqi=100,
    )
    router.frame_received(frame)
    assert router.table.next_hop(9, 0) == 3
    assert router.table.find(9, 0).lqi == 100


def test_frame_received_better_link_changes_hop():
    router, _ = make_router()
    router.table.update_entry(9, 0, 3, 50)
    frame = Frame(header=FrameHeader(mac_src_addr=4, nwk_src_addr=9, mac_dst_addr=1), lqi=60)
    router.frame_received(frame)
    assert router.table.next_hop(9, 0) == 4
    worse = Frame(header=FrameHeader(mac_src_addr=5, nwk_src_addr=9, mac_dst_addr=1), lqi=10)
    router.frame_received(worse)
    assert router.table.next_hop(9, 0) == 4


def test_frame_received_ignores_non_routing_and_broadcast_pan():
    router, _ = make_router()
    relayed = Frame(header=FrameHeader(mac_src_addr=ROUTE_NON_ROUTING | 2, nwk_src_addr=9))
    router.frame_received(relayed)
    pan = Frame(header=FrameHeader(mac_src_addr=3, nwk_src_addr=9, mac_dst_pan_id=BROADCAST_PANID))
    router.frame_received(pan)
    assert router.table.find(9, 0) is None


def test_frame_received_disabled_with_discovery():
    config = NwkConfig(enable_route_discovery=True)
    router, _ = make_router(config=config, discovery_request=lambda frame: None)
    router.frame_received(Frame(header=FrameHeader(mac_src_addr=3, nwk_src_addr=9)))
    assert router.table.find(9, 0) is None


def test_prepare_tx_cases():
    router, _ = make_router()
    router.table.update_entry(5, 0, 7, 0)
    broadcast = Frame(header=FrameHeader(nwk_dst_addr=BROADCAST_ADDR))
    router.prepare_tx(broadcast)
    assert broadcast.header.mac_dst_addr == BROADCAST_ADDR
    local = Frame(header=FrameHeader(nwk_dst_addr=6, nwk_fcf=FrameControl(link_local=True)))
    router.prepare_tx(local)
    assert local.header.mac_dst_addr == 6
    routed = Frame(header=FrameHeader(nwk_dst_addr=5))
    router.prepare_tx(routed)
    assert routed.header.mac_dst_addr == 7
    unknown = Frame(header=FrameHeader(nwk_dst_addr=8))
    router.prepare_tx(unknown)
    assert unknown.header.mac_dst_addr == ROUTE_UNKNOWN


def test_prepare_tx_multicast_member():
    groups = GroupTable()
    groups.add(0x20)
    router, _ = make_router(config=NwkConfig(enable_multicast=True), groups=groups)
    frame = Frame(header=FrameHeader(nwk_dst_addr=0x20, nwk_fcf=FrameControl(multicast=True)))
    router.prepare_tx(frame)
    assert frame.header.mac_dst_addr == BROADCAST_ADDR
    assert frame.header.nwk_fcf.link_local is True


def test_prepare_tx_starts_discovery():
    requested = []
    router, _ = make_router(
        config=NwkConfig(enable_route_discovery=True), discovery_request=requested.append
    )
    frame = Frame(header=FrameHeader(nwk_dst_addr=8))
    router.prepare_tx(frame)
    assert requested == [frame]


def test_router_requires_discovery_handler():
    with pytest.raises(ValueError):
        make_router(config=NwkConfig(enable_route_discovery=True))


def test_route_frame_forwards_known():
    router, sent = make_router()
    router.table.update_entry(5, 0, 7, 0)
    frame = router.pool.alloc()
    frame.header.nwk_dst_addr = 5
    router.route_frame(frame)
    assert sent == [frame]
    assert frame.tx_control == TxControl.ROUTING


def test_route_frame_unknown_sends_error():
    router, sent = make_router()
    frame = router.pool.alloc()
    frame.header.nwk_src_addr = 9
    frame.header.nwk_dst_addr = 5
    router.route_frame(frame)
    assert len(sent) == 1
    error = sent[0]
    assert error is not frame
    assert error.header.nwk_dst_addr == 9
    assert error.header.nwk_src_addr == router.info.addr
    assert error.payload == RouteErrorCommand(9, 5, 0).pack()
    assert router.info.lock_count == 1


def test_error_received_removes_route():
    router, _ = make_router()
    router.table.update_entry(5, 0, 7, 0)
    ind = DataInd(9, 1, 0, 0, data=RouteErrorCommand(9, 5, 0).pack())
    assert router.error_received(ind) is True
    assert router.table.next_hop(5, 0) == ROUTE_UNKNOWN


def test_error_received_rejects_wrong_size():
    router, _ = make_router()
    router.table.update_entry(5, 0, 7, 0)
    ind = DataInd(9, 1, 0, 0, data=AckCommand(1).pack())
    assert router.error_received(ind) is False
    assert router.table.next_hop(5, 0) == 7