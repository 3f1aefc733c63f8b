import pytest
from hypothesis import given
from hypothesis import strategies as st

from lwmesh.core import IntervalTimer, NetworkInfo, NwkConfig, linearize_lqi


@pytest.mark.parametrize(
    "lqi, expected",
    [(0, 3), (24, 3), (25, 8), (49, 8), (50, 26), (224, 252), (225, 255), (255, 255)],
)
def test_linearize_lqi_table(lqi, expected):
    assert linearize_lqi(lqi) == expected


@given(st.integers(0, 254))
def test_linearize_lqi_is_monotonic(lqi):
    assert linearize_lqi(lqi) <= linearize_lqi(lqi + 1)


@pytest.mark.parametrize("lqi", [-1, 256])
def test_linearize_lqi_rejects_out_of_range(lqi):
    with pytest.raises(ValueError):
        linearize_lqi(lqi)


def test_lock_and_unlock_track_busy():
    info = NetworkInfo()
    assert info.busy() is False
    info.lock()
    info.lock()
    info.unlock()
    assert info.busy() is True
    info.unlock()
    assert info.busy() is False


def test_unlock_without_lock_raises():
    with pytest.raises(RuntimeError):
        NetworkInfo().unlock()


def test_sequence_numbers_wrap_independently():
    info = NetworkInfo(nwk_seq_num=255)
    assert info.next_nwk_seq() == 0
    assert info.next_mac_seq() == 1
    assert info.nwk_seq_num == 0


def test_open_endpoint_registers_handler():
    info = NetworkInfo()

    def handler(ind):
        return True

    info.open_endpoint(3, handler)
    assert info.endpoints[3] is handler
    assert info.endpoints.count(None) == len(info.endpoints) - 1


@pytest.mark.parametrize("endpoint_id", [-1, 16])
def test_open_endpoint_rejects_bad_id(endpoint_id):
    with pytest.raises(ValueError):
        NetworkInfo().open_endpoint(endpoint_id, None)


def test_timer_fires_once_at_interval():
    calls = []
    timer = IntervalTimer(100, calls.append)
    timer.start()
    assert timer.advance(99) == 0
    assert timer.remaining == 1
    assert timer.advance(1) == 1
    assert calls == [timer]
    assert timer.running is False


def test_timer_restarted_by_handler_keeps_firing():
    timer = IntervalTimer(100, lambda t: t.start())
    timer.start()
    assert timer.advance(250) == 2
    assert timer.remaining == 50


def test_stopped_timer_does_not_fire():
    calls = []
    timer = IntervalTimer(10, calls.append)
    timer.start()
    timer.stop()
    assert timer.advance(100) == 0
    assert calls == []


def test_start_while_running_keeps_deadline():
    timer = IntervalTimer(100, lambda t: None)
    timer.start()
    timer.advance(60)
    timer.start()
    assert timer.remaining == 40


def test_timer_rejects_bad_values():
    with pytest.raises(ValueError):
        IntervalTimer(0, lambda t: None)
    with pytest.raises(ValueError):
        IntervalTimer(10, lambda t: None).advance(-1)


def test_config_rejects_discovery_without_routing():
    with pytest.raises(ValueError):
        NwkConfig(enable_routing=False, enable_route_discovery=True)


def test_config_rejects_score_too_large():
    with pytest.raises(ValueError):
        NwkConfig(route_default_score=16)


def test_config_accepts_full_feature_set():
    config = NwkConfig(
        enable_security=True,
        enable_multicast=True,
        enable_route_discovery=True,
        enable_secure_commands=True,
    )
    assert config.enable_routing is True
    assert config.enable_route_discovery is True