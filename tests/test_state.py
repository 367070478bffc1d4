import asyncio

import pytest

from spotcast_connector.errors import ConfigError, MissingIdentityError, TransportError
from spotcast_connector.state import CachedState, StateSync

FULL_SEQUENCE = ["spotcast/devices", "spotcast/player", "spotcast/castdevices"]


@pytest.mark.asyncio
async def test_first_refresh_runs_full_sequence(hass, clock):
    sync = StateSync(hass, account="main", clock=clock)
    await sync.refresh()

    assert hass.ws_types() == FULL_SEQUENCE
    assert hass.ws_calls[0] == {"type": "spotcast/devices", "account": "main"}
    assert hass.ws_calls[2] == {"type": "spotcast/castdevices"}
    assert [d.id for d in sync.state.devices] == ["d1", "d2"]
    assert sync.state.cast_devices[0].friendly_name == "Living Room TV"
    assert sync.state.cast_devices[0].extra["uuid"] == "c-1"
    assert sync.state.player.device is None
    assert sync.state.last_update_time == clock.now


@pytest.mark.asyncio
async def test_account_left_out_when_unset(hass, clock):
    sync = StateSync(hass, clock=clock)
    await sync.refresh()
    assert hass.ws_calls[0] == {"type": "spotcast/devices"}


@pytest.mark.asyncio
async def test_refresh_within_ttl_is_noop(hass, clock):
    sync = StateSync(hass, clock=clock)
    await sync.refresh()
    clock.advance(3.9)
    await sync.refresh()
    assert hass.ws_types() == FULL_SEQUENCE


@pytest.mark.asyncio
async def test_refresh_after_ttl_refetches(hass, clock):
    sync = StateSync(hass, clock=clock)
    await sync.refresh()
    clock.advance(4.0)
    await sync.refresh()
    assert hass.ws_types() == FULL_SEQUENCE * 2


@pytest.mark.asyncio
async def test_custom_ttl(hass, clock):
    sync = StateSync(hass, ttl_ms=500, clock=clock)
    await sync.refresh()
    clock.advance(0.6)
    await sync.refresh()
    assert len(hass.ws_calls) == 6


@pytest.mark.asyncio
@pytest.mark.parametrize("failing, stage, calls", [
    ("spotcast/devices", "fetch devices", 1),
    ("spotcast/player", "fetch player", 2),
    ("spotcast/castdevices", "fetch chromecasts", 3),
])
async def test_failed_stage_abandons_refresh(hass, clock, failing, stage, calls):
    hass.responses[failing] = RuntimeError("boom")
    sync = StateSync(hass, clock=clock)

    with pytest.raises(TransportError) as exc:
        await sync.refresh()

    assert exc.value.stage == stage
    assert str(exc.value) == f"Failed to {stage}: boom"
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert len(hass.ws_calls) == calls
    assert sync.state.last_update_time is None
    assert sync.state.devices == []
    assert not sync.loading


@pytest.mark.asyncio
async def test_failure_keeps_previous_snapshot_and_retries(hass, clock):
    sync = StateSync(hass, clock=clock)
    await sync.refresh()
    first_update = sync.state.last_update_time
    old_devices = sync.state.devices

    clock.advance(5)
    hass.responses["spotcast/castdevices"] = RuntimeError("offline")
    with pytest.raises(TransportError):
        await sync.refresh()
    assert sync.state.last_update_time == first_update
    assert sync.state.devices is old_devices

    # Still stale: the next call tries the whole sequence again
    hass.ws_calls.clear()
    with pytest.raises(TransportError):
        await sync.refresh()
    assert hass.ws_types() == FULL_SEQUENCE


@pytest.mark.asyncio
async def test_bad_device_record_propagates(hass, clock):
    hass.responses["spotcast/devices"] = [{"name": "no identity"}]
    sync = StateSync(hass, clock=clock)
    with pytest.raises(MissingIdentityError):
        await sync.refresh()
    assert hass.ws_types() == ["spotcast/devices"]
    assert sync.state.last_update_time is None


@pytest.mark.asyncio
@pytest.mark.parametrize("kind, payload, stage", [
    ("spotcast/castdevices", [{"uuid": "c-1"}], "fetch chromecasts"),
    ("spotcast/castdevices", 42, "fetch chromecasts"),
    ("spotcast/devices", 7, "fetch devices"),
    ("spotcast/player", ["not", "a", "dict"], "fetch player"),
])
async def test_malformed_payload_fails_its_stage(hass, clock, kind, payload, stage):
    hass.responses[kind] = payload
    sync = StateSync(hass, clock=clock)

    with pytest.raises(TransportError) as exc:
        await sync.refresh()

    assert exc.value.stage == stage
    assert sync.state.last_update_time is None
    assert sync.state.cast_devices == []
    assert not sync.loading


@pytest.mark.asyncio
async def test_player_snapshot_is_normalized(hass, clock):
    hass.responses["spotcast/player"] = {
        "is_playing": True,
        "device": {"id": "d9", "type": "Speaker", "name": "Office"},
        "progress_ms": 1000,
    }
    sync = StateSync(hass, clock=clock)
    await sync.refresh()
    player = sync.state.player
    assert player.device.id == "d9"
    assert player.state == "playing"
    assert player.raw["progress_ms"] == 1000


@pytest.mark.asyncio
async def test_loading_flag_set_during_refresh(hass, clock):
    hass.gate = asyncio.Event()
    sync = StateSync(hass, clock=clock)
    task = asyncio.create_task(sync.refresh())
    await asyncio.sleep(0)
    assert sync.loading
    hass.gate.set()
    await task
    assert not sync.loading


@pytest.mark.asyncio
async def test_coalesced_refreshes_share_one_sequence(hass, clock):
    hass.gate = asyncio.Event()
    sync = StateSync(hass, clock=clock, policy="coalesce")
    first = asyncio.create_task(sync.refresh())
    second = asyncio.create_task(sync.refresh())
    await asyncio.sleep(0)
    hass.gate.set()
    await asyncio.gather(first, second)
    assert hass.ws_types() == FULL_SEQUENCE


@pytest.mark.asyncio
async def test_coalesced_failure_reaches_every_caller(hass, clock):
    hass.gate = asyncio.Event()
    hass.responses["spotcast/player"] = RuntimeError("down")
    sync = StateSync(hass, clock=clock)
    first = asyncio.create_task(sync.refresh())
    second = asyncio.create_task(sync.refresh())
    await asyncio.sleep(0)
    hass.gate.set()
    results = await asyncio.gather(first, second, return_exceptions=True)
    assert all(isinstance(r, TransportError) for r in results)


@pytest.mark.asyncio
async def test_cancelled_leader_does_not_cancel_joined_caller(hass, clock):
    hass.gate = asyncio.Event()
    sync = StateSync(hass, clock=clock)
    leader = asyncio.create_task(sync.refresh())
    await asyncio.sleep(0)
    joiner = asyncio.create_task(sync.refresh())
    await asyncio.sleep(0)

    leader.cancel()
    with pytest.raises(asyncio.CancelledError):
        await leader
    hass.gate.set()
    await joiner

    assert not joiner.cancelled()
    # The joined caller ran its own sequence after the leader went away
    assert hass.ws_types() == ["spotcast/devices"] + FULL_SEQUENCE
    assert sync.state.last_update_time == clock.now
    assert not sync.loading


@pytest.mark.asyncio
async def test_independent_refreshes_both_run(hass, clock):
    hass.gate = asyncio.Event()
    sync = StateSync(hass, clock=clock, policy="independent")
    first = asyncio.create_task(sync.refresh())
    second = asyncio.create_task(sync.refresh())
    await asyncio.sleep(0)
    hass.gate.set()
    await asyncio.gather(first, second)
    assert len(hass.ws_calls) == 6
    assert sorted(hass.ws_types()) == sorted(FULL_SEQUENCE * 2)


def test_unknown_policy_rejected(hass):
    with pytest.raises(ConfigError):
        StateSync(hass, policy="lock")


# -- Playlists --

@pytest.mark.asyncio
async def test_fetch_playlists_message(hass, clock):
    sync = StateSync(hass, account="main", clock=clock)
    await sync.fetch_playlists(playlist_type="featured", limit=20, country_code="SE")
    assert hass.ws_calls == [{
        "type": "spotcast/playlists",
        "playlist_type": "featured",
        "account": "main",
        "limit": 20,
        "country_code": "SE",
    }]


@pytest.mark.asyncio
async def test_fetch_playlists_defaults(hass, clock):
    sync = StateSync(hass, clock=clock)
    await sync.fetch_playlists()
    assert hass.ws_calls == [{"type": "spotcast/playlists", "playlist_type": ""}]


@pytest.mark.asyncio
async def test_fetch_playlists_filters_and_marks_loaded(hass, clock):
    hass.responses["spotcast/playlists"] = {"items": [
        {"name": "Daily Mix 1"}, {"name": "Chill"},
    ]}
    sync = StateSync(hass, clock=clock)
    assert not sync.is_loaded()
    result = await sync.fetch_playlists(include=["^Daily"])
    assert result == [{"name": "Daily Mix 1"}]
    assert sync.state.playlists == result
    assert sync.is_loaded()


@pytest.mark.asyncio
async def test_fetch_playlists_bad_pattern_falls_back(hass, clock):
    items = [{"name": "A"}, {"name": "B"}]
    hass.responses["spotcast/playlists"] = {"items": items}
    sync = StateSync(hass, clock=clock)
    assert await sync.fetch_playlists(include=["name:(("]) == items


@pytest.mark.asyncio
async def test_fetch_playlists_failure(hass, clock):
    hass.responses["spotcast/playlists"] = RuntimeError("nope")
    sync = StateSync(hass, clock=clock)
    with pytest.raises(TransportError) as exc:
        await sync.fetch_playlists()
    assert str(exc.value) == "Failed to fetch playlists: nope"
    assert not sync.loading
    assert not sync.is_loaded()


def test_cached_state_starts_empty():
    state = CachedState()
    assert state.devices == [] and state.cast_devices == [] and state.playlists == []
    assert state.player is None
    assert state.last_update_time is None
