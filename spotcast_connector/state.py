# Spotcast Connector
# Copyright (C) 2026 Spotcast Connector contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
CachedState and the TTL-gated refresh that keeps it current.

The widget re-renders on every Home Assistant entity change, which would
spam the spotcast API.  StateSync only goes to the remote service when the
cached snapshot is older than the TTL (4 s by default):

    Fresh  (age < ttl)   refresh() returns immediately, no remote calls
    Stale                devices -> player -> castdevices, in that order

The three results are committed together, and only when all three calls
succeeded.  A failed refresh leaves the old snapshot and its timestamp in
place, so the next refresh() tries again.

Overlapping refresh() calls follow the configured policy:

    coalesce      later callers await the in-flight refresh (default)
    independent   every caller runs its own sequence, last writer wins
"""

import asyncio
import logging
import time

from .config import DEFAULT_STATE_TTL_MS, REFRESH_POLICIES
from .devices import normalize, normalize_all
from .errors import ConfigError, TransportError
from .models import CastDevice, Player
from .playlists import evaluate
from .transport import HassConnection

log = logging.getLogger(__name__)

NAMESPACE = "spotcast"


class CachedState:
    """Snapshot of remote state shared by the connector components.

    Only StateSync writes it; the resolver and the host UI read it.
    """

    def __init__(self):
        self.devices: list = []          # list[Device]
        self.player: Player | None = None
        self.cast_devices: list = []     # list[CastDevice]
        self.playlists: list = []        # playlist dicts, already filtered
        self.last_update_time: float | None = None  # monotonic seconds

    def commit(self, devices, player, cast_devices, when: float):
        self.devices = devices
        self.player = player
        self.cast_devices = cast_devices
        self.last_update_time = when


def _parse_player(payload) -> Player:
    payload = payload or {}
    device = payload.get("device")
    return Player(
        device=normalize(device) if device else None,
        is_playing=bool(payload.get("is_playing")),
        raw=payload,
    )


def _parse_casts(payload) -> list:
    return [CastDevice.from_dict(c) for c in payload or []]


def _decode(stage: str, parse, payload):
    """Parse a stage payload; a malformed shape fails that stage."""
    try:
        return parse(payload)
    except (KeyError, TypeError, AttributeError) as e:
        log.warning("Malformed payload during %s: %r", stage, e)
        raise TransportError(stage, e) from e


class StateSync:
    """TTL-gated refresh of devices, player and cast devices."""

    def __init__(self, hass: HassConnection, state: CachedState | None = None,
                 account: str | None = None,
                 ttl_ms: int = DEFAULT_STATE_TTL_MS,
                 policy: str = "coalesce",
                 clock=time.monotonic):
        if policy not in REFRESH_POLICIES:
            raise ConfigError(f"Unknown refresh_policy: {policy}")
        self.hass = hass
        self.state = state if state is not None else CachedState()
        self.account = account
        self.ttl = ttl_ms / 1000
        self.policy = policy
        self._clock = clock
        self._in_flight: asyncio.Future | None = None
        self._active = 0  # sequences currently running

    @property
    def loading(self) -> bool:
        """Advisory: True while a refresh or playlist fetch is running."""
        return self._active > 0

    def is_fresh(self) -> bool:
        last = self.state.last_update_time
        if last is None:
            return False
        return self._clock() - last < self.ttl

    def is_loaded(self) -> bool:
        """True once a playlist fetch has populated the collection."""
        return len(self.state.playlists) > 0

    # -- Refresh --

    async def refresh(self):
        if self.is_fresh():
            log.debug("State cache still valid")
            return

        if self.policy == "independent":
            await self._run_sequence()
            return

        while self._in_flight is not None:
            in_flight = self._in_flight
            log.debug("Joining in-flight refresh")
            try:
                await asyncio.shield(in_flight)
                return
            except asyncio.CancelledError:
                # Only the leader was cancelled: retry, or lead a new refresh
                if not in_flight.cancelled():
                    raise
                log.info("In-flight refresh was cancelled, retrying")
                if self.is_fresh():
                    return

        future = asyncio.get_running_loop().create_future()
        self._in_flight = future
        try:
            await self._run_sequence()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so a refresh nobody joined does not warn
            future.exception()
            raise
        else:
            future.set_result(None)
        finally:
            self._in_flight = None

    async def _run_sequence(self):
        self._active += 1
        try:
            devices = await self._fetch("fetch devices", "devices")
            devices = _decode("fetch devices", normalize_all, devices)
            player = await self._fetch("fetch player", "player")
            player = _decode("fetch player", _parse_player, player)
            casts = await self._fetch("fetch chromecasts", "castdevices", with_account=False)
            cast_devices = _decode("fetch chromecasts", _parse_casts, casts)
        finally:
            self._active -= 1

        self.state.commit(devices, player, cast_devices, self._clock())
        log.info("State refreshed: %d devices, %d cast devices, player %s",
                 len(devices), len(cast_devices), player.state)

    async def _fetch(self, stage: str, kind: str, with_account: bool = True):
        message = {"type": f"{NAMESPACE}/{kind}"}
        if with_account and self.account:
            message["account"] = self.account
        try:
            return await self.hass.call_ws(message)
        except Exception as e:
            log.warning("Failed to %s: %s", stage, e)
            raise TransportError(stage, e) from e

    # -- Playlists --

    async def fetch_playlists(self, playlist_type: str | None = None,
                              limit: int | None = None,
                              country_code: str | None = None,
                              locale: str | None = None,
                              include: list | None = None) -> list:
        """Fetch playlists, apply inclusion rules and store the result."""
        message = {
            "type": f"{NAMESPACE}/playlists",
            "playlist_type": playlist_type or "",
        }
        if self.account:
            message["account"] = self.account
        if limit is not None:
            message["limit"] = limit
        if country_code:
            message["country_code"] = country_code
        if locale:
            message["locale"] = locale

        self._active += 1
        try:
            try:
                res = await self.hass.call_ws(message)
            except Exception as e:
                log.warning("Failed to fetch playlists: %s", e)
                raise TransportError("fetch playlists", e) from e
            items = res.get("items") if isinstance(res, dict) else res
            outcome = evaluate(items, include)
        finally:
            self._active -= 1

        self.state.playlists = outcome.playlists
        log.info("Loaded %d playlists%s", len(outcome.playlists),
                 " (filter ignored)" if outcome.fallback else "")
        return outcome.playlists
