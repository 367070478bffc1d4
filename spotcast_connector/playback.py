# Spotcast Connector
# Copyright (C) 2026 Spotcast Connector contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Playback target resolution and the spotcast.start dispatch.

play_uri() picks a target when the UI does not name one:

  1. the device the current player reports as active
  2. the configured default_device, looked up by name
  3. the first known Connect device, looked up by name
  4. otherwise NoPlaybackTargetError

Name lookups try Connect devices, then configured known_connect_devices
aliases, then cast devices by friendly name.  Connect matches are started
by ``spotify_device_id``, cast matches by ``device_name``.
"""

import logging

from .config import ConnectorConfig
from .errors import DeviceNotFoundError, NoPlaybackTargetError, TransportError
from .models import Device
from .state import NAMESPACE, CachedState
from .transport import HassConnection

log = logging.getLogger(__name__)

START_SERVICE = "start"


class PlaybackTargetResolver:
    """Reads CachedState and config; never writes either."""

    def __init__(self, hass: HassConnection, state: CachedState,
                 config: ConnectorConfig):
        self.hass = hass
        self.state = state
        self.config = config

    def current_player(self) -> Device | None:
        """The device the latest player snapshot reports, if any."""
        if self.state.player is None:
            return None
        return self.state.player.device

    def playback_options(self, uri: str) -> dict:
        player = self.state.player
        options = {
            "uri": uri,
            "force_playback": player is not None and player.state == "playing",
            "random_song": self.config.always_play_random_song,
        }
        if self.config.account:
            options["account"] = self.config.account
        return options

    async def play_uri(self, uri: str):
        current = self.current_player()
        if current:
            log.info("Playing %s on active device %s", uri, current.id)
            return await self.play_uri_on_connect_device(current.id, uri)

        default_device = self.config.default_device
        if default_device:
            return await self._start_on_named_device(default_device, uri)

        if self.state.devices:
            first = self.state.devices[0]
            log.info("No active device — falling back to first device %s", first.name)
            return await self._start_on_named_device(first.name, uri)

        raise NoPlaybackTargetError("No device available for playback")

    async def _start_on_named_device(self, device_name: str, uri: str):
        for device in self.state.devices:
            if device.name == device_name:
                return await self.play_uri_on_connect_device(device.id, uri)
        for known in self.config.known_connect_devices:
            if known.name == device_name:
                return await self.play_uri_on_connect_device(known.id, uri)
        for cast in self.state.cast_devices:
            if cast.friendly_name == device_name:
                return await self.play_uri_on_cast_device(cast.friendly_name, uri)
        raise DeviceNotFoundError(device_name)

    async def play_uri_on_connect_device(self, device_id: str, uri: str):
        await self._start({**self.playback_options(uri), "spotify_device_id": device_id})

    async def play_uri_on_cast_device(self, device_name: str, uri: str):
        await self._start({**self.playback_options(uri), "device_name": device_name})

    async def transfer_playback_to_connect_device(self, device_id: str):
        await self._start(self._transfer_options(spotify_device_id=device_id))

    async def transfer_playback_to_cast_device(self, device_name: str):
        await self._start(self._transfer_options(device_name=device_name))

    def _transfer_options(self, **target) -> dict:
        options = {**target, "force_playback": True}
        if self.config.account:
            options["account"] = self.config.account
        return options

    async def _start(self, data: dict):
        target = data.get("spotify_device_id") or data.get("device_name")
        try:
            await self.hass.call_service(NAMESPACE, START_SERVICE, data)
        except Exception as e:
            log.warning("spotcast.start on %s failed: %s", target, e)
            raise TransportError("start playback", e) from e
        log.info("spotcast.start -> %s (force=%s)", target, data["force_playback"])
