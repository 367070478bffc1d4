# Spotcast Connector
# Copyright (C) 2026 Spotcast Connector contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SpotcastConnector — the one object a media widget talks to.

Wires a HassConnection, the widget config and one CachedState into the
refresh orchestrator and the playback resolver:

    connector = SpotcastConnector(hass, ConnectorConfig.from_dict(card_cfg))
    await connector.update_state()        # TTL-gated
    await connector.fetch_playlists()
    await connector.play_uri("spotify:playlist:37i9dQZF1DXcBWIGoYBM5M")

The widget renders from ``connector.state``; nothing here touches the UI.
"""

import logging
import time

from .config import ConnectorConfig
from .models import Device
from .playback import PlaybackTargetResolver
from .state import CachedState, StateSync
from .transport import HassConnection

log = logging.getLogger(__name__)


class SpotcastConnector:

    def __init__(self, hass: HassConnection, config: ConnectorConfig | None = None,
                 clock=time.monotonic):
        self.hass = hass
        self.config = config or ConnectorConfig()
        self.state = CachedState()
        self.sync = StateSync(
            hass, self.state,
            account=self.config.account,
            ttl_ms=self.config.state_ttl_ms,
            policy=self.config.refresh_policy,
            clock=clock,
        )
        self.resolver = PlaybackTargetResolver(hass, self.state, self.config)

    # -- State --

    def is_loading(self) -> bool:
        return self.sync.loading

    def is_loaded(self) -> bool:
        return self.sync.is_loaded()

    async def update_state(self):
        await self.sync.refresh()

    async def fetch_playlists(self) -> list:
        c = self.config
        return await self.sync.fetch_playlists(
            playlist_type=c.playlist_type,
            limit=c.limit,
            country_code=c.country_code,
            locale=c.locale,
            include=c.include_playlists,
        )

    def get_current_player(self) -> Device | None:
        return self.resolver.current_player()

    # -- Playback --

    async def play_uri(self, uri: str):
        await self.resolver.play_uri(uri)

    async def play_uri_on_connect_device(self, device_id: str, uri: str):
        await self.resolver.play_uri_on_connect_device(device_id, uri)

    async def play_uri_on_cast_device(self, device_name: str, uri: str):
        await self.resolver.play_uri_on_cast_device(device_name, uri)

    async def transfer_playback_to_connect_device(self, device_id: str):
        await self.resolver.transfer_playback_to_connect_device(device_id)

    async def transfer_playback_to_cast_device(self, device_name: str):
        await self.resolver.transfer_playback_to_cast_device(device_name)
