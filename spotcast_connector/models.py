# Spotcast Connector
# Copyright (C) 2026 Spotcast Connector contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Canonical records shared by the connector components.

Device       — a Spotify Connect endpoint, addressed by id
CastDevice   — a Chromecast endpoint, addressed by friendly name
KnownDevice  — a configured Connect alias (name -> id)
Player       — the most recent playback snapshot
"""

DEVICE_FIELDS = (
    "name",
    "is_active",
    "is_private_session",
    "is_restricted",
    "volume_percent",
    "supports_volume",
)


class Device:
    """A normalized Spotify Connect device."""

    def __init__(self, id: str, type: str, name: str | None = None,
                 is_active: bool | None = None,
                 is_private_session: bool | None = None,
                 is_restricted: bool | None = None,
                 volume_percent: float | None = None,
                 supports_volume: bool | None = None):
        self.id = id
        self.type = type
        self.name = name
        self.is_active = is_active
        self.is_private_session = is_private_session
        self.is_restricted = is_restricted
        self.volume_percent = volume_percent
        self.supports_volume = supports_volume

    def to_dict(self) -> dict:
        data = {"id": self.id, "type": self.type}
        for field in DEVICE_FIELDS:
            data[field] = getattr(self, field)
        return data

    def __eq__(self, other):
        if not isinstance(other, Device):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Device(id={self.id!r}, type={self.type!r}, name={self.name!r})"


class CastDevice:
    """A cast target as reported by the remote inventory.

    Only ``friendly_name`` is interpreted; everything else is kept verbatim
    in ``extra``.
    """

    def __init__(self, friendly_name: str, extra: dict | None = None):
        self.friendly_name = friendly_name
        self.extra = extra or {}

    @classmethod
    def from_dict(cls, data: dict) -> "CastDevice":
        extra = {k: v for k, v in data.items() if k != "friendly_name"}
        return cls(data["friendly_name"], extra)

    def __repr__(self):
        return f"CastDevice(friendly_name={self.friendly_name!r})"


class KnownDevice:
    """A Connect device alias from config: ``{"id": ..., "name": ...}``."""

    def __init__(self, id: str, name: str):
        self.id = id
        self.name = name

    @classmethod
    def from_dict(cls, data: dict) -> "KnownDevice":
        return cls(data["id"], data["name"])

    def __repr__(self):
        return f"KnownDevice(id={self.id!r}, name={self.name!r})"


class Player:
    """Playback snapshot from ``spotcast/player``.

    Replaced wholesale on every successful refresh; ``raw`` keeps the full
    remote payload for the host UI (track, progress, shuffle, ...).
    """

    def __init__(self, device: Device | None = None, is_playing: bool = False,
                 raw: dict | None = None):
        self.device = device
        self.is_playing = is_playing
        self.raw = raw or {}

    @property
    def state(self) -> str:
        return "playing" if self.is_playing else "idle"

    def __repr__(self):
        return f"Player(device={self.device!r}, state={self.state!r})"
