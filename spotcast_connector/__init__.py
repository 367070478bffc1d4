"""
Spotcast connector: state sync and playback decisions for a Spotify media
widget backed by Home Assistant's spotcast integration.

Components:
  - ``devices``    – normalize legacy/current Connect device records
  - ``playlists``  – inclusion-rule filtering with unfiltered fallback
  - ``state``      – CachedState and the TTL-gated StateSync
  - ``playback``   – PlaybackTargetResolver and spotcast.start dispatch
  - ``transport``  – HassConnection contract + Home Assistant client
  - ``connector``  – SpotcastConnector facade for the widget
"""

from .config import ConnectorConfig
from .connector import SpotcastConnector
from .devices import adapt_record, normalize, normalize_all
from .errors import (
    ConfigError,
    DeviceNotFoundError,
    FilterError,
    FilterSyntaxError,
    HassCallError,
    MissingIdentityError,
    NoPlaybackTargetError,
    SpotcastError,
    TransportError,
)
from .models import CastDevice, Device, KnownDevice, Player
from .playback import PlaybackTargetResolver
from .playlists import InclusionRule, evaluate, filter_playlists, parse_rule
from .state import CachedState, StateSync
from .transport import HassConnection, HomeAssistantConnection

__all__ = [
    "CachedState",
    "CastDevice",
    "ConfigError",
    "ConnectorConfig",
    "Device",
    "DeviceNotFoundError",
    "FilterError",
    "FilterSyntaxError",
    "HassCallError",
    "HassConnection",
    "HomeAssistantConnection",
    "InclusionRule",
    "KnownDevice",
    "MissingIdentityError",
    "NoPlaybackTargetError",
    "PlaybackTargetResolver",
    "Player",
    "SpotcastConnector",
    "SpotcastError",
    "StateSync",
    "TransportError",
    "adapt_record",
    "evaluate",
    "filter_playlists",
    "normalize",
    "normalize_all",
    "parse_rule",
]
