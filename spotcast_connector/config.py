"""
Configuration loader for the Spotcast connector.

Loads a single JSON config file.  Search order:
  1. /etc/spotcast-connector/config.json
  2. config.json                          (CWD — handy for local dev)

The Home Assistant token is a secret and may be left out of the file; it is
then read from the HA_TOKEN environment variable.

Usage:
    from spotcast_connector.config import cfg, ConnectorConfig

    ha_url   = cfg("home_assistant", "url", default="http://homeassistant.local:8123")
    settings = ConnectorConfig.from_dict(cfg("card", default={}))
"""

import json
import logging

from .errors import ConfigError
from .models import KnownDevice

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/spotcast-connector/config.json",
    "config.json",
]

DEFAULT_STATE_TTL_MS = 4000
REFRESH_POLICIES = ("coalesce", "independent")


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    ha = config.get("home_assistant") or {}
    if not ha.get("url"):
        logger.warning("Config %s: missing home_assistant.url — using default", path)
    card = config.get("card") or {}
    policy = card.get("refresh_policy", "coalesce")
    if policy not in REFRESH_POLICIES:
        logger.warning("Config %s: unknown card.refresh_policy '%s'", path, policy)
    if card.get("default_device") and not isinstance(card["default_device"], str):
        logger.warning("Config %s: card.default_device should be a device name", path)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _SEARCH_PATHS:
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.warning("No config.json found — using empty config")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("card")                           → config["card"]
    cfg("home_assistant", "url")          → config["home_assistant"]["url"]
    cfg("card", "limit", default=50)      → config["card"]["limit"] or 50
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()


class ConnectorConfig:
    """Read-only view of the widget settings the connector consults.

    Field names follow the card's own config keys so the host can pass its
    config section straight to from_dict().
    """

    def __init__(self, account: str | None = None,
                 default_device: str | None = None,
                 known_connect_devices: list | None = None,
                 include_playlists: list | str | None = None,
                 playlist_type: str | None = None,
                 limit: int | None = None,
                 country_code: str | None = None,
                 locale: str | None = None,
                 always_play_random_song: bool = False,
                 state_ttl_ms: int = DEFAULT_STATE_TTL_MS,
                 refresh_policy: str = "coalesce"):
        if refresh_policy not in REFRESH_POLICIES:
            raise ConfigError(f"Unknown refresh_policy: {refresh_policy}")
        if state_ttl_ms < 0:
            raise ConfigError("state_ttl_ms must not be negative")

        self.account = account
        self.default_device = default_device
        self.known_connect_devices = [
            d if isinstance(d, KnownDevice) else KnownDevice.from_dict(d)
            for d in (known_connect_devices or [])
        ]
        if isinstance(include_playlists, str):
            include_playlists = [include_playlists]
        self.include_playlists = list(include_playlists or [])
        self.playlist_type = playlist_type
        self.limit = limit
        self.country_code = country_code
        self.locale = locale
        self.always_play_random_song = bool(always_play_random_song)
        self.state_ttl_ms = state_ttl_ms
        self.refresh_policy = refresh_policy

    @classmethod
    def from_dict(cls, data: dict | None) -> "ConnectorConfig":
        data = data or {}
        try:
            return cls(
                account=data.get("account"),
                default_device=data.get("default_device"),
                known_connect_devices=data.get("known_connect_devices"),
                include_playlists=data.get("include_playlists"),
                playlist_type=data.get("playlist_type"),
                limit=data.get("limit"),
                country_code=data.get("country_code"),
                locale=data.get("locale"),
                always_play_random_song=data.get("always_play_random_song", False),
                state_ttl_ms=int(data.get("state_ttl_ms", DEFAULT_STATE_TTL_MS)),
                refresh_policy=data.get("refresh_policy", "coalesce"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid card config: {e}") from e

    @classmethod
    def load(cls) -> "ConnectorConfig":
        """Build from the ``card`` section of the config file."""
        return cls.from_dict(cfg("card", default={}))
