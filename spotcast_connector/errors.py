# Spotcast Connector
# Copyright (C) 2026 Spotcast Connector contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Error taxonomy for the Spotcast connector.

Everything raised to the host derives from SpotcastError, so a widget can
catch one type and still branch on the subclass when it needs to.
"""


class SpotcastError(Exception):
    """Base class for all connector errors."""


class ConfigError(SpotcastError):
    """A config value has the wrong type or an unknown setting."""


class MissingIdentityError(SpotcastError):
    """A device record carries neither spelling of an identity field."""

    def __init__(self, legacy_key: str, current_key: str):
        self.missing = (legacy_key, current_key)
        super().__init__(
            f"Device object must have either '{legacy_key}' or '{current_key}'")


class NoPlaybackTargetError(SpotcastError):
    """No device could be resolved for playback."""


class DeviceNotFoundError(NoPlaybackTargetError):
    """A device name matched no Connect device, alias or cast device."""

    def __init__(self, device_name: str):
        self.device_name = device_name
        super().__init__(f"Could not find device: {device_name}")


class HassCallError(SpotcastError):
    """The Home Assistant connection rejected or failed a call."""


class TransportError(SpotcastError):
    """A remote call failed during a named stage (devices, player, ...)."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Failed to {stage}: {cause}")


class FilterSyntaxError(SpotcastError):
    """An inclusion pattern failed to compile or evaluate.

    Never leaves the playlist filter; it selects the unfiltered fallback.
    """

    def __init__(self, rule: str, cause: BaseException):
        self.rule = rule
        self.cause = cause
        super().__init__(f"Invalid playlist pattern {rule!r}: {cause}")


class FilterError(SpotcastError):
    """Filtering playlists failed for a reason other than pattern syntax."""
