# Spotcast Connector
# Copyright (C) 2026 Spotcast Connector contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Device record normalization.

The remote service reports Connect devices in two shapes:

    legacy   {"device_id": "...", "device_type": "Speaker", ...}
    current  {"id": "...",        "type": "Speaker", ...}

adapt_record() tags a raw record once at the boundary; normalize() turns the
tagged record into a canonical Device.  Identity resolution always prefers
the legacy spelling and falls back to the current one, so mixed records
(e.g. ``device_id`` + ``type``) still normalize.

Usage:
    from spotcast_connector.devices import normalize_all

    devices = normalize_all(await hass.call_ws({"type": "spotcast/devices"}))
"""

import logging

from .errors import MissingIdentityError
from .models import DEVICE_FIELDS, Device

log = logging.getLogger(__name__)

LEGACY = "legacy"
CURRENT = "current"

_LEGACY_KEYS = ("device_id", "device_type")


class IncomingDeviceRecord:
    """A raw device record tagged with the shape it arrived in."""

    def __init__(self, shape: str, raw: dict):
        self.shape = shape
        self.raw = raw

    def _pick(self, legacy_key: str, current_key: str):
        # Empty strings count as absent, like a missing key
        if self.shape == LEGACY and self.raw.get(legacy_key):
            return self.raw[legacy_key]
        return self.raw.get(current_key) or None

    @property
    def device_id(self) -> str | None:
        return self._pick("device_id", "id")

    @property
    def device_type(self) -> str | None:
        return self._pick("device_type", "type")


def adapt_record(record) -> IncomingDeviceRecord:
    """Tag a raw mapping (or pass an already tagged record through)."""
    if isinstance(record, IncomingDeviceRecord):
        return record
    if not isinstance(record, dict):
        raise TypeError(f"Device record must be a mapping, got {type(record).__name__}")
    shape = LEGACY if any(record.get(k) for k in _LEGACY_KEYS) else CURRENT
    return IncomingDeviceRecord(shape, record)


def normalize(record) -> Device:
    """Build a canonical Device from one incoming record.

    Raises MissingIdentityError when either identity field is absent in both
    spellings.  Nothing is constructed in that case.
    """
    tagged = adapt_record(record)
    device_id = tagged.device_id
    if not device_id:
        raise MissingIdentityError("device_id", "id")
    device_type = tagged.device_type
    if not device_type:
        raise MissingIdentityError("device_type", "type")

    fields = {field: tagged.raw.get(field) for field in DEVICE_FIELDS}
    return Device(device_id, device_type, **fields)


def normalize_all(records) -> list[Device]:
    """Normalize a batch in order.  The first bad record fails the batch."""
    devices = [normalize(record) for record in records or []]
    log.debug("Normalized %d device records", len(devices))
    return devices
