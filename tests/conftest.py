"""Shared pytest fixtures for the Spotcast connector test suite."""

import asyncio

import pytest

from spotcast_connector.transport import HassConnection


class FakeHass(HassConnection):
    """In-memory HassConnection that records every call.

    ``responses`` maps a query type to its result; an Exception value is
    raised instead.  ``gate`` (an asyncio.Event) holds queries until set.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.ws_calls = []
        self.service_calls = []
        self.service_error = None
        self.gate = None

    async def call_ws(self, message: dict):
        self.ws_calls.append(message)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        result = self.responses.get(message["type"])
        if isinstance(result, Exception):
            raise result
        return result

    async def call_service(self, domain: str, service: str, data: dict) -> None:
        self.service_calls.append((domain, service, data))
        if self.service_error is not None:
            raise self.service_error

    def ws_types(self):
        return [m["type"] for m in self.ws_calls]


class FakeClock:
    """Monotonic clock the tests move by hand (seconds)."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


DEVICES = [
    {"id": "d1", "type": "Computer", "name": "Desk", "is_active": False},
    {"device_id": "d2", "device_type": "Speaker", "name": "Kitchen"},
]

CAST_DEVICES = [
    {"friendly_name": "Living Room TV", "model_name": "Chromecast", "uuid": "c-1"},
]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hass():
    return FakeHass({
        "spotcast/devices": [dict(d) for d in DEVICES],
        "spotcast/player": {},
        "spotcast/castdevices": [dict(c) for c in CAST_DEVICES],
        "spotcast/playlists": {"items": []},
    })
