"""
Remote-call primitive for the Spotcast connector.

The connector only needs two things from its host:

    await hass.call_ws({"type": "spotcast/devices", "account": "..."})
    await hass.call_service("spotcast", "start", {"spotify_device_id": "..."})

HassConnection is that contract.  HomeAssistantConnection implements it
against a real Home Assistant instance: queries go over the WebSocket API
(the spotcast/* commands only exist there), service calls go over REST.

Usage:
    hass = HomeAssistantConnection.from_config()
    await hass.start()
    players = await hass.call_ws({"type": "spotcast/player"})
    await hass.stop()
"""

import asyncio
import itertools
import json
import logging
import os
from abc import ABC, abstractmethod

import aiohttp
import websockets

from .config import cfg
from .errors import HassCallError

logger = logging.getLogger(__name__)

DEFAULT_HA_URL = "http://homeassistant.local:8123"


class HassConnection(ABC):
    """Interface every remote-call primitive must implement."""

    @abstractmethod
    async def call_ws(self, message: dict): ...

    @abstractmethod
    async def call_service(self, domain: str, service: str, data: dict) -> None: ...


def _ws_url(base_url: str) -> str:
    """http://ha:8123 -> ws://ha:8123/api/websocket (https -> wss)."""
    url = base_url.rstrip("/")
    if url.startswith("https://"):
        url = "wss://" + url[len("https://"):]
    elif url.startswith("http://"):
        url = "ws://" + url[len("http://"):]
    return url + "/api/websocket"


class HomeAssistantConnection(HassConnection):
    """Home Assistant client: WebSocket for queries, REST for services."""

    def __init__(self, base_url: str, token: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.ws_url = _ws_url(self.base_url)
        self._token = token
        self._timeout = timeout

        # Internal state
        self._session: aiohttp.ClientSession | None = None
        self._ws = None
        self._reader_task: asyncio.Task | None = None
        self._pending: dict[int, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_config(cls) -> "HomeAssistantConnection":
        """Config file for the URL, HA_TOKEN env var as the token fallback."""
        url = cfg("home_assistant", "url", default=DEFAULT_HA_URL)
        token = cfg("home_assistant", "token") or os.getenv("HA_TOKEN", "")
        if not token:
            logger.warning("No Home Assistant token configured — calls will be rejected")
        return cls(url, token)

    async def start(self):
        """Open the REST session and the authenticated WebSocket."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "User-Agent": "SpotcastConnector/1.0",
                },
            )
        await self._ensure_ws()
        logger.info("Home Assistant connection ready -> %s", self.base_url)

    async def stop(self):
        """Clean shutdown of the socket, reader task and session."""
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        if self._session:
            await self._session.close()
            self._session = None

        self._fail_pending(HassCallError("Connection closed"))
        logger.info("Home Assistant connection stopped")

    # --- WebSocket API --------------------------------------------------------

    async def _ensure_ws(self):
        async with self._connect_lock:
            if self._ws is not None:
                return
            ws = await websockets.connect(self.ws_url)
            try:
                await self._authenticate(ws)
            except Exception:
                await ws.close()
                raise
            self._ws = ws
            self._reader_task = asyncio.create_task(self._read_loop(ws))
            logger.info("WebSocket authenticated at %s", self.ws_url)

    async def _authenticate(self, ws):
        hello = json.loads(await ws.recv())
        if hello.get("type") != "auth_required":
            raise HassCallError(f"Unexpected handshake message: {hello.get('type')}")
        await ws.send(json.dumps({"type": "auth", "access_token": self._token}))
        reply = json.loads(await ws.recv())
        if reply.get("type") != "auth_ok":
            raise HassCallError(f"Authentication failed: {reply.get('message', reply.get('type'))}")

    async def _read_loop(self, ws):
        """Route result frames to the waiting call_ws() futures."""
        try:
            async for raw in ws:
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("Invalid JSON from Home Assistant: %s", raw)
                    continue
                if not isinstance(msg, dict):
                    logger.warning("Ignoring non-object frame: %s", raw)
                    continue
                if msg.get("type") != "result":
                    logger.debug("Ignoring %s frame", msg.get("type"))
                    continue
                future = self._pending.pop(msg.get("id"), None)
                if future is None or future.done():
                    continue
                if msg.get("success"):
                    future.set_result(msg.get("result"))
                else:
                    error = msg.get("error") or {}
                    future.set_exception(HassCallError(
                        f"{error.get('code', 'unknown_error')}: {error.get('message', '')}"))
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("Home Assistant WebSocket closed: %s", e)
        except Exception:
            logger.exception("WebSocket reader failed")
        finally:
            if self._ws is ws:
                self._ws = None
            self._fail_pending(HassCallError("WebSocket connection lost"))

    def _fail_pending(self, exc: Exception):
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)

    async def call_ws(self, message: dict):
        """Send one command and wait for its result payload."""
        await self._ensure_ws()
        msg_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future
        try:
            await self._ws.send(json.dumps({**message, "id": msg_id}))
        except websockets.exceptions.ConnectionClosed as e:
            self._pending.pop(msg_id, None)
            raise HassCallError(f"WebSocket send failed: {e}") from e
        logger.debug("WS -> %s (id %d)", message.get("type"), msg_id)
        return await future

    # --- REST API -------------------------------------------------------------

    async def call_service(self, domain: str, service: str, data: dict) -> None:
        if not self._session:
            raise HassCallError("REST session not initialized")

        url = f"{self.base_url}/api/services/{domain}/{service}"
        try:
            async with self._session.post(url, json=data, raise_for_status=True) as resp:
                logger.info("Service %s.%s called (HTTP %d)", domain, service, resp.status)
        except asyncio.TimeoutError as e:
            raise HassCallError(f"Timeout calling {domain}.{service}") from e
        except aiohttp.ClientError as e:
            raise HassCallError(f"Error calling {domain}.{service}: {e}") from e
