"""Websocket and HTTP transports for the telemetry server."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from pyvtc.config import TelemetryConfig
from pyvtc.exceptions import VtcTransportError

_logger = logging.getLogger(__name__)


class StreamLink(Protocol):
    """An open streaming connection.

    ``receive()`` returns the next frame, ``None`` once the peer closed the
    link, and raises :class:`VtcTransportError` on a transport error.
    """

    async def receive(self) -> str | bytes | None:
        ...

    async def close(self) -> None:
        ...


class Transport(Protocol):
    """Structural transport interface used by :class:`~pyvtc.client.TelemetryClient`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`AiohttpTransport`) concrete.
    """

    async def open_stream(self, url: str) -> StreamLink:
        ...

    async def fetch(self, url: str) -> str:
        ...


class _AiohttpStreamLink:
    def __init__(self, ws: aiohttp.ClientWebSocketResponse, url: str) -> None:
        self._ws = ws
        self._url = url

    async def receive(self) -> str | bytes | None:
        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                return str(msg.data)
            if msg.type == aiohttp.WSMsgType.BINARY:
                return bytes(msg.data)
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise VtcTransportError(
                    f"WebSocket error on {self._url}: {self._ws.exception()}",
                    url=self._url,
                )
            if msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                _logger.debug("WebSocket %s closed code=%s", self._url, self._ws.close_code)
                return None
            # PING/PONG are answered by aiohttp itself.

    async def close(self) -> None:
        if not self._ws.closed:
            await self._ws.close()


class AiohttpTransport:
    """aiohttp-backed streaming (websocket) and polling (HTTP GET) transport."""

    def __init__(self, config: TelemetryConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    async def open_stream(self, url: str) -> StreamLink:
        _logger.debug("WS connect %s", url)
        try:
            async with asyncio.timeout(self._config.request_timeout):
                ws = await self._http.ws_connect(url)
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise VtcTransportError(
                f"WebSocket connection to {url} failed: {exc or type(exc).__name__}",
                url=url,
            ) from exc
        return _AiohttpStreamLink(ws, url)

    async def fetch(self, url: str) -> str:
        """GET one telemetry payload and return the response body.

        Raises
        ------
        VtcTransportError
            On network failure, timeout, or a non-200 response.
        """
        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)
        try:
            async with self._http.get(url, timeout=timeout) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise VtcTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
        except VtcTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise VtcTransportError(
                f"Request to {url} failed: {exc or type(exc).__name__}",
                url=url,
            ) from exc
        return text
