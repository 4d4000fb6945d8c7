"""HTTP transport over aiohttp.

Sends exactly the query string and body that were signed, and hands the raw
status and body back to the pipeline without interpreting them.
"""
from __future__ import annotations
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp
import orjson
from yarl import URL

from core.errors import GatewayConnectionError
from core.types import RequestDescriptor, TransportResponse

log = logging.getLogger(__name__)


class Transport(ABC):

    @abstractmethod
    async def send(self, request: RequestDescriptor) -> TransportResponse: ...

    async def close(self) -> None:
        pass


class AiohttpTransport(Transport):
    """One lazily created ``ClientSession`` per gateway client."""

    def __init__(self, base_url: str, timeout_s: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                json_serialize=lambda x: orjson.dumps(x).decode(),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def url_for(self, request: RequestDescriptor) -> URL:
        # encoded=True keeps the signed query byte-for-byte
        return URL(f"{self.base_url}{request.path_with_query}", encoded=True)

    async def send(self, request: RequestDescriptor) -> TransportResponse:
        session = await self._get_session()
        url = self.url_for(request)
        data = request.body.encode("utf-8") if request.body is not None else None
        try:
            async with session.request(
                request.method.value, url, headers=request.headers, data=data,
            ) as resp:
                body = await resp.text()
                return TransportResponse(resp.status, body, dict(resp.headers))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("REST %s failed: %s", request.endpoint, e)
            raise GatewayConnectionError(
                f"Connection failed: {e.__class__.__name__}: {e}", request.endpoint,
            ) from e
