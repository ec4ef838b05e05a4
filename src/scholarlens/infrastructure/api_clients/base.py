"""
Generic async HTTP API client.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Non-2xx response from a remote API."""

    def __init__(self, status: int, body: str = "", url: str = ""):
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"API error {status} for {url}: {body[:200]}")


class APIClient:
    """Async JSON API client with a shared session and a minimum request interval."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30,
        request_interval: float = 0.0,
        api_key_header: str = "x-api-key",
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = ClientTimeout(total=timeout)
        self.request_interval = request_interval
        self.api_key_header = api_key_header
        self._last_request_time = 0.0
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": "ScholarLens/1.0"}
            if self.api_key:
                headers[self.api_key_header] = self.api_key
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers=headers,
            )
        return self._session

    async def _wait_for_rate_limit(self):
        if self.request_interval <= 0:
            return
        now = time.time()
        elapsed = now - self._last_request_time
        if elapsed < self.request_interval:
            await asyncio.sleep(self.request_interval - elapsed)
        self._last_request_time = time.time()

    async def post_json(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON body and return the decoded JSON response."""
        await self._wait_for_rate_limit()

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        session = await self._get_session()

        try:
            async with session.post(url, json=payload or {}) as response:
                if response.status in (200, 201):
                    return await response.json(content_type=None)
                text = await response.text()
                logger.error("API error %s: %s", response.status, text[:200])
                raise APIError(response.status, text, url)
        except asyncio.TimeoutError:
            logger.error("Request timeout: %s", url)
            raise

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
