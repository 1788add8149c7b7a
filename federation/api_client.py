"""
Coordinator REST API Client.
Shared aiohttp session for every coordinator in the federation.
"""

from __future__ import annotations
import asyncio
from typing import Any, Dict, Optional
import aiohttp
import logging

from federation.errors import CoordinatorUnavailable

logger = logging.getLogger(__name__)


class ApiClient:
    """Async JSON client. Base URL is supplied per call."""

    def __init__(self, timeout_sec: float = 30.0):
        self.timeout_sec = timeout_sec
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_sec),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(
        self,
        method: str,
        base_url: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        short_alias: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Make a request and return the decoded JSON object.
        4xx responses are returned as data (they carry bad_request),
        everything that prevents reading an answer raises CoordinatorUnavailable.
        """
        session = await self._get_session()
        url = f"{base_url.rstrip('/')}{path}"
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)

        try:
            async with session.request(
                method, url, headers=request_headers, params=params, json=body,
            ) as resp:
                if resp.status >= 500:
                    text = await resp.text()
                    logger.error(f"[API] {method} {url} HTTP {resp.status}: {text[:200]}")
                    raise CoordinatorUnavailable(short_alias, f"HTTP {resp.status}")
                data = await resp.json(content_type=None)

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"[API] {method} {url} Exception: {e!r}")
            raise CoordinatorUnavailable(short_alias, f"{method} {path} failed: {e!r}") from e

        if not isinstance(data, dict):
            raise CoordinatorUnavailable(short_alias, f"{method} {path}: expected a JSON object")
        if "bad_request" in data:
            logger.warning(f"[API] {method} {url} bad_request: {data['bad_request']}")
        return data

    async def get(
        self,
        base_url: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        short_alias: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "GET", base_url, path, headers=headers, params=params, short_alias=short_alias,
        )

    async def post(
        self,
        base_url: str,
        path: str,
        body: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        short_alias: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST", base_url, path, headers=headers, body=body, short_alias=short_alias,
        )
