# esf/adapters/aiohttp_client_adapter.py
import asyncio
from typing import Any, Dict, Optional

import aiohttp

from esf.core.exceptions import ProtocolError, TransportError
from esf.core.interfaces.http_client import HttpClientPort
from esf.core.settings import logger


class AioHttpClientAdapter(HttpClientPort):
    """HttpClientPort over one aiohttp.ClientSession.

    Failures to complete a call become TransportError. HTTP error statuses are
    not raised; they are handed back for the gateway to classify.
    """

    def __init__(
        self,
        default_total: float = 10.0,
        default_sock_connect: float = 5.0,
    ):
        self._session: Optional[aiohttp.ClientSession] = None
        self._default_total = default_total
        self._default_sock_connect = default_sock_connect

    async def __aenter__(self):
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _timeout(self, total: float | None) -> aiohttp.ClientTimeout:
        # Callers override the total window (the submission may stay open for
        # minutes); the connect timeout stays fixed.
        return aiohttp.ClientTimeout(
            total=self._default_total if total is None else total,
            sock_connect=self._default_sock_connect,
        )

    async def get(self, url: str, timeout: float | None = None) -> Dict[str, Any]:
        return await self._request("GET", url, timeout=timeout, require_json=True)

    async def post(self, url: str, json: Dict[str, Any] | None, timeout: float | None = None, headers: Dict[str, str] | None = None) -> Dict[str, Any]:
        return await self._request("POST", url, timeout=timeout, json=json, headers=headers)

    async def _request(
        self,
        method: str,
        url: str,
        timeout: float | None,
        require_json: bool = False,
        **kwargs,
    ) -> Dict[str, Any]:
        if self._session is None:
            raise RuntimeError("HTTP client not initialized. Use 'async with' context manager.")
        try:
            async with self._session.request(method, url, timeout=self._timeout(timeout), **kwargs) as response:
                try:
                    body = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    text = await response.text()
                    if require_json:
                        logger.error(
                            "Invalid JSON response from search service. %s %s status=%s content=%s",
                            method,
                            url,
                            response.status,
                            text[:500],
                        )
                        raise ProtocolError(
                            diagnostic=f"non-JSON body: '{text[:100]}'",
                            upstream_status=response.status,
                        )
                    body = text

                return {
                    "status": response.status,
                    "headers": dict(response.headers),
                    "body": body,
                }

        except asyncio.TimeoutError:
            logger.error("Timeout when calling search service. %s %s", method, url)
            raise TransportError(
                "The request to the search service timed out.",
                diagnostic=f"{method} {url} timed out",
            )
        except aiohttp.ClientError as client_error:
            logger.error(
                "Connection error when calling search service. %s %s error=%s",
                method,
                url,
                str(client_error),
            )
            raise TransportError(
                "There was a connection error with the search service.",
                diagnostic=str(client_error),
            )
