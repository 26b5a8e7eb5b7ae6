# site_intel/http.py
"""
Shared HTTP client: text fetch with retry/backoff and a reachability probe.

Retries happen only for retryable HTTP statuses (5xx, 429).  Timeouts and
connection failures are raised as :class:`~site_intel.errors.NetworkError`
immediately; a URL that fails that way is skipped for the phase, not retried.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_intel.errors import NetworkError
from site_intel.logger import logger

RETRY_STATUS: Sequence[int] = (429, 500, 502, 503, 504)

Sleep = Callable[[float], Awaitable[None]]


class HttpClient:
    """Thin wrapper over one aiohttp session; use as an async context manager."""

    def __init__(
        self,
        *,
        user_agent: str,
        timeout: float = 30.0,
        retry_times: int = 2,
        retry_status: Sequence[int] = RETRY_STATUS,
        session: Optional[ClientSession] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.retry_times = retry_times
        self._retry_status = tuple(retry_status)
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep

    async def __aenter__(self) -> HttpClient:
        if self._session is None:
            self._session = ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            raise RuntimeError("HttpClient is not open; use 'async with HttpClient(...)'")
        return self._session

    async def get_text(self, url: str) -> str:
        """GET *url* and return its body as text.

        Raises NetworkError on timeout, connection failure, 4xx, or when the
        retry budget for 5xx/429 is spent.
        """
        attempts = 0
        while True:
            try:
                async with self.session.get(url, allow_redirects=True) as resp:
                    if resp.status in self._retry_status:
                        raise _Retryable(resp.status)
                    if resp.status >= 400:
                        raise NetworkError(url, f"HTTP {resp.status}", status=resp.status)
                    return await resp.text(errors="replace")
            except _Retryable as exc:
                attempts += 1
                if attempts > self.retry_times:
                    raise NetworkError(url, f"HTTP {exc.status} after {attempts} attempts", status=exc.status)
                delay = min(2 ** attempts * 0.1, 5.0)
                logger.debug("Retrying %s in %.1fs (HTTP %d)", url, delay, exc.status)
                await self._sleep(delay)
            except asyncio.TimeoutError as exc:
                raise NetworkError(url, "timeout") from exc
            except ClientError as exc:
                raise NetworkError(url, f"{type(exc).__name__}: {exc}") from exc

    async def probe(self, url: str) -> bool:
        """True when *url* answers with a non-error status (HEAD, falling back to GET)."""
        for method in ("HEAD", "GET"):
            try:
                async with self.session.request(method, url, allow_redirects=True) as resp:
                    if resp.status < 400:
                        return True
                    if method == "HEAD" and resp.status in (403, 405, 501):
                        continue
                    return False
            except (asyncio.TimeoutError, ClientError) as exc:
                logger.debug("Probe %s %s failed: %s", method, url, exc)
                return False
        return False


class _Retryable(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"retryable status {status}")
        self.status = status


__all__ = ["HttpClient", "RETRY_STATUS"]
