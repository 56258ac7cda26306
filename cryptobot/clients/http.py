"""Shared JSON-over-HTTP plumbing for the exchange clients."""

import asyncio
import time
from collections import OrderedDict
from typing import Any, Callable

import httpx

from cryptobot.clients.retry import Sleep, retry_async

_CACHE_LIMIT = 256


class ResponseCache:
    """Bounded in-memory TTL cache keyed by request URL."""

    def __init__(self, ttl_s: float, limit: int = _CACHE_LIMIT, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_s = ttl_s
        self.limit = max(1, limit)
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl_s:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any) -> None:
        if self.ttl_s <= 0:
            return
        if key in self._entries:
            del self._entries[key]
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self.limit:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class JsonHttpClient:
    """GET-and-decode JSON with retry and optional response caching."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        source: str,
        attempts: int,
        backoff_s: float,
        cache: ResponseCache | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.source = source
        self.attempts = attempts
        self.backoff_s = backoff_s
        self.cache = cache
        self._sleep = sleep

    async def get_json(self, path: str, params: dict[str, Any] | None = None, use_cache: bool = True) -> Any:
        url = httpx.URL(self.base_url + path, params=params or {})
        cache_key = str(url)
        if use_cache and self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        async def _request() -> Any:
            response = await self.client.get(url)
            response.raise_for_status()
            return response.json()

        payload = await retry_async(
            _request,
            source=self.source,
            attempts=self.attempts,
            backoff_s=self.backoff_s,
            retry_on=(httpx.HTTPError, ValueError),
            sleep=self._sleep,
        )
        if use_cache and self.cache is not None:
            self.cache.put(cache_key, payload)
        return payload
