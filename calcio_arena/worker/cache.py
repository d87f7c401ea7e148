"""Named response caches used by the delivery worker."""

from __future__ import annotations

import asyncio
from typing import Protocol

from calcio_arena.worker.fetch import FetchRequest, FetchResponse


class Cache(Protocol):
  async def match(self, request: FetchRequest) -> FetchResponse | None: ...

  async def put(self, request: FetchRequest, response: FetchResponse) -> None: ...


class CacheStorage(Protocol):
  async def open(self, name: str) -> Cache: ...

  async def keys(self) -> list[str]: ...

  async def delete(self, name: str) -> bool: ...

  async def match(self, request: FetchRequest) -> FetchResponse | None:
    """Look a request up across every cache."""


class InMemoryCache:
  def __init__(self) -> None:
    self._entries: dict[str, FetchResponse] = {}

  async def match(self, request: FetchRequest) -> FetchResponse | None:
    return self._entries.get(request.cache_key)

  async def put(self, request: FetchRequest, response: FetchResponse) -> None:
    self._entries[request.cache_key] = response

  def __len__(self) -> int:
    return len(self._entries)


class InMemoryCacheStorage:
  """Cache storage whose writes are serialised per cache name."""

  def __init__(self) -> None:
    self._caches: dict[str, InMemoryCache] = {}
    self._lock = asyncio.Lock()

  async def open(self, name: str) -> InMemoryCache:
    async with self._lock:
      return self._caches.setdefault(name, InMemoryCache())

  async def keys(self) -> list[str]:
    return list(self._caches)

  async def delete(self, name: str) -> bool:
    async with self._lock:
      return self._caches.pop(name, None) is not None

  async def match(self, request: FetchRequest) -> FetchResponse | None:
    # Caches are searched in creation order.
    for cache in list(self._caches.values()):
      response = await cache.match(request)
      if response is not None:
        return response
    return None
