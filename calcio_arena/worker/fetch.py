"""Network access for the delivery worker."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal, Protocol
from urllib.parse import urljoin, urlparse

import httpx

logger = logging.getLogger(__name__)

ResponseType = Literal["basic", "cors", "opaque", "error"]


@dataclass(frozen=True)
class FetchRequest:
  url: str
  method: str = "GET"
  headers: dict[str, str] = field(default_factory=dict)

  @property
  def cache_key(self) -> str:
    return f"{self.method.upper()} {self.url}"


@dataclass(frozen=True)
class FetchResponse:
  """A response as the worker sees it; `type` is `basic` only for same-origin responses."""

  url: str
  status: int
  type: ResponseType = "basic"
  body: bytes = b""
  headers: dict[str, str] = field(default_factory=dict)

  @property
  def ok(self) -> bool:
    return 200 <= self.status < 300


class Fetcher(Protocol):
  async def fetch(self, request: FetchRequest) -> FetchResponse:
    """Perform the request; raise on network failure."""


class HttpxFetcher:
  """Fetch through `httpx`, resolving relative URLs against the app origin."""

  def __init__(self, *, origin: str, timeout_seconds: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._origin = origin.rstrip("/")
    self._timeout_seconds = timeout_seconds
    self._transport = transport

  def resolve(self, url: str) -> str:
    return urljoin(f"{self._origin}/", url)

  def _response_type(self, url: str) -> ResponseType:
    target = urlparse(url)
    origin = urlparse(self._origin)
    return "basic" if (target.scheme, target.netloc) == (origin.scheme, origin.netloc) else "cors"

  async def fetch(self, request: FetchRequest) -> FetchResponse:
    url = self.resolve(request.url)
    async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout_seconds, trust_env=False) as client:
      response = await client.request(request.method, url, headers=request.headers)

    return FetchResponse(url=request.url, status=response.status_code, type=self._response_type(url), body=response.content, headers=dict(response.headers))
