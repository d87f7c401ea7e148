import logging
import re
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")
_STRIPPED_HEADERS = ("server", "x-powered-by")
_DEFAULT_HEADERS = {"x-content-type-options": "nosniff", "referrer-policy": "no-referrer"}


def resolve_request_id(scope: Scope) -> str:
  """Reuse a well-formed inbound request id, otherwise mint one."""
  candidate = Headers(scope=scope).get(REQUEST_ID_HEADER, "")
  if _REQUEST_ID_RE.fullmatch(candidate):
    return candidate
  return uuid.uuid4().hex


class RequestLoggingMiddleware:
  """Log one line per request and echo the request id on the response."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = resolve_request_id(scope)
    scope.setdefault("state", {})["request_id"] = request_id
    method = scope.get("method", "UNKNOWN")
    # Query strings are never logged.
    path = scope.get("path", "")
    started = time.perf_counter()
    status_code = 0

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message["type"] == "http.response.start":
        status_code = int(message.get("status") or 0)
        MutableHeaders(scope=message).setdefault(REQUEST_ID_HEADER, request_id)
      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      elapsed_ms = (time.perf_counter() - started) * 1000
      level = logging.WARNING if status_code >= 500 or status_code == 0 else logging.INFO
      logger.log(level, "Request request_id=%s method=%s path=%s status=%s elapsed_ms=%.1f", request_id, method, path, status_code, elapsed_ms)


class ResponseHeadersMiddleware:
  """Drop server fingerprint headers and add the default hardening headers."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: dict[str, Any]) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in _STRIPPED_HEADERS:
          if name in headers:
            del headers[name]
        for name, value in _DEFAULT_HEADERS.items():
          headers.setdefault(name, value)
      await send(message)

    await self.app(scope, receive, send_wrapper)
