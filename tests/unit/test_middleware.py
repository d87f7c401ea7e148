from __future__ import annotations

from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from calcio_arena.core.middleware import RequestLoggingMiddleware, ResponseHeadersMiddleware, resolve_request_id


async def _echo(request):
  return PlainTextResponse(request.state.request_id, headers={"server": "uvicorn"})


def _client() -> TestClient:
  app = Starlette(routes=[Route("/echo", _echo)])
  app.add_middleware(RequestLoggingMiddleware)
  app.add_middleware(ResponseHeadersMiddleware)
  return TestClient(app)


def test_request_id_is_assigned_and_echoed():
  response = _client().get("/echo")
  assert response.headers["x-request-id"] == response.text
  assert len(response.text) == 32


def test_well_formed_inbound_request_id_is_reused():
  response = _client().get("/echo", headers={"x-request-id": "relay-call-0001"})
  assert response.headers["x-request-id"] == "relay-call-0001"


def test_malformed_inbound_request_id_is_replaced():
  scope = {"type": "http", "headers": [(b"x-request-id", b"bad id\nwith newline")]}
  assert resolve_request_id(scope) != "bad id\nwith newline"


def test_fingerprint_headers_are_stripped_and_hardening_added():
  response = _client().get("/echo")
  assert "server" not in response.headers
  assert response.headers["x-content-type-options"] == "nosniff"
  assert response.headers["referrer-policy"] == "no-referrer"
