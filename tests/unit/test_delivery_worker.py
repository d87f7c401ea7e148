from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import pytest

from calcio_arena.notifications.payloads import build_match_payload, encode_push_payload
from calcio_arena.worker.cache import InMemoryCacheStorage
from calcio_arena.worker.channel import ChannelMessage, MessageType
from calcio_arena.worker.delivery import CACHE_NAME, PRECACHE_ASSETS, DeliveryWorker
from calcio_arena.worker.fetch import FetchRequest, FetchResponse, HttpxFetcher

ORIGIN = "https://calcio.test"


class FakeFetcher:
  def __init__(self, responses: dict[str, FetchResponse] | None = None, offline: bool = False) -> None:
    self.responses = responses or {}
    self.offline = offline

  async def fetch(self, request: FetchRequest) -> FetchResponse:
    if self.offline:
      raise ConnectionError("offline")
    return self.responses.get(request.url, FetchResponse(url=request.url, status=404))


class FakeDisplay:
  def __init__(self) -> None:
    self.shown: list[tuple[str, dict]] = []

  async def show_notification(self, title, options):
    self.shown.append((title, options))


@dataclass
class FakeNotification:
  data: dict
  closed: bool = False

  def close(self) -> None:
    self.closed = True


@dataclass
class FakeWindow:
  url: str
  messages: list = field(default_factory=list)
  focused: bool = False

  async def post_message(self, message):
    self.messages.append(message)

  async def focus(self):
    self.focused = True


class FakeClients:
  def __init__(self, windows=None) -> None:
    self.windows = list(windows or [])
    self.opened: list[str] = []

  async def match_all(self):
    return list(self.windows)

  async def open_window(self, url):
    self.opened.append(url)
    return FakeWindow(url=f"{ORIGIN}{url}")


def _worker(*, fetcher=None, display=None, clients=None, storage=None) -> DeliveryWorker:
  return DeliveryWorker(origin=ORIGIN, cache_storage=storage or InMemoryCacheStorage(), fetcher=fetcher or FakeFetcher(), display=display or FakeDisplay(), clients=clients or FakeClients())


def _ok(url: str, body: bytes = b"ok", type_: str = "basic") -> FetchResponse:
  return FetchResponse(url=url, status=200, type=type_, body=body)


@pytest.mark.anyio
async def test_install_caches_reachable_assets_only():
  storage = InMemoryCacheStorage()
  fetcher = FakeFetcher({asset: _ok(asset) for asset in PRECACHE_ASSETS[:-1]})
  assert await _worker(fetcher=fetcher, storage=storage).on_install() == len(PRECACHE_ASSETS) - 1
  assert len(await storage.open(CACHE_NAME)) == len(PRECACHE_ASSETS) - 1


@pytest.mark.anyio
async def test_activate_deletes_older_caches():
  storage = InMemoryCacheStorage()
  await storage.open("calcio-arena-v0")
  await storage.open(CACHE_NAME)
  assert await _worker(storage=storage).on_activate() == ["calcio-arena-v0"]
  assert await storage.keys() == [CACHE_NAME]


@pytest.mark.anyio
async def test_push_renders_notification_with_match_tag():
  display = FakeDisplay()
  data = encode_push_payload(build_match_payload(title="Calcio Arena", message="Match confirmed", match_id="42"))
  payload = await _worker(display=display).on_push(data)

  assert payload is not None
  title, options = display.shown[0]
  assert title == "Calcio Arena"
  assert options["tag"] == "match-42"
  assert options["renotify"] is True


@pytest.mark.anyio
@pytest.mark.parametrize("data", [None, b"", b"not json", b'{"body": "no title"}'])
async def test_malformed_push_is_dropped(data):
  display = FakeDisplay()
  assert await _worker(display=display).on_push(data) is None
  assert display.shown == []


@pytest.mark.anyio
async def test_page_message_with_push_shape_is_rendered():
  display = FakeDisplay()
  message = ChannelMessage(type=MessageType.PUSH_NOTIFICATION, payload={"title": "Calcio Arena", "body": "hi", "tag": "match-1"})
  assert await _worker(display=display).on_message(message) is not None
  assert await _worker(display=display).on_message(b'{"type": "NOTIFICATION_CLICK"}') is None
  assert len(display.shown) == 1


@pytest.mark.anyio
async def test_click_focuses_existing_window_and_posts_data():
  window = FakeWindow(url=f"{ORIGIN}/matches")
  clients = FakeClients([FakeWindow(url="https://elsewhere.test/"), window])
  notification = FakeNotification(data={"url": "/match/42", "matchId": "42"})

  assert await _worker(clients=clients).on_notification_click(notification) == "focused"
  assert notification.closed
  assert window.focused
  assert window.messages == [ChannelMessage(type=MessageType.NOTIFICATION_CLICK, payload={"url": "/match/42", "matchId": "42"})]
  assert clients.opened == []


@pytest.mark.anyio
async def test_click_opens_window_when_none_is_open():
  clients = FakeClients()
  assert await _worker(clients=clients).on_notification_click(FakeNotification(data={"url": "/match/42"})) == "opened"
  assert clients.opened == ["/match/42"]


@pytest.mark.anyio
async def test_dismiss_action_only_closes():
  clients = FakeClients([FakeWindow(url=f"{ORIGIN}/")])
  notification = FakeNotification(data={"url": "/match/42"})
  assert await _worker(clients=clients).on_notification_click(notification, action="dismiss") == "dismissed"
  assert notification.closed
  assert clients.opened == []


@pytest.mark.anyio
async def test_fetch_caches_successful_same_origin_get():
  storage = InMemoryCacheStorage()
  worker = _worker(fetcher=FakeFetcher({"/app.js": _ok("/app.js", b"js")}), storage=storage)
  response = await worker.on_fetch(FetchRequest(url="/app.js"))

  assert response.body == b"js"
  assert (await storage.match(FetchRequest(url="/app.js"))).body == b"js"


@pytest.mark.anyio
async def test_fetch_does_not_cache_cross_origin_or_non_get():
  storage = InMemoryCacheStorage()
  fetcher = FakeFetcher({"https://cdn.test/lib.js": _ok("https://cdn.test/lib.js", type_="cors"), "/api": _ok("/api")})
  worker = _worker(fetcher=fetcher, storage=storage)
  await worker.on_fetch(FetchRequest(url="https://cdn.test/lib.js"))
  await worker.on_fetch(FetchRequest(url="/api", method="POST"))

  assert await storage.match(FetchRequest(url="https://cdn.test/lib.js")) is None
  assert await storage.match(FetchRequest(url="/api", method="POST")) is None


@pytest.mark.anyio
async def test_fetch_falls_back_to_cache_when_offline():
  storage = InMemoryCacheStorage()
  cache = await storage.open(CACHE_NAME)
  await cache.put(FetchRequest(url="/index.html"), _ok("/index.html", b"<html>"))
  worker = _worker(fetcher=FakeFetcher(offline=True), storage=storage)

  assert (await worker.on_fetch(FetchRequest(url="/index.html"))).body == b"<html>"
  assert await worker.on_fetch(FetchRequest(url="/missing")) is None


@pytest.mark.anyio
async def test_subscription_change_is_posted_to_open_pages():
  window = FakeWindow(url=f"{ORIGIN}/")
  clients = FakeClients([window, FakeWindow(url="https://elsewhere.test/")])
  assert await _worker(clients=clients).on_push_subscription_change({"endpoint": "https://fcm.googleapis.com/fcm/send/new"}) == 1
  assert window.messages[0].type == MessageType.PUSH_SUBSCRIPTION_CHANGED


@pytest.mark.anyio
async def test_httpx_fetcher_marks_same_origin_responses_basic():
  def handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=request.url.host.encode())

  fetcher = HttpxFetcher(origin=ORIGIN, transport=httpx.MockTransport(handler))
  local = await fetcher.fetch(FetchRequest(url="/index.html"))
  remote = await fetcher.fetch(FetchRequest(url="https://cdn.test/lib.js"))

  assert (local.type, local.body) == ("basic", b"calcio.test")
  assert (remote.type, remote.body) == ("cors", b"cdn.test")
