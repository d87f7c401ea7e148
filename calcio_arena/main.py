from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from calcio_arena import __version__
from calcio_arena.api.routes import matches, notifications, push, relay
from calcio_arena.config import DEFAULT_RELAY_PATH, get_settings
from calcio_arena.core.exceptions import global_exception_handler, guest_recipient_exception_handler, http_exception_handler, persistence_exception_handler, request_validation_exception_handler
from calcio_arena.core.lifespan import lifespan
from calcio_arena.core.middleware import RequestLoggingMiddleware, ResponseHeadersMiddleware
from calcio_arena.notifications.contracts import GuestRecipientError, NotificationPersistenceError

settings = get_settings()

app = FastAPI(title="Calcio Arena notifications", version=__version__, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(NotificationPersistenceError, persistence_exception_handler)
app.add_exception_handler(GuestRecipientError, guest_recipient_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ResponseHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(push.router, prefix="/v1/push", tags=["push"])
app.include_router(notifications.router, prefix="/v1/notifications", tags=["notifications"])
app.include_router(matches.router, prefix="/v1/matches", tags=["matches"])
app.include_router(relay.router, prefix=DEFAULT_RELAY_PATH.rsplit("/", 1)[0], tags=["relay"])
