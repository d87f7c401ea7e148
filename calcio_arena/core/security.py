from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from calcio_arena.config import Settings, get_settings
from calcio_arena.core.firebase import verify_id_token
from calcio_arena.notifications.recipients import is_guest_identity

security_scheme = HTTPBearer()


@dataclass(frozen=True)
class Principal:
  """The authenticated caller, identified by the identity provider's uid."""

  user_id: str
  claims: dict[str, Any] = field(default_factory=dict)


async def get_current_principal(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> Principal:
  """Verify the Firebase ID token and return its uid as the principal."""
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)

  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})

  uid = decoded_claims.get("uid")
  if not uid:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

  # Guest identities are synthesized at signup and never authenticate.
  if is_guest_identity(str(uid)):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Guest identities cannot use notifications")

  return Principal(user_id=str(uid), claims=dict(decoded_claims))


async def require_relay_secret(settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None)) -> None:
  """Allow relay calls only with the shared bearer secret (deny by default)."""
  if not settings.relay_secret:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push relay secret not configured")

  expected_auth = f"Bearer {settings.relay_secret}"
  if not secrets.compare_digest((authorization or ""), expected_auth):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid relay credentials", headers={"WWW-Authenticate": "Bearer"})
