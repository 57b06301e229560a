"""Bearer-token authentication.

Tokens are issued by the external identity provider and signed with the
shared ``JWT_SECRET``. ``sub`` carries the player's profile id; an
``admin: true`` claim grants access to maintenance endpoints.
"""

import os
from typing import Any

import jwt
from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..exceptions import http_problem
from ..models import Profile


def get_jwt_secret() -> str:
  secret = os.getenv("JWT_SECRET")
  if not secret:
    raise RuntimeError("JWT_SECRET environment variable is required")
  if len(secret) < 32 or secret.lower() in {"secret", "changeme", "default"}:
    raise RuntimeError(
        "JWT_SECRET must be at least 32 characters and not a common default"
    )
  return secret


JWT_ALG = "HS256"


def _rate_limits_disabled() -> bool:
  return (os.getenv("DISABLE_RATE_LIMITS") or "").lower() == "true"


def _get_client_ip(request: Request) -> str:
  forwarded = request.headers.get("X-Forwarded-For")
  if forwarded:
    parts = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
    if parts:
      return parts[-1]
  real_ip = request.headers.get("X-Real-IP")
  if real_ip:
    return real_ip
  return request.client.host if request.client else ""


limiter = Limiter(key_func=_get_client_ip, enabled=not _rate_limits_disabled())


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
  detail = exc.detail if isinstance(exc.detail, str) else ""
  if detail:
    message = f"rate limit exceeded: {detail}"
  else:
    message = "rate limit exceeded: please wait before submitting another request."
  return JSONResponse(
      status_code=429,
      content={
          "detail": message,
          "code": "rate_limit_exceeded",
      },
  )


def _extract_bearer_token(authorization: str | None) -> str:
  if not authorization:
    raise http_problem(
        status_code=401,
        detail="missing token",
        code="auth_missing_token",
    )
  scheme, _, token = authorization.partition(" ")
  if scheme.lower() != "bearer" or not token.strip():
    raise http_problem(
        status_code=401,
        detail="invalid authorization header",
        code="auth_invalid_header",
    )
  return token.strip()


def _decode(authorization: str | None) -> dict[str, Any]:
  token = _extract_bearer_token(authorization)
  try:
    return jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALG])
  except jwt.ExpiredSignatureError:
    raise http_problem(
        status_code=401,
        detail="token expired",
        code="auth_token_expired",
    )
  except jwt.PyJWTError:
    raise http_problem(
        status_code=401,
        detail="invalid token",
        code="auth_invalid_token",
    )


async def get_current_player(
    authorization: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
) -> Profile:
  payload = _decode(authorization)
  pid = payload.get("sub")
  player = await session.get(Profile, pid) if isinstance(pid, str) else None
  if not player:
    raise http_problem(
        status_code=401,
        detail="player not found",
        code="auth_player_not_found",
    )
  return player


async def require_admin(authorization: str | None = Header(None)) -> dict[str, Any]:
  payload = _decode(authorization)
  if payload.get("admin") is not True:
    raise http_problem(
        status_code=403,
        detail="forbidden",
        code="admin_forbidden",
    )
  return payload
