from __future__ import annotations

import hmac
import time
from typing import Annotated, Callable

from fastapi import Depends, Header, Request
from jose import JWTError, jwt

from .core import get_settings, AuthenticationError, AuthorizationError
from .roles import Permission, has_permission

# ---------------------------------------------------------------------------
#  Basic JWT helpers
# ---------------------------------------------------------------------------
# Tokens are minted by the external identity platform; ``create_token`` exists
# for service callers and tests that share the signing key.
SERVICE_ROLE = "service_role"

DEFAULT_EXP_SECONDS = 900


def _now() -> int:
    return int(time.time())


def create_token(
    sub: int | str,
    roles: list[str],
    *,
    expires_in: int = DEFAULT_EXP_SECONDS,
    **extra_claims,
) -> str:
    """Return a signed JWT including any *extra_claims*.

    Standard claims:
    • sub   – user identifier
    • roles – list of role names
    • exp   – expiry (unix epoch)
    """
    settings = get_settings()
    payload = {
        "sub": str(sub),
        "roles": [getattr(r, "value", r) for r in roles],
        "exp": _now() + expires_in,
    }
    payload.update(extra_claims)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Verify *token* and return its payload."""
    settings = get_settings()
    try:
        payload: dict = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        raise AuthenticationError("Invalid token") from exc
    return payload


def token_roles(payload: dict) -> list[str]:
    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    # single-role tokens still carry ``role``
    if payload.get("role"):
        roles = [*roles, payload["role"]]
    return [str(r) for r in roles]


def user_id_of(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Token subject is not a user id") from exc


# ---------------------------------------------------------------------------
#  Dependencies
# ---------------------------------------------------------------------------
def _extract_token(req: Request) -> str | None:
    """Return JWT from Authorization header *or* access_token cookie."""
    auth: str | None = req.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1]
    return req.cookies.get("access_token")


async def current_user(req: Request) -> dict:
    """FastAPI dependency returning the JWT payload or raises 401."""
    token = _extract_token(req)
    if not token:
        raise AuthenticationError("Missing credentials")
    return decode_token(token)


def permission_required(permission: "str | Permission") -> Callable[[dict], dict]:
    """Return a dependency that checks the caller holds *permission*.

    Usage:
        @router.post("/verify", dependencies=[Depends(permission_required(Permission.verify_payments))])
        async def verify():
            ...
    """
    permission = Permission(permission)

    async def _dep(user: Annotated[dict, Depends(current_user)]):
        if not has_permission(token_roles(user), permission):
            raise AuthorizationError(f"Missing permission: {permission.value}", permission=permission.value)
        return user

    return _dep


async def require_cron_secret(
    req: Request,
    cron_secret: str | None = Header(None, alias="X-Cron-Secret"),
) -> str:
    """Authorize scheduled-job callers.

    Accepts the shared ``X-Cron-Secret`` header or a bearer token carrying the
    ``service_role`` role. A normal user session is never enough.
    """
    settings = get_settings()
    if cron_secret is not None:
        if settings.CRON_SECRET and hmac.compare_digest(cron_secret, settings.CRON_SECRET):
            return "cron_secret"
        raise AuthenticationError("Invalid cron secret")

    token = _extract_token(req)
    if token:
        try:
            payload = decode_token(token)
        except AuthenticationError:
            payload = {}
        if SERVICE_ROLE in token_roles(payload):
            return SERVICE_ROLE
    raise AuthenticationError("Missing cron credentials")
