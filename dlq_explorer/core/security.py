"""Helpers for decoding JSON Web Tokens (JWT) and reading role claims.

The implementation is intentionally minimal:
* HS256 symmetric signing (default), configured via env vars.
* Roles come from Keycloak-style claims: ``realm_access.roles`` and
  ``resource_access.<client>.roles``.
* Pure business logic, no FastAPI imports, so it is unit-testable in isolation.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Set

from jose import JWTError, jwt  # python-jose

from dlq_explorer.core.config import get_settings

settings = get_settings()


class TokenValidationError(Exception):
    """Raised when a JWT is missing or invalid."""


def create_access_token(
    claims: Dict[str, Any],
    *,
    expires_delta: timedelta | None = None,
) -> str:
    """Return a signed JWT embedding *claims*."""
    to_encode = claims.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=30))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> Dict[str, Any]:
    """Validate *token* and return its claims dict.

    Raises
    ------
    TokenValidationError
        If the token is malformed, expired, or signature-invalid.
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise TokenValidationError("Invalid or expired JWT") from exc


def _roles_at(node: Any) -> Iterable[str]:
    if not isinstance(node, dict):
        return []
    roles = node.get("roles")
    if not isinstance(roles, (list, tuple, set)):
        return []
    return [str(r) for r in roles]


def extract_roles(claims: Dict[str, Any], client_id: str | None = None) -> Set[str]:
    """Collect realm roles plus the roles granted on *client_id*."""
    roles = set(_roles_at(claims.get("realm_access")))
    resource_access = claims.get("resource_access")
    if client_id and isinstance(resource_access, dict):
        roles.update(_roles_at(resource_access.get(client_id)))
    return roles
