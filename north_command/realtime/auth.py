"""
Identity verification for realtime connections and REST requests.

A credential is an HS256 JWT carrying ``sub`` (user id) and ``role``.
Verification is a pure gate: it either returns an :class:`Identity` or
raises :class:`AuthenticationFailure`, and never touches the room registry.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

import jwt

from north_command.core.config import settings
from north_command.models.user import UserRole

logger = logging.getLogger(__name__)


class AuthenticationFailure(Exception):
    """Credential missing, malformed, expired, or carrying unknown claims."""


@dataclass(frozen=True)
class Identity:
    """Verified caller: stable user id plus role."""

    identity_id: str
    role: UserRole

    @property
    def is_privileged(self) -> bool:
        return self.role == UserRole.OVERSEER


def verify_credential(
    token: str | None,
    *,
    secret: str | None = None,
    algorithm: str | None = None,
) -> Identity:
    """Validate a bearer credential and return the identity it carries.

    Raises:
        AuthenticationFailure: If the token is missing, fails signature or
            expiry checks, or lacks a valid ``sub`` / ``role`` claim.
    """
    if not token or not isinstance(token, str):
        raise AuthenticationFailure("missing credential")

    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[algorithm or settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationFailure("credential expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationFailure(f"invalid credential: {exc}") from exc

    try:
        identity_id = str(uuid.UUID(str(payload["sub"])))
    except (ValueError, AttributeError) as exc:
        raise AuthenticationFailure("malformed subject claim") from exc

    try:
        role = UserRole(payload.get("role"))
    except ValueError as exc:
        raise AuthenticationFailure("unknown role claim") from exc

    return Identity(identity_id=identity_id, role=role)
