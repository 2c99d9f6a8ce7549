"""
Pydantic v2 schemas for the authentication endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from north_command.models.user import UserRole


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterAgentRequest(BaseModel):
    username: str = Field(min_length=2, max_length=32)
    password: str = Field(min_length=4, max_length=128)


class TokenResponse(BaseModel):
    """Bearer token plus the role it was issued for."""

    token: str
    role: UserRole
