"""
Authentication API Routes
=========================

  POST /api/auth/login/overseer   -- Overseer login
  POST /api/auth/login/agent      -- Field agent login
  POST /api/auth/register/agent   -- Field agent self-registration

The returned token is used both as the REST Bearer token and as
``auth.token`` on the Socket.IO handshake.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from north_command.api.deps import DBSession
from north_command.api.schemas.auth import LoginRequest, RegisterAgentRequest, TokenResponse
from north_command.models.user import UserRole
from north_command.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


async def _login(db, body: LoginRequest, role: UserRole) -> TokenResponse:
    try:
        user, token = await auth_service.authenticate(db, body.username, body.password, role)
    except auth_service.InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        )
    return TokenResponse(token=token, role=user.role)


@router.post(
    "/login/overseer",
    response_model=TokenResponse,
    summary="Log in as the Overseer",
)
async def login_overseer(db: DBSession, body: LoginRequest) -> TokenResponse:
    return await _login(db, body, UserRole.OVERSEER)


@router.post(
    "/login/agent",
    response_model=TokenResponse,
    summary="Log in as a field agent",
)
async def login_agent(db: DBSession, body: LoginRequest) -> TokenResponse:
    return await _login(db, body, UserRole.FIELD_AGENT)


@router.post(
    "/register/agent",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new field agent",
)
async def register_agent(db: DBSession, body: RegisterAgentRequest) -> TokenResponse:
    try:
        user, token = await auth_service.register_agent(db, body.username, body.password)
    except auth_service.UsernameTakenError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        )
    return TokenResponse(token=token, role=user.role)
