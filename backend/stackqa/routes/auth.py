"""
StackQA Backend — Authentication Routes
========================================

What:  Sign-up, sign-in, sign-out and the current-session lookup.
Who:   The login/sign-up modal and the header's session state.

The client stores the returned access_token and sends it back as
`Authorization: Bearer <token>`. GET /api/auth/session is how the UI learns,
on load, whether a stored token still belongs to a signed-in user.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.database import get_db_session
from stackqa.dependencies import get_current_user_optional, get_token_claims
from stackqa.exceptions import AuthenticationError
from stackqa.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    SessionResponse,
    SessionToken,
    SessionUser,
)
from stackqa.schemas.common import ErrorResponse
from stackqa.services.auth_service import auth_service
from stackqa.services.user_cache import CachedUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=SessionToken,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account and sign in",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SessionToken:
    return await auth_service.register(
        db, name=body.name, email=body.email, password=body.password
    )


@router.post(
    "/login",
    response_model=SessionToken,
    responses={401: {"description": "Invalid email or password", "model": ErrorResponse}},
    summary="Sign in with email and password",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SessionToken:
    return await auth_service.authenticate(db, email=body.email, password=body.password)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"description": "No valid session", "model": ErrorResponse}},
    summary="End the current session",
)
async def logout(
    claims: Optional[Dict[str, Any]] = Depends(get_token_claims),
) -> Response:
    if claims is None:
        raise AuthenticationError(message="You are not logged in.")
    auth_service.end_session(claims)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Current session user, or null",
)
async def get_session(
    response: Response,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
) -> SessionResponse:
    response.headers["Cache-Control"] = "no-store"
    if viewer is None:
        return SessionResponse(user=None)
    return SessionResponse(user=SessionUser(**viewer.model_dump()))
