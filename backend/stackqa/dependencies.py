"""
StackQA Backend — Session Dependencies
=======================================

What:  FastAPI dependencies that turn the Authorization header into the
       current viewer.
How:   HTTPBearer(auto_error=False) extracts the token; AuthService verifies
       it; the user snapshot comes from the UserCache.

    get_token_claims          verified claims, or None
    get_current_user_optional viewer, or None for anonymous callers
    require_current_user      viewer, or 401

A missing, malformed, expired or revoked token makes the caller anonymous.
Routes that can be used anonymously (lists, detail pages, voting, where the
service itself produces the "please log in" message) take the optional
viewer; the rest require one.
"""

from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.database import get_db_session
from stackqa.exceptions import AuthenticationError
from stackqa.services.auth_service import auth_service, decode_token
from stackqa.services.user_cache import CachedUser

bearer_scheme = HTTPBearer(auto_error=False)


async def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Dict[str, Any]]:
    if credentials is None:
        return None
    try:
        return decode_token(credentials.credentials)
    except AuthenticationError:
        return None


async def get_current_user_optional(
    claims: Optional[Dict[str, Any]] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[CachedUser]:
    if claims is None:
        return None
    return await auth_service.resolve_user(db, claims)


async def require_current_user(
    user: Optional[CachedUser] = Depends(get_current_user_optional),
) -> CachedUser:
    if user is None:
        raise AuthenticationError()
    return user
