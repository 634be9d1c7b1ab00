"""
StackQA Backend — User Profile Routes
======================================

What:  The /users/:userId page (profile card and its two tabs) and the
       signed-in user's profile edit.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.database import get_db_session
from stackqa.dependencies import require_current_user
from stackqa.schemas.auth import SessionUser
from stackqa.schemas.common import ErrorResponse
from stackqa.schemas.user import ProfileContentResponse, ProfileUpdate, UserProfileResponse
from stackqa.services.user_cache import CachedUser
from stackqa.services.user_service import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])

NOT_FOUND = {404: {"description": "User not found", "model": ErrorResponse}}


# Declared before /{user_id} routes so "me" is not parsed as an ID
@router.patch(
    "/me",
    response_model=SessionUser,
    responses={401: {"description": "Not signed in", "model": ErrorResponse}},
    summary="Edit your own name or avatar",
)
async def update_me(
    body: ProfileUpdate,
    viewer: CachedUser = Depends(require_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> SessionUser:
    return await user_service.update_profile(
        db,
        viewer,
        name=body.name,
        avatar_url=str(body.avatar_url) if body.avatar_url is not None else None,
    )


@router.get(
    "/{user_id}",
    response_model=UserProfileResponse,
    responses=NOT_FOUND,
    summary="Public profile with stats",
)
async def get_profile(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> UserProfileResponse:
    return await user_service.get_profile(db, user_id)


@router.get(
    "/{user_id}/questions",
    response_model=ProfileContentResponse,
    responses=NOT_FOUND,
    summary="Questions the user asked",
)
async def get_user_questions(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> ProfileContentResponse:
    return await user_service.get_authored_questions(db, user_id)


@router.get(
    "/{user_id}/answers",
    response_model=ProfileContentResponse,
    responses=NOT_FOUND,
    summary="Questions the user answered",
)
async def get_user_answers(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db_session),
) -> ProfileContentResponse:
    return await user_service.get_answered_questions(db, user_id)
