"""
StackQA Backend — Vote Route
=============================

POST /api/answers/{answer_id}/vote with {"action": "upvote" | "downvote"}.

Anonymous callers reach the service, which answers 401 "Please log in to
vote." without touching the counter.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.database import get_db_session
from stackqa.dependencies import get_current_user_optional
from stackqa.schemas.answer import VoteRequest, VoteResponse
from stackqa.schemas.common import ErrorResponse
from stackqa.services.user_cache import CachedUser
from stackqa.services.vote_service import vote_service

router = APIRouter(prefix="/api/answers", tags=["Answers"])


@router.post(
    "/{answer_id}/vote",
    response_model=VoteResponse,
    responses={
        401: {"description": "Not signed in", "model": ErrorResponse},
        404: {"description": "Answer not found", "model": ErrorResponse},
    },
    summary="Upvote or downvote an answer",
)
async def vote(
    answer_id: uuid.UUID,
    body: VoteRequest,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> VoteResponse:
    return await vote_service.cast_vote(db, viewer, answer_id, body.action)
