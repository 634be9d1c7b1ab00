"""
StackQA Backend — Question and Answer Route Handlers
=====================================================

What:  The home list, the ask form, the question page and everything hanging
       off a question: its answers, posting an answer, accepting one, and the
       two live streams.
How:   Thin handlers around QuestionService/AnswerService. Live endpoints are
       Server-Sent Events streams fed by the LiveQueryHub.

Live streams:
    GET /api/questions/live                 event: questions  (QuestionListResponse)
    GET /api/questions/{id}/answers/live    event: answers    (AnswerListResponse)

    The full current result set is sent on connect and again after every
    committed change; there are no deltas. A comment line is sent every
    live_keepalive_seconds so proxies keep the connection open. Each push
    runs its query in a fresh short-lived session.
"""

import logging
import uuid
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.config import settings
from stackqa.database import async_session_factory, get_db_session
from stackqa.dependencies import get_current_user_optional
from stackqa.exceptions import NotFoundError, StackQAError
from stackqa.schemas.answer import (
    AcceptResponse,
    AnswerCreate,
    AnswerListResponse,
    AnswerResponse,
)
from stackqa.schemas.common import ErrorResponse
from stackqa.schemas.question import (
    QuestionCreate,
    QuestionDetailResponse,
    QuestionListResponse,
    QuestionResponse,
)
from stackqa.services.answer_service import answer_service
from stackqa.services.live import QUESTIONS_TOPIC, answers_topic, live_hub
from stackqa.services.question_service import question_service
from stackqa.services.user_cache import CachedUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["Questions"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def sse_event(event: str, payload: BaseModel) -> str:
    return f"event: {event}\ndata: {payload.model_dump_json()}\n\n"


async def live_event_stream(
    request: Request,
    topic: str,
    event: str,
    snapshot: Callable[[], Awaitable[BaseModel]],
) -> AsyncIterator[str]:
    """
    Yield `snapshot()` as an SSE event now and after every change on `topic`.

    The subscription is opened before the first snapshot so a change that
    lands while it is being built still triggers another push. A NotFoundError
    from the snapshot ends the stream after its error event: the topic will
    never publish again.
    """
    async with live_hub.subscribe(topic) as subscription:
        changed = True
        while True:
            if changed:
                try:
                    yield sse_event(event, await snapshot())
                except StackQAError as e:
                    logger.warning("Live %s push failed: %s", topic, e.message)
                    yield sse_event(
                        "error", ErrorResponse(error="live_query_failed", message=e.message)
                    )
                    if isinstance(e, NotFoundError):
                        break
            else:
                yield ": keepalive\n\n"

            if await request.is_disconnected():
                break
            changed = await subscription.changed(timeout=settings.live_keepalive_seconds)


@router.get(
    "",
    response_model=QuestionListResponse,
    responses={500: {"description": "Server error", "model": ErrorResponse}},
    summary="List questions, newest first",
)
async def list_questions(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100, description="Items per page"),
    cursor: str | None = Query(
        default=None,
        description="ISO 8601 created_at of the last item of the previous page",
    ),
    tag: str | None = Query(default=None, max_length=100, description="Only this tag"),
    db: AsyncSession = Depends(get_db_session),
) -> QuestionListResponse:
    result = await question_service.list_questions(db, limit=limit, cursor=cursor, tag=tag)
    response.headers["X-Total-Count"] = str(result.total_count)
    return result


@router.post(
    "",
    response_model=QuestionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid title, description or tags", "model": ErrorResponse},
        401: {"description": "Not signed in", "model": ErrorResponse},
    },
    summary="Ask a question",
)
async def create_question(
    body: QuestionCreate,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> QuestionResponse:
    return await question_service.create_question(
        db,
        viewer,
        title=body.title,
        description=body.description,
        tags=body.tags,
    )


@router.get(
    "/live",
    summary="Live question list (Server-Sent Events)",
    response_class=StreamingResponse,
)
async def live_questions(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    tag: str | None = Query(default=None, max_length=100),
) -> StreamingResponse:
    async def snapshot() -> QuestionListResponse:
        async with async_session_factory() as session:
            return await question_service.list_questions(session, limit=limit, tag=tag)

    return StreamingResponse(
        live_event_stream(request, QUESTIONS_TOPIC, "questions", snapshot),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get(
    "/{question_id}",
    response_model=QuestionDetailResponse,
    responses={404: {"description": "Question not found", "model": ErrorResponse}},
    summary="Question page (counts a view)",
)
async def get_question(
    question_id: uuid.UUID,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> QuestionDetailResponse:
    return await question_service.get_question_detail(db, question_id, viewer)


@router.get(
    "/{question_id}/answers",
    response_model=AnswerListResponse,
    responses={404: {"description": "Question not found", "model": ErrorResponse}},
    summary="Answers in display order",
)
async def list_answers(
    question_id: uuid.UUID,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> AnswerListResponse:
    return await answer_service.list_answers(db, question_id, viewer)


@router.get(
    "/{question_id}/answers/live",
    summary="Live answer list (Server-Sent Events)",
    responses={404: {"description": "Question not found", "model": ErrorResponse}},
    response_class=StreamingResponse,
)
async def live_answers(
    request: Request,
    question_id: uuid.UUID,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
) -> StreamingResponse:
    async with async_session_factory() as session:
        await answer_service.require_question(session, question_id)

    async def snapshot() -> AnswerListResponse:
        async with async_session_factory() as session:
            return await answer_service.list_answers(session, question_id, viewer)

    return StreamingResponse(
        live_event_stream(request, answers_topic(question_id), "answers", snapshot),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/{question_id}/answers",
    response_model=AnswerResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Empty answer", "model": ErrorResponse},
        401: {"description": "Not signed in", "model": ErrorResponse},
        404: {"description": "Question not found", "model": ErrorResponse},
    },
    summary="Post an answer",
)
async def post_answer(
    question_id: uuid.UUID,
    body: AnswerCreate,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> AnswerResponse:
    return await answer_service.post_answer(db, viewer, question_id, body.content)


@router.post(
    "/{question_id}/answers/{answer_id}/accept",
    response_model=AcceptResponse,
    responses={
        401: {"description": "Not signed in", "model": ErrorResponse},
        403: {"description": "Not the question author", "model": ErrorResponse},
        404: {"description": "Question or answer not found", "model": ErrorResponse},
    },
    summary="Accept an answer",
)
async def accept_answer(
    question_id: uuid.UUID,
    answer_id: uuid.UUID,
    viewer: Optional[CachedUser] = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db_session),
) -> AcceptResponse:
    return await answer_service.accept_answer(db, viewer, question_id, answer_id)
