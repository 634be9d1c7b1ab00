"""
StackQA Backend — Question Service (Business Logic Orchestrator)
=================================================================

What:  Asking questions, the paginated home list, the question page, and the
       best-effort view counter.
How:   Composes the sanitizer, UserService (author cards), AnswerService
       (answer list) and the live hub around async SQLAlchemy queries.
Who:   /api/questions routes and the question list live stream.

Question page flow (GET /api/questions/{id}):
    ┌─────────────┐    ┌──────────────┐    ┌──────────────┐
    │ record view │───▶│ load question│───▶│ load answers │
    │ (SAVEPOINT) │    │ + author     │    │ + intents    │
    └─────────────┘    └──────────────┘    └──────────────┘

    A failed view increment is logged and ignored; the page still renders.

Design Decision:
    The list reads answer_count and vote_total from the question row. Those
    counters are kept current by AnswerService and VoteService, so a page of
    n questions costs one query instead of 1 + n.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.config import settings
from stackqa.exceptions import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    StackQAError,
    ValidationError,
)
from stackqa.models.question import Question
from stackqa.schemas.common import AuthorSummary
from stackqa.schemas.question import (
    QuestionDetailResponse,
    QuestionListItem,
    QuestionListResponse,
    QuestionResponse,
)
from stackqa.services.answer_service import answer_service
from stackqa.services.live import QUESTIONS_TOPIC, live_hub
from stackqa.services.sanitizer import has_visible_text, sanitize_rich_text, to_plain_text
from stackqa.services.user_cache import CachedUser
from stackqa.services.user_service import user_service

logger = logging.getLogger(__name__)


def normalize_tags(
    tags: Iterable[str],
    max_tags: Optional[int] = None,
    max_length: Optional[int] = None,
) -> List[str]:
    """
    Trim, drop blanks, and de-duplicate tags, keeping first occurrences in order.

    Comparison is case-sensitive: "React" and "react" are different tags.

    Example:
        normalize_tags(["react", " react", "css"]) → ["react", "css"]

    Raises:
        ValidationError: no tag left, too many tags, or a tag that is too long
    """
    max_tags = max_tags if max_tags is not None else settings.max_tags_per_question
    max_length = max_length if max_length is not None else settings.max_tag_length

    unique: List[str] = []
    for raw in tags:
        tag = (raw or "").strip()
        if not tag:
            continue
        if len(tag) > max_length:
            raise ValidationError(
                message=f"Tags can be at most {max_length} characters long.",
                field="tags",
                context={"tag": tag[:50]},
            )
        if tag not in unique:
            unique.append(tag)

    if not unique:
        raise ValidationError(message="Add at least one tag.", field="tags")
    if len(unique) > max_tags:
        raise ValidationError(
            message=f"A question can have at most {max_tags} tags.",
            field="tags",
            context={"count": len(unique)},
        )
    return unique


CURSOR_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_cursor(created_at: datetime) -> str:
    """UTC with a Z suffix, so the cursor survives an unencoded query string."""
    return created_at.astimezone(timezone.utc).strftime(CURSOR_FORMAT)


def parse_cursor(cursor: Optional[str]) -> Optional[datetime]:
    """
    Inverse of format_cursor; also accepts any ISO 8601 timestamp.

    Raises:
        ValidationError: the cursor is not a timestamp
    """
    if not cursor:
        return None
    value = cursor.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            message="Invalid page cursor. Use the next_cursor value of the previous page.",
            field="cursor",
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class QuestionService:
    """
    Business logic for questions.

    Responsibilities:
        - create_question(): validate, sanitize, insert, signal the list
        - list_questions(): newest-first cursor pagination with tag filter
        - get_question_detail(): view increment + question + answers
        - record_view(): best-effort counter bump
    """

    async def create_question(
        self,
        db: AsyncSession,
        viewer: Optional[CachedUser],
        title: str,
        description: str,
        tags: Iterable[str],
    ) -> QuestionResponse:
        """
        Ask a new question.

        Validation happens before any store access: the title must be
        non-blank, the description must still show text after sanitizing, and
        the tags are normalized and counted.

        Raises:
            AuthenticationError: anonymous caller (→ 401)
            ValidationError: bad title, description or tags (→ 400)
            DatabaseError: insert failed (→ 500)
        """
        if viewer is None:
            raise AuthenticationError(message="Please log in to ask a question.")

        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError(message="Title is required.", field="title")
        if len(clean_title) > settings.max_title_length:
            raise ValidationError(
                message=f"Title can be at most {settings.max_title_length} characters long.",
                field="title",
            )

        clean_description = sanitize_rich_text(description)
        if not has_visible_text(clean_description):
            raise ValidationError(message="Description is required.", field="description")

        clean_tags = normalize_tags(tags)

        question = Question(
            id=uuid.uuid4(),
            title=clean_title,
            description=clean_description,
            tags=clean_tags,
            author_id=viewer.id,
            views=0,
            answer_count=0,
            vote_total=0,
            created_at=datetime.now(timezone.utc),
        )

        try:
            db.add(question)
            await db.flush()
            await db.commit()
        except Exception as e:
            logger.error("Database error creating question: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not post your question. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info(
            "Question %s created by %s with tags %s", question.id, viewer.id, clean_tags
        )
        live_hub.publish(QUESTIONS_TOPIC)

        return self._to_response(
            question,
            AuthorSummary(id=viewer.id, name=viewer.name, avatar_url=viewer.avatar_url),
        )

    async def list_questions(
        self,
        db: AsyncSession,
        limit: int = 20,
        cursor: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> QuestionListResponse:
        """
        Newest-first question list with cursor pagination.

        How:
            - Cursor is the UTC created_at of the last item of the previous
              page (format_cursor); the next page is WHERE created_at < :cursor.
              An unparseable cursor is a ValidationError (→ 400).
            - limit + 1 rows are fetched so has_more needs no extra query.
            - `tag` keeps only questions carrying that exact tag
              (array containment, served by the GIN index).

        Query plan (no tag):
            SELECT * FROM questions WHERE created_at < :cursor
            ORDER BY created_at DESC LIMIT :limit + 1
            → idx_questions_created_at
        """
        cursor_dt = parse_cursor(cursor)

        try:
            query = select(Question)
            count_query = select(func.count(Question.id))

            if tag:
                query = query.where(Question.tags.contains([tag]))
                count_query = count_query.where(Question.tags.contains([tag]))

            if cursor_dt is not None:
                query = query.where(Question.created_at < cursor_dt)

            query = query.order_by(Question.created_at.desc()).limit(limit + 1)

            result = await db.execute(query)
            questions = list(result.scalars().all())

            count_result = await db.execute(count_query)
            total_count = count_result.scalar() or 0

            has_more = len(questions) > limit
            if has_more:
                questions = questions[:limit]

            next_cursor = None
            if has_more and questions:
                next_cursor = format_cursor(questions[-1].created_at)

            authors = await user_service.get_summaries(db, {q.author_id for q in questions})

        except Exception as e:
            logger.error("Database error listing questions: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve questions. Please try again.",
                context={"error_type": type(e).__name__},
            )

        items = [
            QuestionListItem(
                id=q.id,
                title=q.title,
                excerpt=to_plain_text(q.description, limit=settings.excerpt_length),
                tags=list(q.tags or []),
                views=q.views,
                answer_count=q.answer_count,
                vote_total=q.vote_total,
                created_at=q.created_at,
                author=authors.get(q.author_id),
            )
            for q in questions
        ]

        return QuestionListResponse(
            questions=items,
            total_count=total_count,
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def record_view(self, db: AsyncSession, question_id: uuid.UUID) -> Optional[int]:
        """
        Increment the view counter by one.

        Runs in a SAVEPOINT so a failure only rolls back this statement.
        A store failure is logged at WARNING and swallowed (returns None); the
        caller renders the page regardless.

        Raises:
            NotFoundError: the increment matched no question (→ 404)
        """
        try:
            async with db.begin_nested():
                result = await db.execute(
                    update(Question)
                    .where(Question.id == question_id)
                    .values(views=Question.views + 1)
                    .returning(Question.views)
                    .execution_options(synchronize_session=False)
                )
                views = result.scalar_one_or_none()
        except Exception as e:
            logger.warning("Could not record view for question %s: %s", question_id, str(e))
            return None

        if views is None:
            raise NotFoundError(resource="question", resource_id=str(question_id))
        return views

    async def get_question_detail(
        self,
        db: AsyncSession,
        question_id: uuid.UUID,
        viewer: Optional[CachedUser] = None,
    ) -> QuestionDetailResponse:
        """
        Question page payload; counts one view.

        Raises:
            NotFoundError: no such question (→ 404)
            DatabaseError: loading failed (→ 500)
        """
        await self.record_view(db, question_id)

        try:
            result = await db.execute(
                select(Question)
                .where(Question.id == question_id)
                .execution_options(populate_existing=True)
            )
            question = result.scalar_one_or_none()
            if question is None:
                raise NotFoundError(resource="question", resource_id=str(question_id))

            authors = await user_service.get_summaries(db, [question.author_id])
            answers = await answer_service.fetch_display_list(db, question_id, viewer)
        except StackQAError:
            raise
        except Exception as e:
            logger.error("Database error fetching question %s: %s", question_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the question. Please try again.",
                context={"question_id": str(question_id)},
            )

        return QuestionDetailResponse(
            question=self._to_response(question, authors.get(question.author_id)),
            answers=answers,
        )

    @staticmethod
    def _to_response(question: Question, author: Optional[AuthorSummary]) -> QuestionResponse:
        return QuestionResponse(
            id=question.id,
            title=question.title,
            description=question.description,
            tags=list(question.tags or []),
            author_id=question.author_id,
            views=question.views,
            answer_count=question.answer_count,
            vote_total=question.vote_total,
            created_at=question.created_at,
            author=author,
        )


question_service = QuestionService()
