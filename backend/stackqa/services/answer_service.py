"""
StackQA Backend — Answer Service
=================================

What:  Posting answers, listing a question's answers in display order, and
       moving the accepted-answer marker.
How:   Every mutation is a server-evaluated UPDATE/INSERT inside one
       transaction; the service commits, then signals the live hub so open
       answer streams re-query.
Who:   /api/questions/{id}/answers routes, the answers live stream, and
       QuestionService.get_question_detail.

Display order:
    accepted answer first, then votes descending, then oldest first.

Accept transition:
    ┌──────────────┐   ┌──────────────┐   ┌───────────────────┐   ┌────────┐
    │ lock question│──▶│ author check │──▶│ answer belongs to │──▶│ UPDATE │
    │ FOR UPDATE   │   │ (403)        │   │ question (404)    │   │ + commit│
    └──────────────┘   └──────────────┘   └───────────────────┘   └────────┘

    The UPDATE touches only the previously accepted answer and the target:
        is_accepted = (id = :target)
        WHERE question_id = :q AND (is_accepted OR id = :target)
    so the old mark is cleared and the new one set by a single statement, and
    a concurrent accept on the same question waits on the row lock.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.exceptions import (
    AuthenticationError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    StackQAError,
    ValidationError,
)
from stackqa.models.answer import Answer
from stackqa.models.question import Question
from stackqa.schemas.answer import AcceptResponse, AnswerListResponse, AnswerResponse
from stackqa.schemas.common import AuthorSummary
from stackqa.services.live import QUESTIONS_TOPIC, answers_topic, live_hub
from stackqa.services.sanitizer import has_visible_text, sanitize_rich_text
from stackqa.services.user_cache import CachedUser
from stackqa.services.user_service import user_service
from stackqa.services.vote_service import vote_service

logger = logging.getLogger(__name__)

DISPLAY_ORDER = (
    Answer.is_accepted.desc(),
    Answer.votes.desc(),
    Answer.created_at.asc(),
)


class AnswerService:
    """Answer list, posting, acceptance."""

    async def build_responses(
        self,
        db: AsyncSession,
        answers: Sequence[Answer],
        viewer: Optional[CachedUser],
    ) -> List[AnswerResponse]:
        """Attach author cards and the viewer's vote intents to answer rows."""
        authors = await user_service.get_summaries(db, {a.author_id for a in answers})
        intents = vote_service.get_intents(viewer, [a.id for a in answers])
        return [
            AnswerResponse(
                id=a.id,
                question_id=a.question_id,
                content=a.content,
                votes=a.votes,
                is_accepted=a.is_accepted,
                created_at=a.created_at,
                author=authors.get(a.author_id),
                viewer_intent=intents[a.id],
            )
            for a in answers
        ]

    async def fetch_display_list(
        self,
        db: AsyncSession,
        question_id: uuid.UUID,
        viewer: Optional[CachedUser],
    ) -> List[AnswerResponse]:
        result = await db.execute(
            select(Answer)
            .where(Answer.question_id == question_id)
            .order_by(*DISPLAY_ORDER)
            .execution_options(populate_existing=True)
        )
        answers = list(result.scalars().all())
        return await self.build_responses(db, answers, viewer)

    async def require_question(self, db: AsyncSession, question_id: uuid.UUID) -> None:
        """Raise NotFoundError unless the question exists."""
        try:
            result = await db.execute(select(Question.id).where(Question.id == question_id))
            found = result.scalar_one_or_none()
        except Exception as e:
            logger.error("Database error looking up question %s: %s", question_id, str(e))
            raise DatabaseError(
                message="Could not load the question. Please try again.",
                context={"question_id": str(question_id)},
            )
        if found is None:
            raise NotFoundError(resource="question", resource_id=str(question_id))

    async def list_answers(
        self,
        db: AsyncSession,
        question_id: uuid.UUID,
        viewer: Optional[CachedUser] = None,
    ) -> AnswerListResponse:
        """
        Answers of one question in display order.

        Raises:
            NotFoundError: the question does not exist (→ 404)
            DatabaseError: query failed (→ 500)
        """
        try:
            await self.require_question(db, question_id)
            answers = await self.fetch_display_list(db, question_id, viewer)
        except StackQAError:
            raise
        except Exception as e:
            logger.error("Database error listing answers of %s: %s", question_id, str(e))
            raise DatabaseError(
                message="Could not load the answers. Please try again.",
                context={"question_id": str(question_id)},
            )

        return AnswerListResponse(
            question_id=question_id, answers=answers, total_count=len(answers)
        )

    async def post_answer(
        self,
        db: AsyncSession,
        viewer: Optional[CachedUser],
        question_id: uuid.UUID,
        content: str,
    ) -> AnswerResponse:
        """
        Add an answer to a question.

        The answer starts with votes=0 and is_accepted=False. The question's
        answer_count is incremented in the same transaction; the UPDATE's
        RETURNING doubles as the existence check.

        Raises:
            AuthenticationError: anonymous caller (→ 401)
            ValidationError: nothing visible left after sanitizing (→ 400)
            NotFoundError: the question does not exist (→ 404)
            DatabaseError: insert failed (→ 500)
        """
        if viewer is None:
            raise AuthenticationError(message="Please log in to post an answer.")

        clean = sanitize_rich_text(content)
        if not has_visible_text(clean):
            raise ValidationError(message="Your answer cannot be empty.", field="content")

        answer = Answer(
            id=uuid.uuid4(),
            content=clean,
            author_id=viewer.id,
            question_id=question_id,
            votes=0,
            is_accepted=False,
            created_at=datetime.now(timezone.utc),
        )

        try:
            result = await db.execute(
                update(Question)
                .where(Question.id == question_id)
                .values(answer_count=Question.answer_count + 1)
                .returning(Question.id)
                .execution_options(synchronize_session=False)
            )
            if result.scalar_one_or_none() is None:
                raise NotFoundError(resource="question", resource_id=str(question_id))

            db.add(answer)
            await db.flush()
            await db.commit()
        except StackQAError:
            raise
        except Exception as e:
            logger.error(
                "Database error posting answer to %s: %s", question_id, str(e), exc_info=True
            )
            raise DatabaseError(
                message="Could not post your answer. Please try again.",
                context={"question_id": str(question_id), "error_type": type(e).__name__},
            )

        logger.info("Answer %s posted to question %s by %s", answer.id, question_id, viewer.id)
        live_hub.publish(answers_topic(question_id), QUESTIONS_TOPIC)

        return AnswerResponse(
            id=answer.id,
            question_id=question_id,
            content=answer.content,
            votes=0,
            is_accepted=False,
            created_at=answer.created_at,
            author=AuthorSummary(id=viewer.id, name=viewer.name, avatar_url=viewer.avatar_url),
        )

    async def accept_answer(
        self,
        db: AsyncSession,
        viewer: Optional[CachedUser],
        question_id: uuid.UUID,
        answer_id: uuid.UUID,
    ) -> AcceptResponse:
        """
        Make `answer_id` the accepted answer of `question_id`.

        Only the question's author may do this. Accepting the answer that is
        already accepted is a no-op in effect. Afterwards exactly one answer
        of the question is accepted.

        Raises:
            AuthenticationError: anonymous caller (→ 401)
            NotFoundError: unknown question, or answer not on this question (→ 404)
            ForbiddenError: caller is not the question author (→ 403)
            DatabaseError: store failure (→ 500); nothing changed
        """
        if viewer is None:
            raise AuthenticationError(message="Please log in to accept an answer.")

        try:
            result = await db.execute(
                select(Question).where(Question.id == question_id).with_for_update()
            )
            question = result.scalar_one_or_none()
            if question is None:
                raise NotFoundError(resource="question", resource_id=str(question_id))

            if question.author_id != viewer.id:
                raise ForbiddenError(
                    message="Only the question author can accept an answer.",
                    action="accept_answer",
                    context={"question_id": str(question_id), "viewer_id": str(viewer.id)},
                )

            result = await db.execute(
                select(Answer.id).where(
                    Answer.id == answer_id,
                    Answer.question_id == question_id,
                )
            )
            if result.scalar_one_or_none() is None:
                raise NotFoundError(resource="answer", resource_id=str(answer_id))

            await db.execute(
                update(Answer)
                .where(
                    Answer.question_id == question_id,
                    or_(Answer.is_accepted, Answer.id == answer_id),
                )
                .values(is_accepted=(Answer.id == answer_id))
                .execution_options(synchronize_session=False)
            )
            await db.commit()
        except StackQAError:
            raise
        except Exception as e:
            logger.error(
                "Database error accepting answer %s on %s: %s",
                answer_id, question_id, str(e), exc_info=True,
            )
            raise DatabaseError(
                message="Could not accept the answer. Please try again.",
                context={"question_id": str(question_id), "answer_id": str(answer_id)},
            )

        logger.info("Answer %s accepted on question %s", answer_id, question_id)
        live_hub.publish(answers_topic(question_id))

        try:
            answers = await self.fetch_display_list(db, question_id, viewer)
        except Exception as e:
            logger.error("Database error reloading answers of %s: %s", question_id, str(e))
            raise DatabaseError(
                message="The answer was accepted but the list could not be reloaded.",
                context={"question_id": str(question_id)},
            )

        return AcceptResponse(
            question_id=question_id,
            accepted_answer_id=answer_id,
            answers=answers,
        )


answer_service = AnswerService()
