"""
StackQA Backend — User Service
===============================

What:  Profile page data (card, stats, the two content tabs), author cards
       for lists, and the self-service profile edit.
How:   User rows are read through the process-wide UserCache; counts and tab
       contents are queried fresh on every call.
Who:   /api/users routes, QuestionService and AnswerService (author cards),
       the session dependency (signed-in user).
"""

import logging
import re
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.exceptions import AuthenticationError, DatabaseError, NotFoundError, StackQAError
from stackqa.models.answer import Answer
from stackqa.models.question import Question
from stackqa.models.user import User
from stackqa.schemas.auth import SessionUser
from stackqa.schemas.common import AuthorSummary
from stackqa.schemas.user import (
    ProfileContentItem,
    ProfileContentResponse,
    UserProfileResponse,
    UserStats,
)
from stackqa.services.live import QUESTIONS_TOPIC, live_hub
from stackqa.services.user_cache import CachedUser, user_cache

logger = logging.getLogger(__name__)

PROFILE_AVATAR_SIZE = 128

_SIZED_AVATAR = re.compile(r"^(?P<base>https://picsum\.photos/seed/[^/]+)/\d+/\d+$")


def avatar_variant(avatar_url: str, size: int) -> str:
    """Resize a generated placeholder avatar URL; custom URLs are returned as-is."""
    match = _SIZED_AVATAR.match(avatar_url or "")
    if match is None:
        return avatar_url
    return f"{match.group('base')}/{size}/{size}"


def _plural(count: int, noun: str) -> str:
    return noun if count == 1 else f"{noun}s"


class UserService:
    """Read and edit user profiles."""

    async def _load_user(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[CachedUser]:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            return None
        return CachedUser.model_validate(user)

    async def get_cached_user(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> Optional[CachedUser]:
        """Cached snapshot of one user, or None if no such user exists."""
        async def loader(uid: uuid.UUID) -> Optional[CachedUser]:
            return await self._load_user(db, uid)

        return await user_cache.get_or_load(user_id, loader)

    async def _require_user(self, db: AsyncSession, user_id: uuid.UUID) -> CachedUser:
        try:
            user = await self.get_cached_user(db, user_id)
        except Exception as e:
            logger.error("Database error loading user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not load the user. Please try again.",
                context={"user_id": str(user_id)},
            )
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return user

    async def get_summaries(
        self, db: AsyncSession, user_ids: Iterable[uuid.UUID]
    ) -> Dict[uuid.UUID, AuthorSummary]:
        """
        Author cards for a batch of user IDs.

        Cache hits are served from memory; all misses are fetched with a
        single IN query and cached. Unknown IDs are absent from the result.
        """
        wanted = set(user_ids)
        found = user_cache.get_many(wanted)
        missing = wanted - found.keys()

        if missing:
            result = await db.execute(select(User).where(User.id.in_(missing)))
            for row in result.scalars().all():
                snapshot = CachedUser.model_validate(row)
                user_cache.put(snapshot)
                found[snapshot.id] = snapshot

        return {
            user_id: AuthorSummary(id=user.id, name=user.name, avatar_url=user.avatar_url)
            for user_id, user in found.items()
        }

    async def get_profile(self, db: AsyncSession, user_id: uuid.UUID) -> UserProfileResponse:
        """
        Profile card for /users/:userId.

        Stats are the number of questions asked, answers given, and the stored
        reputation. The avatar is the 128px variant of the user's image.

        Raises:
            NotFoundError: no user with this ID (→ 404)
            DatabaseError: query failed (→ 500)
        """
        user = await self._require_user(db, user_id)

        try:
            question_count = (
                await db.execute(
                    select(func.count(Question.id)).where(Question.author_id == user_id)
                )
            ).scalar() or 0
            answer_count = (
                await db.execute(
                    select(func.count(Answer.id)).where(Answer.author_id == user_id)
                )
            ).scalar() or 0
        except Exception as e:
            logger.error("Database error counting content of user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not load the profile. Please try again.",
                context={"user_id": str(user_id)},
            )

        return UserProfileResponse(
            id=user.id,
            name=user.name,
            avatar_url=avatar_variant(user.avatar_url, PROFILE_AVATAR_SIZE),
            created_at=user.created_at,
            member_since=user.created_at.strftime("%B %Y"),
            stats=UserStats(
                reputation=user.reputation,
                questions=question_count,
                answers=answer_count,
            ),
        )

    async def get_authored_questions(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> ProfileContentResponse:
        """Questions tab: the user's questions, newest first, with answer counts."""
        await self._require_user(db, user_id)

        try:
            result = await db.execute(
                select(Question)
                .where(Question.author_id == user_id)
                .order_by(Question.created_at.desc())
            )
            questions = list(result.scalars().all())
        except Exception as e:
            logger.error("Database error listing questions of user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not load the user's questions. Please try again.",
                context={"user_id": str(user_id)},
            )

        items = [
            ProfileContentItem(
                question_id=q.id,
                title=q.title,
                value=q.answer_count,
                label=_plural(q.answer_count, "answer"),
                date=q.created_at,
            )
            for q in questions
        ]
        return ProfileContentResponse(user_id=user_id, items=items, total_count=len(items))

    async def get_answered_questions(
        self, db: AsyncSession, user_id: uuid.UUID
    ) -> ProfileContentResponse:
        """
        Answers tab: each question the user answered, listed once.

        Ordered by the user's most recent answer. When they answered a
        question more than once, the row shows the most recent answer's votes
        and date.
        """
        await self._require_user(db, user_id)

        try:
            result = await db.execute(
                select(Answer.question_id, Answer.votes, Answer.created_at, Question.title)
                .join(Question, Question.id == Answer.question_id)
                .where(Answer.author_id == user_id)
                .order_by(Answer.created_at.desc())
            )
            rows = result.all()
        except Exception as e:
            logger.error("Database error listing answers of user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not load the user's answers. Please try again.",
                context={"user_id": str(user_id)},
            )

        seen = set()
        items: List[ProfileContentItem] = []
        for question_id, votes, answered_at, title in rows:
            if question_id in seen:
                continue
            seen.add(question_id)
            items.append(
                ProfileContentItem(
                    question_id=question_id,
                    title=title,
                    value=votes,
                    label=_plural(abs(votes), "vote"),
                    date=answered_at,
                )
            )
        return ProfileContentResponse(user_id=user_id, items=items, total_count=len(items))

    async def update_profile(
        self,
        db: AsyncSession,
        viewer: Optional[CachedUser],
        name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> SessionUser:
        """
        Edit the signed-in user's name and/or avatar.

        The cached snapshot is invalidated after the commit, so the next
        author card or session lookup reads the new values.
        """
        if viewer is None:
            raise AuthenticationError(message="Please log in to edit your profile.")

        changes = {}
        if name is not None:
            changes["name"] = name
        if avatar_url is not None:
            changes["avatar_url"] = str(avatar_url)

        if not changes:
            return SessionUser(**viewer.model_dump())

        try:
            result = await db.execute(
                update(User)
                .where(User.id == viewer.id)
                .values(**changes)
                .returning(User)
                .execution_options(synchronize_session=False)
            )
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundError(resource="user", resource_id=str(viewer.id))
            await db.commit()
        except StackQAError:
            raise
        except Exception as e:
            logger.error("Database error updating user %s: %s", viewer.id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update your profile. Please try again.",
                context={"user_id": str(viewer.id)},
            )

        user_cache.invalidate(viewer.id)
        logger.info("Profile updated for user %s (%s)", viewer.id, ", ".join(sorted(changes)))
        live_hub.publish(QUESTIONS_TOPIC)
        return SessionUser.model_validate(user)


user_service = UserService()
