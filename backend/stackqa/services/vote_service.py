"""
StackQA Backend — Vote Service
===============================

What:  Applies upvote/downvote clicks to an answer's shared vote counter and
       tracks each viewer's current vote intent for that answer.
How:   A pure transition table decides the new intent and the counter delta;
       the delta is applied by the database as `votes = votes + :delta`, so
       concurrent voters never overwrite each other.
Who:   POST /api/answers/{answer_id}/vote; answer lists read intents to render
       the highlighted arrow.

Vote Intent Transitions:
    current   action     new    delta
    NONE      upvote     UP     +1
    NONE      downvote   DOWN   -1
    UP        upvote     NONE   -1      (toggle off)
    UP        downvote   DOWN   -2      (flip)
    DOWN      downvote   NONE   +1      (toggle off)
    DOWN      upvote     UP     +2      (flip)

Intent storage:
    Intents live in this process only (VoteIntentRegistry). They are not
    persisted: a restart, the TTL (token lifetime) or logout resets every
    intent of the viewer to NONE, after which a click is treated as a fresh
    vote. With several workers each worker keeps its own intents.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Optional, Tuple

from cachetools import TTLCache
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from stackqa.config import settings
from stackqa.exceptions import AuthenticationError, DatabaseError, NotFoundError, StackQAError
from stackqa.models.answer import Answer
from stackqa.models.enums import VoteAction, VoteIntent
from stackqa.models.question import Question
from stackqa.schemas.answer import VoteResponse
from stackqa.services.live import QUESTIONS_TOPIC, answers_topic, live_hub
from stackqa.services.user_cache import CachedUser

logger = logging.getLogger(__name__)

VOTE_INTENT_MAX_ENTRIES = 100_000

_TRANSITIONS: Dict[Tuple[VoteIntent, VoteAction], Tuple[VoteIntent, int]] = {
    (VoteIntent.NONE, VoteAction.UPVOTE): (VoteIntent.UP, 1),
    (VoteIntent.NONE, VoteAction.DOWNVOTE): (VoteIntent.DOWN, -1),
    (VoteIntent.UP, VoteAction.UPVOTE): (VoteIntent.NONE, -1),
    (VoteIntent.UP, VoteAction.DOWNVOTE): (VoteIntent.DOWN, -2),
    (VoteIntent.DOWN, VoteAction.DOWNVOTE): (VoteIntent.NONE, 1),
    (VoteIntent.DOWN, VoteAction.UPVOTE): (VoteIntent.UP, 2),
}


def transition(current: VoteIntent, action: VoteAction) -> Tuple[VoteIntent, int]:
    """Return (new_intent, delta) for one click."""
    return _TRANSITIONS[(VoteIntent(current), VoteAction(action))]


class _PairLock:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.holders = 0


class VoteIntentRegistry:
    """
    Per (viewer, answer) vote intent with TTL expiry.

    NONE is represented by absence, so the cache only holds active votes.
    lock() serializes clicks of one viewer on one answer: the second click is
    evaluated against the intent the first one left behind.
    """

    def __init__(self, maxsize: int, ttl: float):
        self._intents: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._locks: Dict[Tuple[uuid.UUID, uuid.UUID], _PairLock] = {}

    def get(self, viewer_id: uuid.UUID, answer_id: uuid.UUID) -> VoteIntent:
        return self._intents.get((viewer_id, answer_id), VoteIntent.NONE)

    def set(self, viewer_id: uuid.UUID, answer_id: uuid.UUID, intent: VoteIntent) -> None:
        key = (viewer_id, answer_id)
        if intent == VoteIntent.NONE:
            self._intents.pop(key, None)
        else:
            self._intents[key] = intent

    def forget_viewer(self, viewer_id: uuid.UUID) -> int:
        """Drop every intent of one viewer (session ended). Returns how many."""
        keys = [key for key in list(self._intents.keys()) if key[0] == viewer_id]
        for key in keys:
            self._intents.pop(key, None)
        return len(keys)

    def clear(self) -> None:
        self._intents.clear()

    @asynccontextmanager
    async def lock(self, viewer_id: uuid.UUID, answer_id: uuid.UUID) -> AsyncIterator[None]:
        key = (viewer_id, answer_id)
        pair = self._locks.get(key)
        if pair is None:
            pair = self._locks[key] = _PairLock()
        pair.holders += 1
        try:
            async with pair.lock:
                yield
        finally:
            pair.holders -= 1
            if pair.holders == 0:
                self._locks.pop(key, None)


class VoteService:
    """Vote transitions against the shared answer counter."""

    def __init__(self, registry: VoteIntentRegistry):
        self.registry = registry

    def get_intent(self, viewer: Optional[CachedUser], answer_id: uuid.UUID) -> VoteIntent:
        if viewer is None:
            return VoteIntent.NONE
        return self.registry.get(viewer.id, answer_id)

    def get_intents(
        self, viewer: Optional[CachedUser], answer_ids: Iterable[uuid.UUID]
    ) -> Dict[uuid.UUID, VoteIntent]:
        return {answer_id: self.get_intent(viewer, answer_id) for answer_id in answer_ids}

    async def cast_vote(
        self,
        db: AsyncSession,
        viewer: Optional[CachedUser],
        answer_id: uuid.UUID,
        action: VoteAction,
    ) -> VoteResponse:
        """
        Apply one vote click.

        What:    Moves the viewer's intent along the transition table and adds
                 the matching delta to the answer's counter (and the
                 question's vote_total) in one transaction.
        Who:     POST /api/answers/{answer_id}/vote.

        Failure behaviour:
            - Anonymous viewer  → AuthenticationError before anything is read
              or written.
            - Unknown answer    → NotFoundError, intent unchanged.
            - Store failure     → DatabaseError, intent unchanged.
            The intent is only stored after the commit succeeded.

        Returns:
            VoteResponse with the counter value read back from the UPDATE.
        """
        if viewer is None:
            raise AuthenticationError(
                message="Please log in to vote.",
                context={"answer_id": str(answer_id)},
            )

        async with self.registry.lock(viewer.id, answer_id):
            current = self.registry.get(viewer.id, answer_id)
            new_intent, delta = transition(current, action)

            try:
                votes, question_id = await self._increment_votes(db, answer_id, delta)
                await db.commit()
            except StackQAError:
                raise
            except Exception as e:
                logger.error(
                    "Vote on answer %s failed: %s", answer_id, str(e), exc_info=True
                )
                raise DatabaseError(
                    message="Could not record your vote. Please try again.",
                    context={"answer_id": str(answer_id), "error_type": type(e).__name__},
                )

            self.registry.set(viewer.id, answer_id, new_intent)

        logger.info(
            "Vote on answer %s by %s: %s -> %s (%+d, now %d)",
            answer_id, viewer.id, current, new_intent, delta, votes,
        )
        live_hub.publish(answers_topic(question_id), QUESTIONS_TOPIC)

        return VoteResponse(answer_id=answer_id, votes=votes, intent=new_intent, delta=delta)

    async def _increment_votes(
        self, db: AsyncSession, answer_id: uuid.UUID, delta: int
    ) -> Tuple[int, uuid.UUID]:
        """
        UPDATE answers SET votes = votes + :delta ... RETURNING votes, question_id
        followed by the matching vote_total increment on the question.
        """
        result = await db.execute(
            update(Answer)
            .where(Answer.id == answer_id)
            .values(votes=Answer.votes + delta)
            .returning(Answer.votes, Answer.question_id)
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(resource="answer", resource_id=str(answer_id))

        votes, question_id = row
        await db.execute(
            update(Question)
            .where(Question.id == question_id)
            .values(vote_total=Question.vote_total + delta)
            .execution_options(synchronize_session=False)
        )
        return votes, question_id


vote_intents = VoteIntentRegistry(
    maxsize=VOTE_INTENT_MAX_ENTRIES,
    ttl=settings.access_token_minutes * 60,
)

vote_service = VoteService(vote_intents)
