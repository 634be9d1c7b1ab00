"""
StackQA Backend — Vote Service Unit Tests
==========================================

What we test:
    ✅ Every row of the intent transition table
    ✅ Click sequences net out as expected (toggle off, flip)
    ✅ Anonymous vote is rejected before any state or store access
    ✅ Counter is applied as a server-side increment and read back
    ✅ Failed or missing-answer votes leave the intent unchanged
    ✅ Concurrent clicks by one viewer are serialized
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.sql.dml import Update

from stackqa.exceptions import AuthenticationError, DatabaseError, NotFoundError
from stackqa.models.enums import VoteAction, VoteIntent
from stackqa.services.live import QUESTIONS_TOPIC, answers_topic
from stackqa.services.vote_service import VoteIntentRegistry, VoteService, transition

UP, DOWN, NONE = VoteIntent.UP, VoteIntent.DOWN, VoteIntent.NONE
UPVOTE, DOWNVOTE = VoteAction.UPVOTE, VoteAction.DOWNVOTE


def make_service() -> VoteService:
    return VoteService(VoteIntentRegistry(maxsize=100, ttl=3600))


class TestTransition:

    @pytest.mark.parametrize(
        "current, action, expected",
        [
            (NONE, UPVOTE, (UP, 1)),
            (NONE, DOWNVOTE, (DOWN, -1)),
            (UP, UPVOTE, (NONE, -1)),
            (UP, DOWNVOTE, (DOWN, -2)),
            (DOWN, DOWNVOTE, (NONE, 1)),
            (DOWN, UPVOTE, (UP, 2)),
        ],
    )
    def test_table(self, current, action, expected):
        assert transition(current, action) == expected

    def test_accepts_wire_values(self):
        assert transition("none", "upvote") == (UP, 1)

    @pytest.mark.parametrize(
        "clicks, final_intent, net",
        [
            ([UPVOTE, UPVOTE], NONE, 0),
            ([DOWNVOTE, DOWNVOTE], NONE, 0),
            ([UPVOTE, DOWNVOTE], DOWN, -1),
            ([DOWNVOTE, UPVOTE], UP, 1),
            ([UPVOTE, DOWNVOTE, UPVOTE], UP, 1),
        ],
    )
    def test_sequences_net_out(self, clicks, final_intent, net):
        intent, total = NONE, 0
        for click in clicks:
            intent, delta = transition(intent, click)
            total += delta
        assert intent == final_intent
        assert total == net


class TestVoteIntentRegistry:

    def test_none_is_not_stored(self):
        registry = VoteIntentRegistry(maxsize=10, ttl=60)
        viewer_id, answer_id = uuid4(), uuid4()

        registry.set(viewer_id, answer_id, UP)
        registry.set(viewer_id, answer_id, NONE)

        assert registry.get(viewer_id, answer_id) == NONE
        assert len(registry._intents) == 0

    def test_forget_viewer_only_touches_that_viewer(self):
        registry = VoteIntentRegistry(maxsize=10, ttl=60)
        alice, bob, answer_id = uuid4(), uuid4(), uuid4()
        registry.set(alice, answer_id, UP)
        registry.set(alice, uuid4(), DOWN)
        registry.set(bob, answer_id, DOWN)

        assert registry.forget_viewer(alice) == 2
        assert registry.get(alice, answer_id) == NONE
        assert registry.get(bob, answer_id) == DOWN

    @pytest.mark.asyncio
    async def test_lock_entries_are_released(self):
        registry = VoteIntentRegistry(maxsize=10, ttl=60)
        async with registry.lock(uuid4(), uuid4()):
            assert len(registry._locks) == 1
        assert registry._locks == {}


class TestCastVote:

    @pytest.mark.asyncio
    async def test_anonymous_vote_rejected_without_side_effects(self, mock_db_session):
        service = make_service()
        answer_id = uuid4()

        with pytest.raises(AuthenticationError) as exc_info:
            await service.cast_vote(mock_db_session, None, answer_id, UPVOTE)

        assert exc_info.value.message == "Please log in to vote."
        mock_db_session.execute.assert_not_awaited()
        mock_db_session.commit.assert_not_awaited()
        assert len(service.registry._intents) == 0

    @pytest.mark.asyncio
    async def test_upvote_applies_server_side_increment(self, mock_db_session, viewer):
        service = make_service()
        answer_id, question_id = uuid4(), uuid4()

        answer_update = MagicMock()
        answer_update.one_or_none.return_value = (5, question_id)
        mock_db_session.execute.side_effect = [answer_update, MagicMock()]

        with patch("stackqa.services.vote_service.live_hub") as mock_hub:
            result = await service.cast_vote(mock_db_session, viewer, answer_id, UPVOTE)

        assert result.votes == 5
        assert result.intent == UP
        assert result.delta == 1
        assert service.get_intent(viewer, answer_id) == UP

        statements = [call.args[0] for call in mock_db_session.execute.await_args_list]
        assert len(statements) == 2
        assert all(isinstance(stmt, Update) for stmt in statements)
        assert "answers.votes +" in str(statements[0])
        assert "questions.vote_total +" in str(statements[1])

        mock_db_session.commit.assert_awaited_once()
        mock_hub.publish.assert_called_once_with(answers_topic(question_id), QUESTIONS_TOPIC)

    @pytest.mark.asyncio
    async def test_flip_from_up_to_down_applies_minus_two(self, mock_db_session, viewer):
        service = make_service()
        answer_id = uuid4()
        service.registry.set(viewer.id, answer_id, UP)

        with patch.object(
            service, "_increment_votes", AsyncMock(return_value=(-1, uuid4()))
        ) as mock_increment, patch("stackqa.services.vote_service.live_hub"):
            result = await service.cast_vote(mock_db_session, viewer, answer_id, DOWNVOTE)

        mock_increment.assert_awaited_once_with(mock_db_session, answer_id, -2)
        assert result.intent == DOWN
        assert result.votes == -1

    @pytest.mark.asyncio
    async def test_unknown_answer_keeps_intent(self, mock_db_session, viewer):
        service = make_service()
        answer_id = uuid4()
        missing = MagicMock()
        missing.one_or_none.return_value = None
        mock_db_session.execute.return_value = missing

        with pytest.raises(NotFoundError):
            await service.cast_vote(mock_db_session, viewer, answer_id, UPVOTE)

        assert service.get_intent(viewer, answer_id) == NONE
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_keeps_intent(self, mock_db_session, viewer):
        service = make_service()
        answer_id = uuid4()
        service.registry.set(viewer.id, answer_id, DOWN)
        mock_db_session.execute.side_effect = RuntimeError("connection reset")

        with pytest.raises(DatabaseError):
            await service.cast_vote(mock_db_session, viewer, answer_id, UPVOTE)

        assert service.get_intent(viewer, answer_id) == DOWN

    @pytest.mark.asyncio
    async def test_concurrent_clicks_are_serialized(self, mock_db_session, viewer):
        """Two rapid upvotes must toggle on then off, not both apply +1."""
        service = make_service()
        answer_id = uuid4()
        counter = {"votes": 0}
        deltas = []

        async def fake_increment(db, target, delta):
            await asyncio.sleep(0)
            deltas.append(delta)
            counter["votes"] += delta
            return counter["votes"], uuid4()

        with patch.object(service, "_increment_votes", side_effect=fake_increment), \
             patch("stackqa.services.vote_service.live_hub"):
            await asyncio.gather(
                service.cast_vote(mock_db_session, viewer, answer_id, UPVOTE),
                service.cast_vote(mock_db_session, viewer, answer_id, UPVOTE),
            )

        assert deltas == [1, -1]
        assert counter["votes"] == 0
        assert service.get_intent(viewer, answer_id) == NONE

    @pytest.mark.asyncio
    async def test_up_up_down_from_five(self, mock_db_session, viewer):
        service = make_service()
        answer_id = uuid4()
        counter = {"votes": 5}

        async def fake_increment(db, target, delta):
            counter["votes"] += delta
            return counter["votes"], uuid4()

        observed = []
        with patch.object(service, "_increment_votes", side_effect=fake_increment), \
             patch("stackqa.services.vote_service.live_hub"):
            for action in (UPVOTE, UPVOTE, DOWNVOTE):
                result = await service.cast_vote(mock_db_session, viewer, answer_id, action)
                observed.append((result.intent, result.votes))

        assert observed == [(UP, 6), (NONE, 5), (DOWN, 4)]

    def test_anonymous_intent_is_none(self):
        service = make_service()
        assert service.get_intent(None, uuid4()) == NONE
