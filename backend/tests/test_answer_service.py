"""
StackQA Backend — Answer Service Unit Tests
============================================

What we test:
    ✅ Accept by the author issues exactly one UPDATE and returns the new list
    ✅ Accept by anyone else is an explicit 403 and mutates nothing
    ✅ Accept of an answer from another question is a 404
    ✅ Posting validates, bumps answer_count and signals both live topics
    ✅ Listing uses display order and attaches the viewer's vote intents
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.sql.dml import Update

from stackqa.exceptions import (
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from stackqa.models.answer import Answer
from stackqa.models.enums import VoteIntent
from stackqa.services.answer_service import AnswerService
from stackqa.services.live import QUESTIONS_TOPIC, answers_topic


def scalar_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def rows_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


def update_statements(session):
    return [
        call.args[0]
        for call in session.execute.await_args_list
        if isinstance(call.args[0], Update)
    ]


@pytest.fixture
def patched_collaborators():
    with patch("stackqa.services.answer_service.user_service") as mock_users, \
         patch("stackqa.services.answer_service.live_hub") as mock_hub:
        mock_users.get_summaries = AsyncMock(return_value={})
        yield SimpleNamespace(users=mock_users, hub=mock_hub)


class TestAcceptAnswer:

    def setup_method(self):
        self.service = AnswerService()

    @pytest.mark.asyncio
    async def test_author_moves_acceptance_in_one_statement(
        self, mock_db_session, viewer, question_row, answer_factory, patched_collaborators
    ):
        old = answer_factory(question_row.id, uuid4(), votes=4, is_accepted=True)
        new = answer_factory(question_row.id, uuid4(), votes=1)
        after = [
            SimpleNamespace(**{**vars(new), "is_accepted": True}),
            SimpleNamespace(**{**vars(old), "is_accepted": False}),
        ]
        mock_db_session.execute.side_effect = [
            scalar_result(question_row),   # SELECT ... FOR UPDATE
            scalar_result(new.id),         # answer belongs to question
            MagicMock(),                   # UPDATE answers
            rows_result(after),            # reload in display order
        ]

        result = await self.service.accept_answer(
            mock_db_session, viewer, question_row.id, new.id
        )

        updates = update_statements(mock_db_session)
        assert len(updates) == 1
        assert "is_accepted" in str(updates[0])
        mock_db_session.commit.assert_awaited_once()

        assert result.accepted_answer_id == new.id
        accepted = [a for a in result.answers if a.is_accepted]
        assert [a.id for a in accepted] == [new.id]
        assert result.answers[0].id == new.id
        patched_collaborators.hub.publish.assert_called_once_with(answers_topic(question_row.id))

    @pytest.mark.asyncio
    async def test_question_is_locked_for_update(
        self, mock_db_session, viewer, question_row, answer_factory, patched_collaborators
    ):
        target = answer_factory(question_row.id, uuid4())
        mock_db_session.execute.side_effect = [
            scalar_result(question_row),
            scalar_result(target.id),
            MagicMock(),
            rows_result([target]),
        ]

        await self.service.accept_answer(mock_db_session, viewer, question_row.id, target.id)

        first_statement = mock_db_session.execute.await_args_list[0].args[0]
        assert "FOR UPDATE" in str(first_statement)

    @pytest.mark.asyncio
    async def test_non_author_is_forbidden(
        self, mock_db_session, other_user, question_row, patched_collaborators
    ):
        mock_db_session.execute.return_value = scalar_result(question_row)

        with pytest.raises(ForbiddenError) as exc_info:
            await self.service.accept_answer(
                mock_db_session, other_user, question_row.id, uuid4()
            )

        assert exc_info.value.action == "accept_answer"
        assert update_statements(mock_db_session) == []
        mock_db_session.commit.assert_not_awaited()
        patched_collaborators.hub.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_anonymous_is_rejected_before_store_access(self, mock_db_session):
        with pytest.raises(AuthenticationError):
            await self.service.accept_answer(mock_db_session, None, uuid4(), uuid4())
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_answer_of_other_question_is_not_found(
        self, mock_db_session, viewer, question_row, patched_collaborators
    ):
        mock_db_session.execute.side_effect = [
            scalar_result(question_row),
            scalar_result(None),
        ]

        with pytest.raises(NotFoundError):
            await self.service.accept_answer(mock_db_session, viewer, question_row.id, uuid4())

        assert update_statements(mock_db_session) == []

    @pytest.mark.asyncio
    async def test_missing_question_is_not_found(self, mock_db_session, viewer):
        mock_db_session.execute.return_value = scalar_result(None)

        with pytest.raises(NotFoundError):
            await self.service.accept_answer(mock_db_session, viewer, uuid4(), uuid4())


class TestPostAnswer:

    def setup_method(self):
        self.service = AnswerService()

    @pytest.mark.asyncio
    async def test_post_answer_success(
        self, mock_db_session, viewer, question_row, patched_collaborators
    ):
        mock_db_session.execute.return_value = scalar_result(question_row.id)

        result = await self.service.post_answer(
            mock_db_session,
            viewer,
            question_row.id,
            '<p>Use <strong>flexbox</strong>.</p><script>alert("x")</script>',
        )

        added = mock_db_session.add.call_args.args[0]
        assert isinstance(added, Answer)
        assert added.votes == 0
        assert added.is_accepted is False
        assert "<script" not in added.content
        assert "<strong>flexbox</strong>" in added.content

        assert result.votes == 0
        assert result.author.name == viewer.name
        assert "answer_count" in str(update_statements(mock_db_session)[0])
        mock_db_session.commit.assert_awaited_once()
        patched_collaborators.hub.publish.assert_called_once_with(
            answers_topic(question_row.id), QUESTIONS_TOPIC
        )

    @pytest.mark.asyncio
    async def test_blank_answer_is_rejected(self, mock_db_session, viewer):
        with pytest.raises(ValidationError):
            await self.service.post_answer(mock_db_session, viewer, uuid4(), "<p>  <br></p>")
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_question_adds_nothing(
        self, mock_db_session, viewer, patched_collaborators
    ):
        mock_db_session.execute.return_value = scalar_result(None)

        with pytest.raises(NotFoundError):
            await self.service.post_answer(mock_db_session, viewer, uuid4(), "<p>Hi</p>")

        mock_db_session.add.assert_not_called()
        patched_collaborators.hub.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_anonymous_cannot_post(self, mock_db_session):
        with pytest.raises(AuthenticationError):
            await self.service.post_answer(mock_db_session, None, uuid4(), "<p>Hi</p>")


class TestListAnswers:

    def setup_method(self):
        self.service = AnswerService()

    @pytest.mark.asyncio
    async def test_display_order_and_viewer_intents(
        self, mock_db_session, viewer, question_row, answer_factory, patched_collaborators
    ):
        accepted = answer_factory(question_row.id, uuid4(), votes=1, is_accepted=True)
        popular = answer_factory(question_row.id, uuid4(), votes=9)
        mock_db_session.execute.side_effect = [
            scalar_result(question_row.id),
            rows_result([accepted, popular]),
        ]

        with patch("stackqa.services.answer_service.vote_service") as mock_votes:
            mock_votes.get_intents.return_value = {
                accepted.id: VoteIntent.NONE,
                popular.id: VoteIntent.UP,
            }
            result = await self.service.list_answers(mock_db_session, question_row.id, viewer)

        list_query = str(mock_db_session.execute.await_args_list[1].args[0])
        assert (
            "ORDER BY answers.is_accepted DESC, answers.votes DESC, answers.created_at ASC"
            in list_query
        )
        assert [a.id for a in result.answers] == [accepted.id, popular.id]
        assert result.answers[1].viewer_intent == VoteIntent.UP
        assert result.total_count == 2

    @pytest.mark.asyncio
    async def test_unknown_question(self, mock_db_session):
        mock_db_session.execute.return_value = scalar_result(None)

        with pytest.raises(NotFoundError):
            await self.service.list_answers(mock_db_session, uuid4())
