"""
StackQA Backend — Live Hub & Stream Tests
==========================================

What we test:
    ✅ Bursts of publishes coalesce into one pending signal
    ✅ Subscribers only hear their own topic
    ✅ Leaving the subscription removes it from the hub
    ✅ SSE stream: full snapshot on connect, again after a change, keep-alive
       while idle, teardown on close
    ✅ A stream whose subject disappears ends after one error event
    ✅ Live answers of an unknown question are a 404
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from pydantic import BaseModel

from stackqa.config import settings
from stackqa.exceptions import NotFoundError
from stackqa.routes.questions import live_event_stream
from stackqa.services.live import QUESTIONS_TOPIC, LiveQueryHub, answers_topic, live_hub


class Snapshot(BaseModel):
    n: int


class ConnectedRequest:
    """Stands in for a Starlette request whose client never disconnects."""

    async def is_disconnected(self) -> bool:
        return False


def counting_snapshot():
    calls = {"n": 0}

    async def snapshot() -> Snapshot:
        calls["n"] += 1
        return Snapshot(n=calls["n"])

    return snapshot


class TestLiveQueryHub:

    @pytest.mark.asyncio
    async def test_publishes_coalesce(self):
        hub = LiveQueryHub()
        async with hub.subscribe(QUESTIONS_TOPIC) as subscription:
            hub.publish(QUESTIONS_TOPIC)
            hub.publish(QUESTIONS_TOPIC)
            hub.publish(QUESTIONS_TOPIC)

            assert await subscription.changed(timeout=0.1) is True
            assert await subscription.changed(timeout=0.01) is False

    @pytest.mark.asyncio
    async def test_unrelated_topic_is_silent(self):
        hub = LiveQueryHub()
        question_id = uuid4()
        async with hub.subscribe(answers_topic(question_id)) as subscription:
            hub.publish(answers_topic(uuid4()), QUESTIONS_TOPIC)
            assert await subscription.changed(timeout=0.01) is False

            hub.publish(answers_topic(question_id))
            assert await subscription.changed(timeout=0.1) is True

    @pytest.mark.asyncio
    async def test_unsubscribe_on_exit(self):
        hub = LiveQueryHub()
        async with hub.subscribe(QUESTIONS_TOPIC):
            async with hub.subscribe(QUESTIONS_TOPIC):
                assert hub.topic_subscriber_count(QUESTIONS_TOPIC) == 2
            assert hub.subscriber_count == 1
        assert hub.subscriber_count == 0

        hub.publish(QUESTIONS_TOPIC)  # no subscribers: no error

    @pytest.mark.asyncio
    async def test_waiting_subscriber_is_woken(self):
        hub = LiveQueryHub()
        async with hub.subscribe(QUESTIONS_TOPIC) as subscription:
            waiter = asyncio.create_task(subscription.changed(timeout=1))
            await asyncio.sleep(0)
            hub.publish(QUESTIONS_TOPIC)
            assert await waiter is True


class TestLiveEventStream:

    @pytest.mark.asyncio
    async def test_snapshot_on_connect_and_after_change(self):
        topic = answers_topic(uuid4())
        stream = live_event_stream(ConnectedRequest(), topic, "questions", counting_snapshot())

        first = await stream.__anext__()
        assert first == 'event: questions\ndata: {"n":1}\n\n'
        assert live_hub.topic_subscriber_count(topic) == 1

        live_hub.publish(topic)
        second = await asyncio.wait_for(stream.__anext__(), timeout=1)
        assert second == 'event: questions\ndata: {"n":2}\n\n'

        await stream.aclose()
        assert live_hub.topic_subscriber_count(topic) == 0

    @pytest.mark.asyncio
    async def test_keepalive_while_idle(self, monkeypatch):
        monkeypatch.setattr(settings, "live_keepalive_seconds", 0.01)
        topic = answers_topic(uuid4())
        stream = live_event_stream(ConnectedRequest(), topic, "answers", counting_snapshot())

        await stream.__anext__()
        assert await asyncio.wait_for(stream.__anext__(), timeout=1) == ": keepalive\n\n"

        await stream.aclose()
        assert live_hub.topic_subscriber_count(topic) == 0

    @pytest.mark.asyncio
    async def test_missing_subject_ends_stream(self):
        topic = answers_topic(uuid4())

        async def snapshot():
            raise NotFoundError(resource="question", resource_id="gone")

        stream = live_event_stream(ConnectedRequest(), topic, "answers", snapshot)

        frame = await stream.__anext__()
        assert frame.startswith("event: error\n")
        assert "live_query_failed" in frame
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert live_hub.topic_subscriber_count(topic) == 0

    @pytest.mark.asyncio
    async def test_live_answers_of_unknown_question(self, test_client, mock_db_session):
        missing = MagicMock()
        missing.scalar_one_or_none.return_value = None
        mock_db_session.execute.return_value = missing

        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=mock_db_session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)

        with patch("stackqa.routes.questions.async_session_factory", factory):
            response = await test_client.get(f"/api/questions/{uuid4()}/answers/live")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
