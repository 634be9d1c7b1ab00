"""
StackQA Backend — Live Query Hub
=================================

What:  In-process publish/subscribe that turns writes into "this result set
       changed" signals for live subscription streams.
How:   Each subscriber owns a coalescing asyncio.Queue (maxsize=1). publish()
       drops a marker into every subscriber queue of a topic; if one is
       already pending the new signal is folded into it. Subscribers react by
       re-running their query and pushing the full current result set, so
       coalescing loses nothing.
Who:   Services publish after committing; the SSE routes subscribe.

Topics:
    questions                 the home question list
    answers:<question_id>     the answer list of one question

Guarantees:
    - A subscriber sees every committed change that happened after it
      subscribed, possibly folded into a single push.
    - No ordering across topics.
    - Leaving the subscribe() context (client disconnect, view closed) removes
      the queue; writes never wait on subscribers.
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Set

logger = logging.getLogger(__name__)

QUESTIONS_TOPIC = "questions"

_CHANGED = object()


def answers_topic(question_id: uuid.UUID) -> str:
    return f"answers:{question_id}"


class Subscription:
    """Handle given to a subscriber; await `changed()` for the next signal."""

    def __init__(self, topic: str):
        self.topic = topic
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)

    def notify(self) -> None:
        try:
            self._queue.put_nowait(_CHANGED)
        except asyncio.QueueFull:
            pass  # a push is already pending; it will read the newest state

    async def changed(self, timeout: float | None = None) -> bool:
        """
        Wait for the next change signal.

        Returns False if `timeout` elapsed first (used for keep-alives).
        """
        try:
            await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


class LiveQueryHub:
    """Topic → subscriber registry for this process."""

    def __init__(self):
        self._subscribers: Dict[str, Set[Subscription]] = defaultdict(set)

    @property
    def subscriber_count(self) -> int:
        return sum(len(subs) for subs in self._subscribers.values())

    def topic_subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    @asynccontextmanager
    async def subscribe(self, topic: str) -> AsyncIterator[Subscription]:
        subscription = Subscription(topic)
        self._subscribers[topic].add(subscription)
        logger.debug("Live subscriber joined %s (%d open)", topic, self.subscriber_count)
        try:
            yield subscription
        finally:
            subs = self._subscribers.get(topic)
            if subs is not None:
                subs.discard(subscription)
                if not subs:
                    del self._subscribers[topic]
            logger.debug("Live subscriber left %s (%d open)", topic, self.subscriber_count)

    def publish(self, *topics: str) -> None:
        """Signal every subscriber of `topics`. Never blocks, never raises."""
        for topic in topics:
            for subscription in list(self._subscribers.get(topic, ())):
                subscription.notify()


live_hub = LiveQueryHub()
