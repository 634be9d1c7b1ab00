"""
StackQA Backend — User Cache Unit Tests
========================================

What we test:
    ✅ A miss calls the loader once, later reads are hits
    ✅ Unknown users are not cached
    ✅ invalidate() forces the next read to reload
    ✅ Entries expire after the TTL
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from conftest import make_user
from stackqa.services.user_cache import UserCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestUserCache:

    @pytest.mark.asyncio
    async def test_loader_called_once(self):
        cache = UserCache(maxsize=10, ttl=60)
        user = make_user("Alice")
        loader = AsyncMock(return_value=user)

        first = await cache.get_or_load(user.id, loader)
        second = await cache.get_or_load(user.id, loader)

        assert first == second == user
        loader.assert_awaited_once_with(user.id)
        assert (cache.hits, cache.misses) == (1, 1)

    @pytest.mark.asyncio
    async def test_unknown_user_not_cached(self):
        cache = UserCache(maxsize=10, ttl=60)
        loader = AsyncMock(return_value=None)
        user_id = uuid4()

        assert await cache.get_or_load(user_id, loader) is None
        assert await cache.get_or_load(user_id, loader) is None
        assert loader.await_count == 2
        assert user_id not in cache

    @pytest.mark.asyncio
    async def test_invalidate_forces_reload(self):
        cache = UserCache(maxsize=10, ttl=60)
        user = make_user("Alice")
        renamed = user.model_copy(update={"name": "Alicia"})
        loader = AsyncMock(side_effect=[user, renamed])

        await cache.get_or_load(user.id, loader)
        cache.invalidate(user.id)
        reloaded = await cache.get_or_load(user.id, loader)

        assert reloaded.name == "Alicia"

    def test_entries_expire(self):
        clock = FakeClock()
        cache = UserCache(maxsize=10, ttl=30, timer=clock)
        user = make_user("Alice")
        cache.put(user)

        clock.now = 29
        assert cache.get(user.id) == user
        clock.now = 31
        assert cache.get(user.id) is None

    def test_get_many_returns_only_cached(self):
        cache = UserCache(maxsize=10, ttl=60)
        alice, bob = make_user("Alice"), make_user("Bob")
        cache.put(alice)

        found = cache.get_many([alice.id, bob.id])

        assert found == {alice.id: alice}

    def test_snapshots_are_immutable(self):
        user = make_user("Alice")
        with pytest.raises(Exception):
            user.name = "Mallory"
