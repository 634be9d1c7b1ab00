"""
StackQA Backend — User Profile Cache
=====================================

What:  Process-wide memoization of user profile snapshots keyed by user ID.
How:   cachetools.TTLCache bounded by size and age, plus explicit
       invalidation when a profile changes.
Who:   UserService (author cards, profile page) and AuthService (session user).
When:  Filled on first read of a user; entries leave on TTL expiry, LRU-style
       eviction at max size, or invalidate(user_id).

Policy:
    - Single writer path (get_or_load / put), many readers.
    - Missing users are never cached, so a user who registers a moment later
      is found on the next lookup.
    - Snapshots are immutable Pydantic models; callers cannot mutate a cached
      entry in place.
"""

import logging
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, Optional

from cachetools import TTLCache
from pydantic import BaseModel

from stackqa.config import settings

logger = logging.getLogger(__name__)


class CachedUser(BaseModel):
    """Immutable snapshot of the public parts of a User row."""
    id: uuid.UUID
    name: str
    email: str
    avatar_url: str
    created_at: datetime
    reputation: int

    model_config = {"from_attributes": True, "frozen": True}


UserLoader = Callable[[uuid.UUID], Awaitable[Optional[CachedUser]]]


class UserCache:
    """
    TTL + size bounded profile cache with explicit invalidation.

    Not shared across worker processes: each uvicorn worker holds its own
    copy, so an edit made through one worker reaches the others after at most
    `ttl` seconds.
    """

    def __init__(self, maxsize: int, ttl: float, timer: Callable[[], float] | None = None):
        kwargs = {"timer": timer} if timer is not None else {}
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, **kwargs)
        self.hits = 0
        self.misses = 0

    def __contains__(self, user_id: uuid.UUID) -> bool:
        return user_id in self._entries

    def get(self, user_id: uuid.UUID) -> Optional[CachedUser]:
        user = self._entries.get(user_id)
        if user is None:
            self.misses += 1
        else:
            self.hits += 1
        return user

    def get_many(self, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, CachedUser]:
        """Cached subset of `user_ids`; absent keys are simply not in the result."""
        found: Dict[uuid.UUID, CachedUser] = {}
        for user_id in user_ids:
            user = self.get(user_id)
            if user is not None:
                found[user_id] = user
        return found

    def put(self, user: CachedUser) -> None:
        self._entries[user.id] = user

    def invalidate(self, user_id: uuid.UUID) -> None:
        """Drop one entry, e.g. after the user edited their profile."""
        if self._entries.pop(user_id, None) is not None:
            logger.debug("User cache invalidated for %s", user_id)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_load(
        self, user_id: uuid.UUID, loader: UserLoader
    ) -> Optional[CachedUser]:
        """
        Return the cached snapshot, or call `loader` on a miss and cache its
        result. A None result (unknown user) is returned but not cached.
        """
        cached = self.get(user_id)
        if cached is not None:
            return cached

        loaded = await loader(user_id)
        if loaded is not None:
            self.put(loaded)
        return loaded


user_cache = UserCache(
    maxsize=settings.user_cache_max_size,
    ttl=settings.user_cache_ttl_seconds,
)
