"""
Per-connection cache of user summaries.

Conversation views resolve message authors through a UserCache: ids that
are not cached (or expired) are collected and fetched in one batched call,
then merged. Entries expire after TTL_SECONDS and the least recently used
entries are evicted beyond MAX_ENTRIES.

The fetch function is injectable; by default it is
UserService.get_cached_users, which sits on the shared Django cache.

Usage:
    cache = UserCache()
    users = cache.resolve([message["author_id"] for message in rows])
    # {"<user id>": {"id": ..., "username": ..., ...}}
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable

from realtime.constants import USER_CACHE_CONFIG

logger = logging.getLogger(__name__)

FetchMany = Callable[[list[str]], Iterable[dict]]


def fetch_user_summaries(user_ids: list[str]) -> list[dict]:
    from authentication.services import UserService

    result = UserService.get_cached_users(user_ids)
    if not result.success:
        logger.warning(f"User lookup failed for {len(user_ids)} ids: {result.error}")
        return []
    return result.data


class UserCache:
    """
    TTL + LRU cache of user summaries keyed by user id (str).

    Args:
        fetch_many: Called with a list of missing ids, returns summaries
            carrying an "id" key
        ttl_seconds: Lifetime of an entry
        max_entries: Size bound; least recently used entries go first
        clock: Monotonic time source (seconds)
    """

    def __init__(
        self,
        fetch_many: FetchMany | None = None,
        ttl_seconds: float = USER_CACHE_CONFIG.TTL_SECONDS,
        max_entries: int = USER_CACHE_CONFIG.MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch_many = fetch_many or fetch_user_summaries
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, dict]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id) -> bool:
        return self.get(user_id) is not None

    def get(self, user_id) -> dict | None:
        key = str(user_id)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, summary = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return summary

    def put(self, summary: dict) -> None:
        key = str(summary["id"])
        self._entries[key] = (self._clock() + self._ttl, summary)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, user_id) -> None:
        self._entries.pop(str(user_id), None)

    def clear(self) -> None:
        self._entries.clear()

    def missing(self, user_ids: Iterable) -> list[str]:
        """Distinct ids, in first-seen order, that are not cached."""
        ids = dict.fromkeys(str(user_id) for user_id in user_ids if user_id)
        return [user_id for user_id in ids if self.get(user_id) is None]

    def resolve(self, user_ids: Iterable) -> dict[str, dict]:
        """
        Summaries for every id that exists, fetching all misses at once.

        Returns:
            {user id: summary}; unknown ids are absent
        """
        ids = list(dict.fromkeys(str(user_id) for user_id in user_ids if user_id))
        missing = self.missing(ids)
        if missing:
            for summary in self._fetch_many(missing):
                self.put(summary)

        resolved = {}
        for user_id in ids:
            summary = self.get(user_id)
            if summary is not None:
                resolved[user_id] = summary
        return resolved
