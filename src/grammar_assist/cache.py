"""
Suggestion caching

Completing against a large, ambiguous grammar can take long enough that an
editor asking for the same completion twice notices. The cache here keeps
only those slow results, for a limited time, and lives wherever the host
puts it: there is no module-level cache.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from grammar_assist.cancellation import CancelToken
    from grammar_assist.code_assist import CodeAssist, Suggestion

    type CacheKey = tuple[CodeAssist, str, int, str]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Entry:
    suggestions: tuple[Suggestion, ...]
    expires: float


class SuggestionCache:
    """In-memory cache of completion results."""

    def __init__(
        self,
        ttl: float = 60.0,
        threshold: float = 0.05,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            ttl: Seconds a stored result stays valid
            threshold: Results computed faster than this many seconds are
                not stored
            clock: Monotonic time source
        """
        self.ttl = ttl
        self.threshold = threshold
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(assist: CodeAssist, text: str, caret: int, rule_name: str) -> CacheKey:
        """
        Key for one request to ``assist``.

        The key holds the assist itself, so its grammar, lexer and suggester
        all take part and stay alive while entries for them exist.
        """
        return (assist, text, caret, rule_name)

    def get(self, key: CacheKey, /) -> list[Suggestion] | None:
        """
        Get the cached suggestions for ``key``.

        Returns:
            The suggestions if a live entry exists, None otherwise
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires <= self._clock():
                del self._entries[key]
                return None
            return list(entry.suggestions)

    def put(self, key: CacheKey, suggestions: list[Suggestion], elapsed: float, /) -> bool:
        """
        Store suggestions that took ``elapsed`` seconds to compute.

        Returns:
            Whether the result was slow enough to be stored
        """
        if elapsed < self.threshold:
            return False

        with self._lock:
            self._entries[key] = _Entry(tuple(suggestions), self._clock() + self.ttl)
        return True

    def purge(self) -> int:
        """Drop expired entries and return how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class CachedCodeAssist:
    """A :class:`CodeAssist` that answers repeated slow requests from a cache."""

    def __init__(self, assist: CodeAssist, cache: SuggestionCache | None = None) -> None:
        self.assist = assist
        self.cache = cache if cache is not None else SuggestionCache()

    def suggest(
        self,
        text: str,
        caret: int,
        rule_name: str,
        /,
        *,
        cancel_token: CancelToken | None = None,
    ) -> list[Suggestion]:
        key = self.cache.key(self.assist, text, caret, rule_name)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug('Cache hit for rule %r at %d of %r', rule_name, caret, text)
            return cached

        started = time.monotonic()
        suggestions = self.assist.suggest(
            text, caret, rule_name, cancel_token=cancel_token
        )
        self.cache.put(key, suggestions, time.monotonic() - started)
        return suggestions
