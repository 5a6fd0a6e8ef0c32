"""
OPPORTUNITY CACHE

Holds the last fetched + scored token list with a time-to-live.

RPC SAVINGS: repeated UI refreshes inside the TTL never reach the
listing source. Expiry is whole-list and time-based, never per entry:
once the TTL has passed, get() returns [] and the caller must re-fetch.
"""

import threading
import time
from typing import Callable, Dict, List, Optional

from .models import ScannedToken


class OpportunityCache:
    """
    Whole-list TTL cache for scanned tokens.

    Features:
    - TTL-based expiration (whole list)
    - Injectable clock for tests
    - Thread-safe operations
    """

    def __init__(self, config: Dict = None, clock: Callable[[], float] = None):
        """
        Initialize cache.

        Args:
            config: Cache configuration dict ({'ttl_seconds': 60})
            clock: Time source in seconds (defaults to time.time)
        """
        self.config = config or {}
        self.ttl_seconds = self.config.get('ttl_seconds', 60)
        self._clock = clock or time.time

        self._tokens: List[ScannedToken] = []
        self._stamped_at: Optional[float] = None
        self._lock = threading.Lock()

        # Stats
        self.hits = 0
        self.misses = 0
        self.sets = 0

    def get(self) -> List[ScannedToken]:
        """
        Get the cached list if set and not expired.

        Returns:
            Cached tokens, or [] when stale/unset
        """
        with self._lock:
            if not self._is_fresh():
                self.misses += 1
                return []

            self.hits += 1
            return list(self._tokens)

    def set(self, tokens: List[ScannedToken]):
        """Replace the list and stamp it with the current time."""
        with self._lock:
            self._tokens = list(tokens)
            self._stamped_at = self._clock()
            self.sets += 1

    def replace_token(self, token: ScannedToken) -> bool:
        """
        Swap one entry by address without re-stamping the list.

        Returns:
            True if an entry was replaced
        """
        with self._lock:
            replaced = False
            for idx, cached in enumerate(self._tokens):
                if cached.detail.address == token.detail.address:
                    self._tokens[idx] = token
                    replaced = True
            return replaced

    def is_fresh(self) -> bool:
        with self._lock:
            return self._is_fresh()

    def age_seconds(self) -> Optional[float]:
        """Seconds since the last set(), None if never set."""
        with self._lock:
            if self._stamped_at is None:
                return None
            return self._clock() - self._stamped_at

    def clear(self):
        """Drop the cached list and reset stats."""
        with self._lock:
            self._tokens = []
            self._stamped_at = None
            self.hits = 0
            self.misses = 0
            self.sets = 0

    def _is_fresh(self) -> bool:
        if self._stamped_at is None:
            return False
        return self._clock() - self._stamped_at < self.ttl_seconds

    def get_stats(self) -> Dict:
        """
        Get cache statistics.

        Returns:
            Dict with cache stats
        """
        with self._lock:
            total_requests = self.hits + self.misses
            hit_rate = (self.hits / total_requests * 100) if total_requests > 0 else 0

            return {
                'size': len(self._tokens),
                'hits': self.hits,
                'misses': self.misses,
                'sets': self.sets,
                'hit_rate_pct': hit_rate,
                'ttl_seconds': self.ttl_seconds,
                'fresh': self._is_fresh(),
            }
