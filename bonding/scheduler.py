"""
REFRESH SCHEDULER

Periodic fast-load driver. Runs next to user-triggered refreshes; both
hit the same cache and the last write wins, so no mutual exclusion.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Fixed-interval scheduler for the listing refresh.

    Features:
    - Fixed refresh interval (default 60s)
    - Error backoff instead of crashing the loop
    - Scan statistics
    """

    def __init__(self, config: Dict = None):
        """
        Initialize scheduler.

        Args:
            config: Scheduler configuration dict
        """
        self.config = config or {}
        self.refresh_interval = self.config.get('refresh_interval_seconds', 60)
        self.error_backoff = self.config.get('error_backoff_seconds', 30)

        # Stats
        self.scans_performed = 0
        self.scan_errors = 0
        self.tokens_seen = 0
        self.last_scan_time: Optional[datetime] = None

    async def run(self, refresh_callback: Callable[[], Awaitable[List]], max_runs: int = None):
        """
        Call refresh_callback every refresh_interval seconds.

        Args:
            refresh_callback: Async function returning the refreshed list
            max_runs: Stop after this many iterations (None = forever)
        """
        logger.info(f"[SCHEDULER] Refresh task started (every {self.refresh_interval}s)")
        runs = 0

        while max_runs is None or runs < max_runs:
            runs += 1
            try:
                scan_start = datetime.now()
                tokens = await refresh_callback()

                self.scans_performed += 1
                self.last_scan_time = scan_start
                self.tokens_seen += len(tokens) if tokens else 0

                logger.info(f"[SCHEDULER] Refresh complete: {len(tokens) if tokens else 0} tokens, "
                            f"next in {self.refresh_interval}s")
                await asyncio.sleep(self.refresh_interval)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.scan_errors += 1
                logger.error(f"[SCHEDULER] Refresh error: {e}")
                await asyncio.sleep(self.error_backoff)

    def get_stats(self) -> Dict:
        """
        Get scheduler statistics.

        Returns:
            Dict with scheduler stats
        """
        return {
            'scans_performed': self.scans_performed,
            'scan_errors': self.scan_errors,
            'tokens_seen': self.tokens_seen,
            'last_scan_time': self.last_scan_time.isoformat() if self.last_scan_time else None,
            'interval': f"{self.refresh_interval}s",
        }
