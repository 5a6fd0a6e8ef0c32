"""
BASE SOURCES - Abstract interfaces for bonding curve data

Defines what the orchestrator needs from the outside world:
- ListingSource: cheap newest-first window of tokens (ONE call)
- EnrichmentSource: per-token detail fetched on demand
- ReputationSource: creator profile lookup

Absent data (no price feed entry, no metadata) comes back as [] / None / 0.
A listing or enrichment upstream failure raises SourceError instead, so
the orchestrator can isolate it per call and report it in the enrichment
status. The reputation lookup is optional and degrades to None.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from .models import (
    BuyQuote,
    CreatorProfile,
    CurveStep,
    ListedToken,
    PriceChange,
    Royalties,
    SellQuote,
    TokenMetadata,
)


class SourceError(Exception):
    """An upstream RPC or HTTP call failed."""


class BaseSource(ABC):
    """Shared request bookkeeping for every source."""

    def __init__(self, config: Dict = None):
        self.config = config or {}
        self.last_request_time = None
        self.request_count = 0
        self.error_count = 0

    def _update_rate_limit(self):
        """Update internal request tracking."""
        self.last_request_time = datetime.now()
        self.request_count += 1

    def _record_error(self):
        self.error_count += 1

    async def close(self):
        """Release network resources (no-op by default)."""
        return None

    def get_stats(self) -> Dict:
        """
        Get source statistics.

        Returns:
            Dict with stats like request count, last request time, etc.
        """
        return {
            'request_count': self.request_count,
            'error_count': self.error_count,
            'last_request': self.last_request_time.isoformat() if self.last_request_time else None,
            'source': self.__class__.__name__,
        }


class ListingSource(BaseSource):

    @abstractmethod
    async def list_tokens(self, count: int) -> List[ListedToken]:
        """
        Fetch the newest `count` tokens, newest first.

        Resolves the total token count, windows the most recent entries
        and reverses the contract's oldest-first order.
        """
        pass


class EnrichmentSource(BaseSource):

    @abstractmethod
    async def get_steps(self, token: str) -> List[CurveStep]:
        """Ordered curve steps for a token."""
        pass

    @abstractmethod
    async def get_24h_change(self, token: str) -> Optional[PriceChange]:
        """24h USD price change, None if no price source matched."""
        pass

    @abstractmethod
    async def get_buy_quote(self, token: str, amount: int) -> Optional[BuyQuote]:
        """Reserve cost (+ royalty) to mint `amount` base units."""
        pass

    @abstractmethod
    async def get_sell_quote(self, token: str, amount: int) -> Optional[SellQuote]:
        """Reserve refund (+ royalty) for burning `amount` base units."""
        pass

    @abstractmethod
    async def get_metadata(self, token: str) -> Optional[TokenMetadata]:
        pass

    @abstractmethod
    async def get_creator_token_count(self, creator: str) -> int:
        pass

    @abstractmethod
    async def get_royalties(self, token: str) -> Optional[Royalties]:
        pass


class ReputationSource(BaseSource):

    @abstractmethod
    async def get_profile(self, address: str, token_count: int) -> Optional[CreatorProfile]:
        """Creator profile with rating, None when no identity is linked."""
        pass
