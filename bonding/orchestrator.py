"""
SCAN ORCHESTRATOR

Drives the two-phase scanner pipeline.

ARCHITECTURE:
  Listing Source (ONE call)
          ↓
  Signal Computer (fast mode)
          ↓
  Opportunity Cache  ←── Refresh Scheduler (every 60s)
          ↓
  Filter / Sort  →  user selects a token
          ↓
  Enrichment Source (7 sub-fetches, concurrent, failure-isolated)
          ↓
  Signal Computer (full mode)
          ↓
  Per-address memo  →  spliced back into the held list

Every upstream failure degrades to absent data; nothing here raises to
the caller. Results are returned as values (EnrichResult), never pushed
through callbacks.
"""

import asyncio
import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from .base_source import EnrichmentSource, ListingSource, ReputationSource
from .cache import OpportunityCache
from .mintclub_source import is_zap_available
from .models import ScannedToken, TokenEnrichment
from .scheduler import RefreshScheduler
from .signals import compute_full, scan_listed

logger = logging.getLogger(__name__)

ONE_TOKEN = 10 ** 18

STATUS_OK = 'ok'
STATUS_PARTIAL = 'partial'
STATUS_FAILED = 'failed'


def estimate_amount(current_supply: int) -> int:
    """
    Reference trade size for buy/sell quotes.

    1 whole token for empty curves, otherwise 1% of supply capped at one
    whole token, never below 1 base unit.
    """
    if current_supply <= 0:
        return ONE_TOKEN
    if current_supply > 100:
        return min(current_supply // 100, ONE_TOKEN)
    return 1


@dataclass
class EnrichResult:
    """Outcome of enrich_and_select()."""
    address: str
    token: Optional[ScannedToken]
    enrichment: TokenEnrichment = field(default_factory=TokenEnrichment)
    status: str = STATUS_OK
    from_memo: bool = False
    stale: bool = False

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass
class _MemoEntry:
    token: ScannedToken
    enrichment: TokenEnrichment


async def _absent():
    return None


class ScanOrchestrator:
    """
    Two-phase scanner pipeline.

    Usage:
        orchestrator = ScanOrchestrator(source, source, config=get_scanner_config())
        tokens = await orchestrator.fast_load()
        result = await orchestrator.enrich_and_select(tokens[0])
    """

    def __init__(self,
                 listing_source: ListingSource,
                 enrichment_source: EnrichmentSource,
                 cache: OpportunityCache = None,
                 reputation_source: ReputationSource = None,
                 config: Dict = None,
                 clock: Callable[[], float] = None):
        """
        Initialize orchestrator.

        Args:
            listing_source: Phase 1 source
            enrichment_source: Phase 2 source
            cache: Opportunity cache (one is created from config if omitted)
            reputation_source: Optional creator profile lookup
            config: Scanner configuration dict
            clock: Time source in seconds, shared with the cache
        """
        self.config = config or {}
        self._clock = clock or time.time

        self.listing_source = listing_source
        self.enrichment_source = enrichment_source
        self.reputation_source = reputation_source
        self.cache = cache or OpportunityCache(self.config.get('cache', {}), clock=self._clock)
        self.scheduler = RefreshScheduler(self.config.get('scheduler', {}))

        self.listing_count = self.config.get('listing', {}).get('count', 200)

        # Session state
        self.tokens: List[ScannedToken] = []
        self.selected_address: Optional[str] = None
        self._memo: Dict[str, _MemoEntry] = {}
        self._refresh_task: Optional[asyncio.Task] = None

        # Stats
        self.stats = {
            'fast_loads': 0,
            'cache_hits': 0,
            'load_errors': 0,
            'enrichments': 0,
            'memo_hits': 0,
            'subfetch_failures': 0,
            'stale_results': 0,
        }

    # ================================================================
    # PHASE 1: FAST LOAD
    # ================================================================

    async def fast_load(self, force: bool = False) -> List[ScannedToken]:
        """
        Return the scored token list, fetching only when the cache is stale.

        Args:
            force: Skip the cache (e.g. right after a trade)

        Returns:
            Scanned tokens, newest first ([] if the listing is unavailable)
        """
        if not force:
            cached = self.cache.get()
            if cached:
                self.stats['cache_hits'] += 1
                self.tokens = cached
                return cached

        self.stats['fast_loads'] += 1
        try:
            listed = await self.listing_source.list_tokens(self.listing_count)
        except Exception as e:
            self.stats['load_errors'] += 1
            logger.error(f"[SCANNER] Listing failed: {e}")
            return []

        if not listed:
            logger.warning("[SCANNER] Listing returned no tokens, keeping current list")
            return []

        now = self._clock()
        scanned = [scan_listed(item, now=now) for item in listed]

        self.cache.set(scanned)
        self.tokens = scanned
        logger.info(f"[SCANNER] Fast load: {len(scanned)} tokens")
        return scanned

    async def refresh(self) -> List[ScannedToken]:
        """Forced reload (post-trade refresh)."""
        return await self.fast_load(force=True)

    # ================================================================
    # PHASE 2: LAZY ENRICH
    # ================================================================

    def _find_token(self, address: str) -> Optional[ScannedToken]:
        target = address.lower()
        for token in self.tokens:
            if token.detail.address.lower() == target:
                return token
        return None

    def get_selected(self) -> Optional[ScannedToken]:
        """Currently selected token (memo version if enriched)."""
        if not self.selected_address:
            return None
        memo = self._memo.get(self.selected_address.lower())
        if memo:
            return memo.token
        return self._find_token(self.selected_address)

    def get_memo(self, address: str) -> Optional[ScannedToken]:
        memo = self._memo.get(address.lower())
        return memo.token if memo else None

    async def _guarded(self, name: str, coro, failed: List[str]):
        try:
            return await coro
        except Exception as e:
            failed.append(name)
            self.stats['subfetch_failures'] += 1
            logger.warning(f"[SCANNER] Enrichment '{name}' failed: {e}")
            return None

    async def enrich_and_select(self, token: Union[ScannedToken, str],
                                with_profile: bool = False) -> EnrichResult:
        """
        Select a token and enrich it (once per address per session).

        Args:
            token: ScannedToken or token address
            with_profile: Also look up the creator's reputation profile

        Returns:
            EnrichResult (status 'failed' with token None for unknown addresses)
        """
        if isinstance(token, ScannedToken):
            base = token
        else:
            # Memo first: an enriched token may have left the listing window
            known = self._memo.get(token.lower())
            base = known.token if known else self._find_token(token)
        if base is None:
            logger.warning(f"[SCANNER] Unknown token {str(token)[:10]}...")
            return EnrichResult(address=str(token), token=None, status=STATUS_FAILED)

        addr = base.detail.address
        self.selected_address = addr

        memo = self._memo.get(addr.lower())
        if memo:
            self.stats['memo_hits'] += 1
            return EnrichResult(address=addr, token=memo.token, enrichment=memo.enrichment, from_memo=True)

        self.stats['enrichments'] += 1
        detail = base.detail
        supply = detail.current_supply
        amount = estimate_amount(supply)
        source = self.enrichment_source
        failed: List[str] = []

        fetches = {
            'steps': source.get_steps(addr),
            'price_change': source.get_24h_change(addr),
            'buy_quote': source.get_buy_quote(addr, amount),
            'sell_quote': source.get_sell_quote(addr, amount) if supply > 0 else _absent(),
            'metadata': source.get_metadata(addr),
            'creator_token_count': source.get_creator_token_count(detail.bond.creator),
            'royalties': source.get_royalties(addr),
        }
        results = await asyncio.gather(*(self._guarded(name, coro, failed) for name, coro in fetches.items()))
        values = dict(zip(fetches.keys(), results))

        royalties = values['royalties']
        bond = detail.bond
        if royalties:
            bond = dataclasses.replace(bond, mint_royalty=royalties.mint_royalty, burn_royalty=royalties.burn_royalty)

        enriched_detail = dataclasses.replace(
            detail,
            steps=values['steps'] or detail.steps,
            bond=bond,
        )
        signals = compute_full(
            enriched_detail,
            values['price_change'],
            values['buy_quote'],
            values['sell_quote'],
            now=self._clock(),
        )
        enriched = ScannedToken(detail=enriched_detail, signals=signals, price_change=values['price_change'])

        enrichment = TokenEnrichment(
            metadata=values['metadata'],
            creator_token_count=values['creator_token_count'] or 0,
            royalties=royalties,
            buy_quote=values['buy_quote'],
            sell_quote=values['sell_quote'],
            zap_available=is_zap_available(detail.reserve_symbol),
            failed=failed,
        )

        if with_profile and self.reputation_source is not None:
            enrichment.creator_profile = await self._guarded(
                'creator_profile',
                self.reputation_source.get_profile(detail.bond.creator, enrichment.creator_token_count),
                failed,
            )

        status = self._status(failed, len(fetches))

        if self.selected_address != addr:
            # Selection moved on while fetching: discard, leave memo/list/cache untouched
            self.stats['stale_results'] += 1
            logger.info(f"[SCANNER] Discarding enrichment for {addr[:10]}..., selection changed")
            return EnrichResult(address=addr, token=enriched, enrichment=enrichment, status=status, stale=True)

        self._memo[addr.lower()] = _MemoEntry(token=enriched, enrichment=enrichment)
        self._splice(enriched)

        return EnrichResult(
            address=addr,
            token=enriched,
            enrichment=enrichment,
            status=status,
        )

    @staticmethod
    def _status(failed: List[str], total: int) -> str:
        if not failed:
            return STATUS_OK
        if len(failed) >= total:
            return STATUS_FAILED
        return STATUS_PARTIAL

    def _splice(self, enriched: ScannedToken):
        """Replace the held/cached entry with the same address."""
        addr = enriched.detail.address
        self.tokens = [enriched if t.detail.address == addr else t for t in self.tokens]
        self.cache.replace_token(enriched)

    # ================================================================
    # PRICES
    # ================================================================

    async def get_current_price(self, symbol: str) -> Optional[float]:
        """
        Current USD rate for a held token symbol (prediction entry/exit price).

        Returns:
            USD price, or None if the symbol is unknown or unpriced
        """
        token = next((t for t in self.tokens if t.detail.symbol == symbol), None)
        if token is None:
            return None
        try:
            change = await self.enrichment_source.get_24h_change(token.detail.address)
        except Exception as e:
            logger.warning(f"[SCANNER] Price lookup for {symbol} failed: {e}")
            return None
        return change.current_usd_rate if change else None

    # ================================================================
    # LIFECYCLE
    # ================================================================

    def start(self) -> asyncio.Task:
        """Start the periodic refresh task."""
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(
                self.scheduler.run(self.fast_load),
                name="scanner-refresh",
            )
            logger.info("[SCANNER] Refresh task started")
        return self._refresh_task

    async def close(self):
        """Stop the refresh task and close all sources."""
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
            self._refresh_task = None

        closed = set()
        for source in (self.listing_source, self.enrichment_source, self.reputation_source):
            if source is not None and id(source) not in closed:
                closed.add(id(source))
                await source.close()
        logger.info("[SCANNER] Resources closed")

    def get_stats(self) -> Dict:
        """
        Get comprehensive statistics.

        Returns:
            Dict with all component stats
        """
        return {
            'pipeline': dict(self.stats),
            'memo_size': len(self._memo),
            'tokens_held': len(self.tokens),
            'cache': self.cache.get_stats(),
            'scheduler': self.scheduler.get_stats(),
        }
