import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

import aiohttp

from bonding.base_source import EnrichmentSource, ListingSource, ReputationSource, SourceError
from bonding.models import (
    BuyQuote,
    CreatorProfile,
    CurveStep,
    ListedToken,
    PriceChange,
    Royalties,
    SellQuote,
    TokenMetadata,
)
from bonding.mintclub_source import MintClubSource
from bonding.orchestrator import ScanOrchestrator, estimate_amount
from bonding.signals import compute_fast

ONE = 10 ** 18
NOW = 1_700_000_000


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_listed(address, symbol, supply=10 * ONE, reserve_symbol='WETH', creator='0xCreator'):
    return ListedToken(
        creator=creator, token=address, decimals=18, symbol=symbol, name=symbol,
        created_at=NOW - 3600, current_supply=supply, max_supply=100 * ONE,
        price_for_next_mint=10, reserve_token='0xReserve', reserve_decimals=18,
        reserve_symbol=reserve_symbol, reserve_name=reserve_symbol, reserve_balance=2 * ONE,
    )


class FakeSource(ListingSource, EnrichmentSource):
    """In-memory listing + enrichment source with failure/delay hooks."""

    def __init__(self, listed):
        super().__init__({})
        self.listed = listed
        self.failing = set()
        self.blockers = {}
        self.delay = 0
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.close_calls = 0

    async def _enter(self, name, token=None):
        self.calls.append((name, token))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if token in self.blockers:
                await self.blockers[token].wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if name in self.failing:
                raise RuntimeError(f"{name} unavailable")
        finally:
            self.in_flight -= 1

    def count(self, name):
        return sum(1 for call, _ in self.calls if call == name)

    async def list_tokens(self, count):
        await self._enter('list_tokens')
        return list(self.listed[:count])

    async def get_steps(self, token):
        await self._enter('steps', token)
        return [CurveStep(50 * ONE, 10), CurveStep(100 * ONE, 15)]

    async def get_24h_change(self, token):
        await self._enter('price_change', token)
        return PriceChange(0.5, 0.4, 25.0)

    async def get_buy_quote(self, token, amount):
        await self._enter('buy_quote', token)
        return BuyQuote(cost=100, royalty=1)

    async def get_sell_quote(self, token, amount):
        await self._enter('sell_quote', token)
        return SellQuote(returns=95, royalty=1)

    async def get_metadata(self, token):
        await self._enter('metadata', token)
        return TokenMetadata(website='https://example.org')

    async def get_creator_token_count(self, creator):
        await self._enter('creator_token_count', creator)
        return 3

    async def get_royalties(self, token):
        await self._enter('royalties', token)
        return Royalties(mint_royalty=100, burn_royalty=200)

    async def close(self):
        self.close_calls += 1


class FakeReputation(ReputationSource):

    def __init__(self):
        super().__init__({})
        self.requests = []

    async def get_profile(self, address, token_count):
        self.requests.append((address, token_count))
        return CreatorProfile(
            fid=42, username='maker', display_name='Maker', pfp_url='', follower_count=500,
            verified_addresses=[address], token_count=token_count, rating=75, rating_label='Established',
        )


class TestEstimateAmount(unittest.TestCase):

    def test_estimate_amount(self):
        self.assertEqual(estimate_amount(0), ONE)
        self.assertEqual(estimate_amount(50), 1)
        self.assertEqual(estimate_amount(100), 1)
        self.assertEqual(estimate_amount(101), 1)
        self.assertEqual(estimate_amount(10_000), 100)
        self.assertEqual(estimate_amount(50 * ONE), ONE // 2)
        self.assertEqual(estimate_amount(1000 * ONE), ONE)


class TestFastLoad(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.source = FakeSource([make_listed('0xA', 'AAA'), make_listed('0xB', 'BBB')])
        self.orchestrator = ScanOrchestrator(self.source, self.source, clock=self.clock)

    async def test_fast_load_scores_listing(self):
        tokens = await self.orchestrator.fast_load()
        self.assertEqual([t.address for t in tokens], ['0xA', '0xB'])
        self.assertEqual(tokens[0].signals, compute_fast(self.source.listed[0], now=NOW))
        self.assertFalse(tokens[0].detail.is_enriched)

    async def test_cache_hit_skips_listing(self):
        await self.orchestrator.fast_load()
        self.clock.now += 30
        await self.orchestrator.fast_load()
        self.assertEqual(self.source.count('list_tokens'), 1)
        self.assertEqual(self.orchestrator.get_stats()['pipeline']['cache_hits'], 1)

    async def test_expired_cache_refetches(self):
        await self.orchestrator.fast_load()
        self.clock.now += 60
        await self.orchestrator.fast_load()
        self.assertEqual(self.source.count('list_tokens'), 2)

    async def test_force_bypasses_cache(self):
        await self.orchestrator.fast_load()
        await self.orchestrator.refresh()
        self.assertEqual(self.source.count('list_tokens'), 2)

    async def test_listing_failure_keeps_current_tokens(self):
        await self.orchestrator.fast_load()
        self.source.failing.add('list_tokens')
        self.assertEqual(await self.orchestrator.fast_load(force=True), [])
        self.assertEqual(len(self.orchestrator.tokens), 2)
        self.assertEqual(self.orchestrator.get_stats()['pipeline']['load_errors'], 1)

    async def test_overlapping_loads_last_writer_wins(self):
        gate = asyncio.Event()
        self.source.blockers[None] = gate
        first = asyncio.create_task(self.orchestrator.fast_load(force=True))
        await asyncio.sleep(0)

        del self.source.blockers[None]
        self.source.listed = [make_listed('0xC', 'CCC')]
        second = await self.orchestrator.fast_load(force=True)
        self.assertEqual([t.address for t in second], ['0xC'])

        self.source.listed = [make_listed('0xA', 'AAA'), make_listed('0xB', 'BBB')]
        gate.set()
        await first

        held = [t.address for t in self.orchestrator.tokens]
        self.assertEqual(held, ['0xA', '0xB'])
        self.assertEqual([t.address for t in self.orchestrator.cache.get()], held)
        self.assertEqual(self.orchestrator.get_stats()['pipeline']['fast_loads'], 2)

    async def test_listing_window(self):
        self.orchestrator.listing_count = 1
        tokens = await self.orchestrator.fast_load()
        self.assertEqual(len(tokens), 1)


class TestEnrichment(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.clock = FakeClock()
        self.source = FakeSource([
            make_listed('0xA', 'AAA'),
            make_listed('0xB', 'BBB'),
            make_listed('0xD', 'DORM', supply=0, reserve_symbol='USDC'),
        ])
        self.reputation = FakeReputation()
        self.orchestrator = ScanOrchestrator(self.source, self.source, reputation_source=self.reputation,
                                             clock=self.clock)
        self.tokens = await self.orchestrator.fast_load()

    async def test_enrich_success(self):
        result = await self.orchestrator.enrich_and_select(self.tokens[0])

        self.assertEqual(result.status, 'ok')
        self.assertTrue(result.ok)
        self.assertFalse(result.from_memo)
        self.assertFalse(result.stale)

        s = result.token.signals
        self.assertEqual(s.momentum, 25.0)
        self.assertEqual(s.step_jump, 50.0)
        self.assertEqual(s.spread, 0.05)
        self.assertTrue(s.is_hot)
        self.assertTrue(s.is_breakout)
        self.assertEqual(s.opportunity_score, 100)

        self.assertTrue(result.token.detail.is_enriched)
        self.assertEqual(result.token.detail.bond.mint_royalty, 100)
        self.assertEqual(result.enrichment.creator_token_count, 3)
        self.assertEqual(result.enrichment.metadata.website, 'https://example.org')
        self.assertTrue(result.enrichment.zap_available)
        self.assertIsNone(result.enrichment.creator_profile)

    async def test_enrichment_preserves_fast_fields(self):
        fast = self.tokens[0].signals
        result = await self.orchestrator.enrich_and_select(self.tokens[0])
        full = result.token.signals
        for name in ('curve_position', 'reserve_depth', 'age_hours', 'is_early',
                     'is_new', 'is_graduating', 'is_dormant'):
            self.assertEqual(getattr(full, name), getattr(fast, name), name)

    async def test_result_spliced_into_list_and_cache(self):
        await self.orchestrator.enrich_and_select('0xB')
        self.assertTrue(self.orchestrator.tokens[1].detail.is_enriched)
        self.assertFalse(self.orchestrator.tokens[0].detail.is_enriched)

        cached = self.orchestrator.cache.get()
        self.assertTrue(cached[1].detail.is_enriched)
        self.assertEqual([t.address for t in cached], ['0xA', '0xB', '0xD'])

    async def test_memo_prevents_refetch(self):
        await self.orchestrator.enrich_and_select(self.tokens[0])
        calls = len(self.source.calls)

        again = await self.orchestrator.enrich_and_select(self.tokens[0])
        self.assertTrue(again.from_memo)
        self.assertEqual(len(self.source.calls), calls)
        self.assertEqual(self.orchestrator.get_memo('0xA'), again.token)

    async def test_subfetch_failures_are_isolated(self):
        self.source.failing.update({'price_change', 'metadata'})
        result = await self.orchestrator.enrich_and_select(self.tokens[0])

        self.assertEqual(result.status, 'partial')
        self.assertEqual(sorted(result.enrichment.failed), ['metadata', 'price_change'])
        self.assertIsNone(result.token.signals.momentum)
        self.assertIsNone(result.enrichment.metadata)
        self.assertEqual(result.token.signals.step_jump, 50.0)
        self.assertEqual(result.enrichment.royalties, Royalties(100, 200))

    async def test_total_failure_still_presents_token(self):
        self.source.failing.update({'steps', 'price_change', 'buy_quote', 'sell_quote',
                                    'metadata', 'creator_token_count', 'royalties'})
        result = await self.orchestrator.enrich_and_select(self.tokens[0])

        self.assertEqual(result.status, 'failed')
        self.assertIsNotNone(result.token)
        self.assertEqual(result.token.signals, self.tokens[0].signals)
        self.assertEqual(result.enrichment.creator_token_count, 0)

    async def test_subfetches_run_concurrently(self):
        self.source.delay = 0.01
        await self.orchestrator.enrich_and_select(self.tokens[0])
        self.assertEqual(self.source.max_in_flight, 7)

    async def test_dormant_token_skips_sell_quote(self):
        result = await self.orchestrator.enrich_and_select('0xD')
        self.assertEqual(self.source.count('sell_quote'), 0)
        self.assertIsNone(result.enrichment.sell_quote)
        self.assertIsNone(result.token.signals.spread)
        self.assertFalse(result.enrichment.zap_available)
        self.assertEqual(result.status, 'ok')

    async def test_unknown_address(self):
        result = await self.orchestrator.enrich_and_select('0xNOPE')
        self.assertEqual(result.status, 'failed')
        self.assertIsNone(result.token)
        self.assertEqual(self.source.calls.count(('steps', '0xNOPE')), 0)

    async def test_stale_enrichment_does_not_steal_selection(self):
        gate = asyncio.Event()
        self.source.blockers['0xA'] = gate

        slow = asyncio.create_task(self.orchestrator.enrich_and_select('0xA'))
        await asyncio.sleep(0)
        fast = await self.orchestrator.enrich_and_select('0xB')
        self.assertFalse(fast.stale)

        gate.set()
        late = await slow

        self.assertTrue(late.stale)
        self.assertEqual(self.orchestrator.selected_address, '0xB')
        self.assertEqual(self.orchestrator.get_selected().address, '0xB')
        self.assertEqual(self.orchestrator.get_stats()['pipeline']['stale_results'], 1)

        # late result is discarded: no memo entry, held list and cache untouched
        self.assertIsNone(self.orchestrator.get_memo('0xA'))
        self.assertFalse(self.orchestrator.tokens[0].detail.is_enriched)
        self.assertFalse(self.orchestrator.cache.get()[0].detail.is_enriched)
        self.assertTrue(self.orchestrator.tokens[1].detail.is_enriched)

        again = await self.orchestrator.enrich_and_select('0xA')
        self.assertFalse(again.from_memo)
        self.assertFalse(again.stale)
        self.assertIsNotNone(self.orchestrator.get_memo('0xA'))

    async def test_memo_outlives_listing_window(self):
        await self.orchestrator.enrich_and_select('0xA')
        self.source.listed = [make_listed('0xB', 'BBB')]
        await self.orchestrator.refresh()
        calls = len(self.source.calls)

        result = await self.orchestrator.enrich_and_select('0xa')
        self.assertTrue(result.from_memo)
        self.assertEqual(result.status, 'ok')
        self.assertEqual(result.token.address, '0xA')
        self.assertEqual(self.orchestrator.selected_address, '0xA')
        self.assertEqual(self.orchestrator.get_selected().address, '0xA')
        self.assertEqual(len(self.source.calls), calls)

    async def test_creator_profile(self):
        result = await self.orchestrator.enrich_and_select(self.tokens[0], with_profile=True)
        self.assertEqual(result.enrichment.creator_profile.rating, 75)
        self.assertEqual(self.reputation.requests, [('0xCreator', 3)])

    async def test_current_price(self):
        self.assertEqual(await self.orchestrator.get_current_price('BBB'), 0.5)
        self.assertIsNone(await self.orchestrator.get_current_price('ZZZ'))
        self.source.failing.add('price_change')
        self.assertIsNone(await self.orchestrator.get_current_price('BBB'))


TOKEN = '0x' + 'ab' * 20
CREATOR = '0x' + 'cd' * 20
BOND_CALLS = ('getSteps', 'getDetail', 'getReserveForToken', 'getRefundForTokens', 'getTokensByCreator')


class _Response:

    def __init__(self, status, error=None):
        self.status = status
        self.error = error

    async def __aenter__(self):
        if self.error:
            raise self.error
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self, content_type=None):
        return {}


class FakeSession:
    closed = False

    def __init__(self, status=200, error=None):
        self.status = status
        self.error = error

    def get(self, url, params=None, timeout=None):
        return _Response(self.status, self.error)


class TestMintClubFailures(unittest.IsolatedAsyncioTestCase):

    def make_source(self, session):
        source = MintClubSource({}, w3=MagicMock())
        source._get_session = AsyncMock(return_value=session)
        return source

    async def test_upstream_errors_raise(self):
        source = self.make_source(FakeSession(error=aiohttp.ClientError('connection refused')))
        source.bond.functions.getSteps.return_value.call.side_effect = RuntimeError('rpc down')

        with self.assertRaises(SourceError):
            await source.get_steps(TOKEN)
        with self.assertRaises(SourceError):
            await source.get_metadata(TOKEN)
        self.assertEqual(source.get_stats()['error_count'], 2)

    async def test_http_status_handling(self):
        self.assertIsNone(await self.make_source(FakeSession(status=404)).get_metadata(TOKEN))
        with self.assertRaises(SourceError):
            await self.make_source(FakeSession(status=500)).get_metadata(TOKEN)

    async def test_failures_reach_enrichment_status(self):
        source = self.make_source(FakeSession(error=aiohttp.ClientError('connection refused')))
        for name in BOND_CALLS:
            getattr(source.bond.functions, name).return_value.call.side_effect = RuntimeError('rpc down')

        listing = FakeSource([make_listed(TOKEN, 'AAA', creator=CREATOR)])
        orchestrator = ScanOrchestrator(listing, source, clock=FakeClock())
        await orchestrator.fast_load()
        result = await orchestrator.enrich_and_select(TOKEN)

        self.assertEqual(result.status, 'failed')
        self.assertEqual(sorted(result.enrichment.failed), [
            'buy_quote', 'creator_token_count', 'metadata', 'price_change',
            'royalties', 'sell_quote', 'steps',
        ])
        self.assertIsNotNone(result.token)
        self.assertEqual(orchestrator.get_stats()['pipeline']['subfetch_failures'], 7)


class TestLifecycle(unittest.IsolatedAsyncioTestCase):

    async def test_start_and_close(self):
        source = FakeSource([make_listed('0xA', 'AAA')])
        reputation = FakeReputation()
        orchestrator = ScanOrchestrator(
            source, source, reputation_source=reputation,
            config={'scheduler': {'refresh_interval_seconds': 3600}},
        )

        task = orchestrator.start()
        self.assertIs(orchestrator.start(), task)
        await asyncio.sleep(0.01)
        self.assertEqual(source.count('list_tokens'), 1)

        await orchestrator.close()
        self.assertTrue(task.done())
        self.assertEqual(source.close_calls, 1)
        self.assertEqual(orchestrator.get_stats()['scheduler']['scans_performed'], 1)


if __name__ == '__main__':
    unittest.main()
