import unittest

from bonding.filters import ScanQuery, TokenFilter, apply_filters
from bonding.models import ListedToken
from bonding.signals import scan_listed

ONE = 10 ** 18
NOW = 1_700_000_000


def make_token(symbol, supply_pct, reserve_symbol='WETH', reserve_balance=0, name=None):
    listed = ListedToken(
        creator='0xCreator', token=f'0x{symbol.lower()}00', decimals=18, symbol=symbol,
        name=name or f'{symbol} Coin', created_at=NOW - 48 * 3600,
        current_supply=supply_pct * ONE, max_supply=100 * ONE, price_for_next_mint=1,
        reserve_token='0xReserve', reserve_decimals=18, reserve_symbol=reserve_symbol,
        reserve_name=reserve_symbol, reserve_balance=reserve_balance,
    )
    return scan_listed(listed, now=NOW)


def symbols(tokens):
    return [t.detail.symbol for t in tokens]


class TestTokenFilter(unittest.TestCase):

    def setUp(self):
        # Listing order (newest first)
        self.tokens = [
            make_token('DORM', 0),
            make_token('EARLY', 10, reserve_balance=5 * ONE),
            make_token('MID', 50, reserve_symbol='USDC'),
            make_token('LATE', 85, reserve_symbol='HUNT', reserve_balance=2 * ONE),
            make_token('GRAD', 95, reserve_symbol='DEGEN', name='Moon Shot'),
        ]

    def test_no_query_is_passthrough(self):
        self.assertEqual(symbols(apply_filters(self.tokens)), ['DORM', 'EARLY', 'MID', 'LATE', 'GRAD'])

    def test_search_is_case_insensitive(self):
        self.assertEqual(symbols(apply_filters(self.tokens, search='early')), ['EARLY'])
        self.assertEqual(symbols(apply_filters(self.tokens, search='moon')), ['GRAD'])
        self.assertEqual(symbols(apply_filters(self.tokens, search='0XMID')), ['MID'])

    def test_reserve_filter(self):
        self.assertEqual(symbols(apply_filters(self.tokens, reserve='USDC')), ['MID'])
        self.assertEqual(symbols(apply_filters(self.tokens, reserve='other')), ['LATE'])

    def test_curve_tags_are_ored(self):
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['early'])), ['DORM', 'EARLY'])
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['mid'])), ['MID'])
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['late'])), ['LATE', 'GRAD'])
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['graduating'])), ['GRAD'])
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['early', 'graduating'])),
                         ['DORM', 'EARLY', 'GRAD'])

    def test_activity_tags_are_anded(self):
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['dormant'])), ['DORM'])
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['early', 'active'])), ['EARLY'])
        self.assertEqual(symbols(apply_filters(self.tokens, tags=['deep'])), ['EARLY', 'LATE'])
        self.assertEqual(apply_filters(self.tokens, tags=['active', 'dormant']), [])

    def test_sorts(self):
        self.assertEqual(symbols(apply_filters(self.tokens, sort='curve_asc')),
                         ['DORM', 'EARLY', 'MID', 'LATE', 'GRAD'])
        self.assertEqual(symbols(apply_filters(self.tokens, sort='curve_desc')),
                         ['GRAD', 'LATE', 'MID', 'EARLY', 'DORM'])
        self.assertEqual(symbols(apply_filters(self.tokens, sort='reserve'))[:2], ['EARLY', 'LATE'])

    def test_reserve_sort_keeps_listing_order_on_ties(self):
        tokens = [
            make_token('FIRST', 30, reserve_balance=5 * ONE),
            make_token('SMALL', 40, reserve_balance=ONE),
            make_token('SECOND', 60, reserve_balance=5 * ONE),
        ]
        self.assertEqual(symbols(apply_filters(tokens, sort='reserve')), ['FIRST', 'SECOND', 'SMALL'])

    def test_score_sort_is_stable(self):
        # EARLY 75, DORM 60, GRAD 60, LATE 55, MID 50
        self.assertEqual(symbols(apply_filters(self.tokens, sort='score')),
                         ['EARLY', 'DORM', 'GRAD', 'LATE', 'MID'])

    def test_input_is_not_mutated(self):
        before = list(self.tokens)
        apply_filters(self.tokens, tags=['early'], sort='curve_desc')
        self.assertEqual(self.tokens, before)

    def test_unknown_inputs_raise(self):
        with self.assertRaises(ValueError):
            apply_filters(self.tokens, tags=['sideways'])
        with self.assertRaises(ValueError):
            apply_filters(self.tokens, sort='random')
        with self.assertRaises(ValueError):
            apply_filters(self.tokens, reserve='BTC')

    def test_query_toggle(self):
        query = ScanQuery()
        query.toggle('early').toggle('deep')
        self.assertEqual(query.tags, frozenset({'early', 'deep'}))
        query.toggle('early')
        self.assertEqual(query.tags, frozenset({'deep'}))
        with self.assertRaises(ValueError):
            query.toggle('nope')

    def test_stats(self):
        engine = TokenFilter()
        engine.apply(self.tokens, ScanQuery(tags=frozenset({'mid'})))
        self.assertEqual(engine.get_stats(), {'total_evaluated': 5, 'passed': 1})


if __name__ == '__main__':
    unittest.main()
