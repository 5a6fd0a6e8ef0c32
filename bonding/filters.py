"""
SCANNER FILTERS & SORTING

Search, reserve chip, tag chips and sort over the scored token list.

Tag semantics:
- Curve-stage tags (early/mid/late/graduating) are OR'd together;
  with none active every token passes the curve stage.
- Liquidity/activity tags (active/deep/dormant) are AND'd with the
  curve-stage result and with each other.

Sorting never reorders ties ("newest" trusts the listing order).
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List

from scanner_config import SCANNER_CONFIG

from .models import ScannedToken

CURVE_TAGS = frozenset({'early', 'mid', 'late', 'graduating'})
ACTIVITY_TAGS = frozenset({'active', 'deep', 'dormant'})
ALL_TAGS = CURVE_TAGS | ACTIVITY_TAGS

SORT_KEYS = ('newest', 'score', 'curve_asc', 'curve_desc', 'reserve')
RESERVE_FILTERS = ('all', 'WETH', 'USDC', 'DEGEN', 'member', 'other')


@dataclass
class ScanQuery:
    """Current chip/search state of the scanner list."""
    search: str = ''
    reserve: str = 'all'
    tags: FrozenSet[str] = field(default_factory=frozenset)
    sort: str = 'newest'

    def toggle(self, tag: str) -> 'ScanQuery':
        """Flip one tag chip on/off."""
        if tag not in ALL_TAGS:
            raise ValueError(f"Unknown filter tag: {tag}")
        tags = set(self.tags)
        if tag in tags:
            tags.remove(tag)
        else:
            tags.add(tag)
        self.tags = frozenset(tags)
        return self


class TokenFilter:
    """
    Filter/sort engine for ScannedToken lists.

    apply() never mutates its input list or the tokens in it.
    """

    def __init__(self, config: Dict = None):
        self.config = config or {}
        signals = self.config.get('signals', SCANNER_CONFIG['signals'])
        self.deep_reserve_threshold = signals.get('deep_reserve_threshold', 10 ** 18)
        self.known_reserves = list(self.config.get('reserve_filter_symbols',
                                                   SCANNER_CONFIG['reserve_filter_symbols']))

        # Stats
        self.stats = {
            'total_evaluated': 0,
            'passed': 0,
        }

    def apply(self, tokens: List[ScannedToken], query: ScanQuery) -> List[ScannedToken]:
        self._validate(query)
        self.stats['total_evaluated'] += len(tokens)

        result = list(tokens)
        if query.search:
            result = self._search(result, query.search)
        if query.reserve != 'all':
            result = self._reserve(result, query.reserve)
        if query.tags:
            result = [t for t in result if self._passes_tags(t, query.tags)]

        self.stats['passed'] += len(result)
        return self._sort(result, query.sort)

    def _validate(self, query: ScanQuery):
        unknown = set(query.tags) - ALL_TAGS
        if unknown:
            raise ValueError(f"Unknown filter tag(s): {', '.join(sorted(unknown))}")
        if query.sort not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {query.sort}")
        if query.reserve not in RESERVE_FILTERS:
            raise ValueError(f"Unknown reserve filter: {query.reserve}")

    @staticmethod
    def _search(tokens: List[ScannedToken], search: str) -> List[ScannedToken]:
        q = search.lower()
        return [
            t for t in tokens
            if q in t.detail.symbol.lower()
            or q in t.detail.name.lower()
            or q in t.detail.address.lower()
        ]

    def _reserve(self, tokens: List[ScannedToken], reserve: str) -> List[ScannedToken]:
        if reserve == 'other':
            return [t for t in tokens if t.detail.reserve_symbol not in self.known_reserves]
        return [t for t in tokens if t.detail.reserve_symbol == reserve]

    def _passes_tags(self, token: ScannedToken, tags: Iterable[str]) -> bool:
        cp = token.signals.curve_position
        supply = token.detail.current_supply

        curve_tags = CURVE_TAGS.intersection(tags)
        passes_curve = not curve_tags
        if 'early' in curve_tags and cp < 0.2:
            passes_curve = True
        if 'mid' in curve_tags and 0.2 <= cp < 0.8:
            passes_curve = True
        if 'late' in curve_tags and cp >= 0.8:
            passes_curve = True
        if 'graduating' in curve_tags and cp > 0.9:
            passes_curve = True

        passes_other = True
        if 'active' in tags and supply <= 0:
            passes_other = False
        if 'deep' in tags and token.signals.reserve_depth <= self.deep_reserve_threshold:
            passes_other = False
        if 'dormant' in tags and supply > 0:
            passes_other = False

        return passes_curve and passes_other

    @staticmethod
    def _sort(tokens: List[ScannedToken], sort: str) -> List[ScannedToken]:
        # list.sort is stable, so exact ties keep listing order
        if sort == 'newest':
            return tokens
        if sort == 'score':
            return sorted(tokens, key=lambda t: t.signals.opportunity_score, reverse=True)
        if sort == 'curve_asc':
            return sorted(tokens, key=lambda t: t.signals.curve_position)
        if sort == 'curve_desc':
            return sorted(tokens, key=lambda t: t.signals.curve_position, reverse=True)
        return sorted(tokens, key=lambda t: t.signals.reserve_depth, reverse=True)

    def get_stats(self) -> Dict:
        return dict(self.stats)


def apply_filters(tokens: List[ScannedToken], search: str = '', reserve: str = 'all',
                  tags: Iterable[str] = (), sort: str = 'newest') -> List[ScannedToken]:
    """One-shot filter + sort with default config."""
    query = ScanQuery(search=search, reserve=reserve, tags=frozenset(tags), sort=sort)
    return TokenFilter().apply(tokens, query)
