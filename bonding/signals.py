"""
SIGNAL COMPUTER

Turns a token record into Signals. Two entry points:

- compute_fast(): from a ListedToken only (no extra RPC calls)
- compute_full(): from an enriched TokenDetail + price change + quotes

Both are pure and total: missing optional inputs propagate as None,
guarded divisions yield None, nothing raises. The fields both modes know
about come from one shared helper, so a fast-computed token and its
enriched replacement always agree on them.
"""

import time
from typing import Dict, List, Optional

from safe_math import clamp, scaled_percent_change, scaled_ratio
from scanner_config import get_signal_thresholds

from .models import (
    BondInfo,
    BuyQuote,
    ListedToken,
    PriceChange,
    Royalties,
    ScannedToken,
    SellQuote,
    Signals,
    TokenDetail,
)

SCORE_BASE = 50
SCORE_MIN = 0
SCORE_MAX = 100

SCORE_POINTS = {
    'early': 20,
    'hot_positive': 15,
    'rising': 5,
    'breakout': 10,
    'graduating': 10,
    'new': 5,
    'tight_spread': 5,
    'deep_reserve': 5,
    'dormant': -10,
}


def _now_seconds(now: Optional[float]) -> float:
    return int(time.time()) if now is None else now


def curve_position(current_supply: int, max_supply: int) -> float:
    """Share of max supply minted, 4-decimal fixed point. 0 when max is 0."""
    if max_supply <= 0:
        return 0.0
    return scaled_ratio(current_supply, max_supply)


def step_jump(steps, current_price: int) -> Optional[float]:
    """
    % price increase from the current step to the next one.

    The current step is the first one priced at or above current_price.
    None when that is the last step, when no step qualifies, or when the
    step price is zero.
    """
    for i in range(len(steps) - 1):
        step = steps[i]
        if step.price >= current_price:
            return scaled_percent_change(steps[i + 1].price, step.price)
    return None


def spread(buy_estimate: Optional[BuyQuote], sell_estimate: Optional[SellQuote]) -> Optional[float]:
    """Round-trip cost as a fraction of the buy cost. Negative values are kept."""
    if buy_estimate is None or sell_estimate is None or buy_estimate.cost <= 0:
        return None
    return scaled_ratio(buy_estimate.cost - sell_estimate.returns, buy_estimate.cost)


def _shared_signals(current_supply: int, max_supply: int, created_at: int,
                    reserve_balance: int, now: float, thresholds: Dict) -> Dict:
    position = curve_position(current_supply, max_supply)
    age_hours = (now - created_at) / 3600

    return {
        'curve_position': position,
        'reserve_depth': reserve_balance,
        'age_hours': age_hours,
        'is_early': position < thresholds['early_curve_position'],
        'is_graduating': position > thresholds['graduating_curve_position'],
        'is_new': age_hours < thresholds['new_age_hours'],
        'is_dormant': current_supply == 0,
    }


def _opportunity_score(shared: Dict, momentum: Optional[float], is_hot: bool, is_rising: bool,
                       is_breakout: bool, spread_value: Optional[float], thresholds: Dict) -> int:
    score = SCORE_BASE

    if shared['is_early']:
        score += SCORE_POINTS['early']
    if is_hot and momentum is not None and momentum > 0:
        score += SCORE_POINTS['hot_positive']
    if is_rising:
        score += SCORE_POINTS['rising']
    if is_breakout:
        score += SCORE_POINTS['breakout']
    if shared['is_graduating']:
        score += SCORE_POINTS['graduating']
    if shared['is_new']:
        score += SCORE_POINTS['new']
    if spread_value is not None and spread_value < thresholds['tight_spread']:
        score += SCORE_POINTS['tight_spread']
    if shared['reserve_depth'] > thresholds['deep_reserve_threshold']:
        score += SCORE_POINTS['deep_reserve']
    if shared['is_dormant']:
        score += SCORE_POINTS['dormant']

    return clamp(score, SCORE_MIN, SCORE_MAX)


def compute_fast(listed: ListedToken, now: Optional[float] = None,
                 thresholds: Optional[Dict] = None) -> Signals:
    """Cheap signals from the listing row alone (momentum/steps/spread unknown)."""
    thresholds = thresholds or get_signal_thresholds()
    shared = _shared_signals(
        listed.current_supply,
        listed.max_supply,
        listed.created_at,
        listed.reserve_balance,
        _now_seconds(now),
        thresholds,
    )
    score = _opportunity_score(shared, None, False, False, False, None, thresholds)

    return Signals(
        momentum=None,
        step_jump=None,
        spread=None,
        is_hot=False,
        is_rising=False,
        is_breakout=False,
        opportunity_score=score,
        **shared,
    )


def compute_full(detail: TokenDetail,
                 price_change: Optional[PriceChange],
                 buy_estimate: Optional[BuyQuote],
                 sell_estimate: Optional[SellQuote],
                 now: Optional[float] = None,
                 thresholds: Optional[Dict] = None) -> Signals:
    """Full signals once steps, 24h change and quotes are (maybe) available."""
    thresholds = thresholds or get_signal_thresholds()
    shared = _shared_signals(
        detail.current_supply,
        detail.max_supply,
        detail.bond.created_at,
        detail.bond.reserve_balance,
        _now_seconds(now),
        thresholds,
    )

    momentum = price_change.change_percent if price_change else None
    jump = step_jump(detail.steps, detail.current_price)
    spread_value = spread(buy_estimate, sell_estimate)

    is_hot = momentum is not None and abs(momentum) > thresholds['hot_momentum_pct']
    is_rising = momentum is not None and 0 < momentum <= thresholds['hot_momentum_pct']
    is_breakout = jump is not None and jump > thresholds['breakout_step_jump_pct']

    score = _opportunity_score(shared, momentum, is_hot, is_rising, is_breakout, spread_value, thresholds)

    return Signals(
        momentum=momentum,
        step_jump=jump,
        spread=spread_value,
        is_hot=is_hot,
        is_rising=is_rising,
        is_breakout=is_breakout,
        opportunity_score=score,
        **shared,
    )


def listed_to_detail(listed: ListedToken) -> TokenDetail:
    """Lightweight TokenDetail (no steps, royalties unknown -> 0)."""
    return TokenDetail(
        symbol=listed.symbol,
        name=listed.name,
        address=listed.token,
        bond=BondInfo(
            creator=listed.creator,
            mint_royalty=0,
            burn_royalty=0,
            created_at=listed.created_at,
            reserve_token=listed.reserve_token,
            reserve_balance=listed.reserve_balance,
        ),
        max_supply=listed.max_supply,
        current_supply=listed.current_supply,
        steps=[],
        current_price=listed.price_for_next_mint,
        reserve_symbol=listed.reserve_symbol,
    )


def scan_listed(listed: ListedToken, now: Optional[float] = None) -> ScannedToken:
    """Phase 1 record: cheap detail + fast signals."""
    return ScannedToken(detail=listed_to_detail(listed), signals=compute_fast(listed, now=now), price_change=None)


# ================================================================
# RANKED VIEWS
# ================================================================

def filter_hot(tokens: List[ScannedToken]) -> List[ScannedToken]:
    """Hot tokens, biggest absolute move first."""
    hot = [t for t in tokens if t.signals.is_hot]
    return sorted(hot, key=lambda t: abs(t.signals.momentum or 0), reverse=True)


def filter_early(tokens: List[ScannedToken]) -> List[ScannedToken]:
    """Early tokens, least filled first."""
    early = [t for t in tokens if t.signals.is_early]
    return sorted(early, key=lambda t: t.signals.curve_position)


def filter_breakout(tokens: List[ScannedToken]) -> List[ScannedToken]:
    """Breakout tokens, steepest next step first."""
    breakout = [t for t in tokens if t.signals.is_breakout]
    return sorted(breakout, key=lambda t: t.signals.step_jump or 0, reverse=True)


def rank_by_opportunity(tokens: List[ScannedToken]) -> List[ScannedToken]:
    return sorted(tokens, key=lambda t: t.signals.opportunity_score, reverse=True)


def get_badges(token: ScannedToken, royalties: Optional[Royalties] = None,
               thresholds: Optional[Dict] = None) -> List[str]:
    """Badge keys shown on a token card, in display order."""
    thresholds = thresholds or get_signal_thresholds()
    s = token.signals
    badges = []

    if s.is_early:
        badges.append('early')
    if s.is_graduating:
        badges.append('graduating')
    if s.is_hot:
        badges.append('hot')
    if s.is_rising:
        badges.append('rising')
    if s.is_breakout:
        badges.append('breakout')
    if s.is_new:
        badges.append('new')
    if s.is_dormant:
        badges.append('dormant')
    if s.reserve_depth > thresholds['deep_reserve_threshold']:
        badges.append('deep_liquidity')

    if royalties:
        total_fee = royalties.total_bps
        if 0 < total_fee < thresholds['low_fee_bps']:
            badges.append('low_fee')
        if total_fee > thresholds['high_fee_bps']:
            badges.append('high_fee')

    return badges
