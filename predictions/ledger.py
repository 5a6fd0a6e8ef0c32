"""
PREDICTION LEDGER

Single-sided direction calls ("calls") against the house.

State machine per prediction:
  ACTIVE --resolve(price)--> RESOLVED (terminal, never deleted)

Settlement:
- win  = (up and exit > entry) or (down and exit <= entry)
         A flat price is a win for "down" and a loss for "up".
- payout = floor(stake * 2 - stake * house_cut_bps / 10000) on a win, 0 on a loss
"""

import logging
import math
import random
import string
import time
from typing import Awaitable, Callable, Dict, List, Optional, Union

from prediction_config import get_prediction_config
from safe_math import clamp

from .models import ActivePredictionExists, Direction, Prediction, Result
from .store import PredictionStore

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _now_ms() -> int:
    return int(time.time() * 1000)


class PredictionLedger:
    """
    Create, list and resolve predictions.

    Usage:
        ledger = PredictionLedger(PredictionStore())
        call = ledger.create('DEGEN', 'up', 50, 0.0123)
        ledger.resolve(call.id, 0.0150)
    """

    def __init__(self, store: PredictionStore = None, config: Dict = None,
                 clock: Callable[[], int] = None, rng: random.Random = None):
        """
        Initialize ledger.

        Args:
            store: Persistence backend (default DB path if omitted)
            config: Prediction configuration dict
            clock: Time source in epoch milliseconds
            rng: Random source for id suffixes
        """
        self.config = config or get_prediction_config()
        self.store = store or PredictionStore(self.config['db_path'], self.config['storage_key'])
        self._clock = clock or _now_ms
        self._rng = rng or random.Random()

        self.min_stake = self.config.get('min_stake', 10)
        self.max_stake = self.config.get('max_stake', 100)
        self.duration_ms = self.config.get('duration_ms', 24 * 60 * 60 * 1000)
        self.house_cut_bps = self.config.get('house_cut_bps', 1000)

    # ================================================================
    # PERSISTENCE
    # ================================================================

    def _load(self) -> List[Prediction]:
        predictions = []
        for raw in self.store.load():
            try:
                predictions.append(Prediction.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[PREDICTIONS] Skipping malformed record: {e}")
        return predictions

    def _save(self, predictions: List[Prediction]):
        self.store.save([p.to_dict() for p in predictions])

    def _new_id(self, symbol: str, now: int) -> str:
        # Best-effort uniqueness, fine for one session's ledger
        suffix = ''.join(self._rng.choice(_ID_ALPHABET) for _ in range(6))
        return f"{symbol}-{now}-{suffix}"

    # ================================================================
    # LIFECYCLE
    # ================================================================

    def create(self, symbol: str, direction: Union[Direction, str], stake: float,
               entry_price: float) -> Prediction:
        """
        Record a new call.

        The caller must check get_active_for_token() first (or use
        create_checked()).

        Raises:
            ValueError: direction is not 'up' or 'down'
        """
        direction = Direction(direction) if not isinstance(direction, Direction) else direction
        now = self._clock()

        prediction = Prediction(
            id=self._new_id(symbol, now),
            token_symbol=symbol,
            direction=direction,
            stake=clamp(stake, self.min_stake, self.max_stake),
            entry_price=entry_price,
            created_at=now,
            expires_at=now + self.duration_ms,
        )

        predictions = self._load()
        predictions.append(prediction)
        self._save(predictions)

        logger.info(f"[PREDICTIONS] {symbol} {direction.value} {prediction.stake} @ {entry_price}")
        return prediction

    def create_checked(self, symbol: str, direction: Union[Direction, str], stake: float,
                       entry_price: float) -> Prediction:
        """
        create() that enforces one active call per symbol.

        Raises:
            ActivePredictionExists: an active call for the symbol exists
        """
        existing = self.get_active_for_token(symbol)
        if existing:
            raise ActivePredictionExists(symbol, existing.id)
        return self.create(symbol, direction, stake, entry_price)

    def _settle(self, prediction: Prediction, current_price: float):
        went_up = current_price > prediction.entry_price
        win = (prediction.direction == Direction.UP and went_up) or \
              (prediction.direction == Direction.DOWN and not went_up)

        house_cut = prediction.stake * self.house_cut_bps / 10000

        prediction.resolved = True
        prediction.exit_price = current_price
        prediction.result = Result.WIN if win else Result.LOSS
        prediction.payout = math.floor(prediction.stake * 2 - house_cut) if win else 0

    def resolve(self, prediction_id: str, current_price: float) -> Optional[Prediction]:
        """
        Settle a call at current_price.

        Returns:
            The settled prediction, the unchanged record if it was already
            resolved, or None for an unknown id
        """
        predictions = self._load()
        prediction = next((p for p in predictions if p.id == prediction_id), None)
        if prediction is None:
            logger.warning(f"[PREDICTIONS] Unknown prediction id: {prediction_id}")
            return None
        if prediction.resolved:
            return prediction

        self._settle(prediction, current_price)
        self._save(predictions)

        logger.info(f"[PREDICTIONS] Resolved {prediction.id}: {prediction.result.value} "
                    f"(payout {prediction.payout})")
        return prediction

    async def settle_expired(self, price_lookup: Callable[[str], Awaitable[Optional[float]]]) -> List[Prediction]:
        """
        Resolve every expired, unresolved call.

        Args:
            price_lookup: Async symbol -> current USD price (None = skip)

        Returns:
            Predictions settled by this call
        """
        prices: Dict[str, Optional[float]] = {}
        settled = []

        for prediction in self.get_expired_unresolved():
            symbol = prediction.token_symbol
            if symbol not in prices:
                prices[symbol] = await price_lookup(symbol)
            price = prices[symbol]
            if price is None:
                logger.warning(f"[PREDICTIONS] No price for {symbol}, leaving {prediction.id} open")
                continue

            resolved = self.resolve(prediction.id, price)
            if resolved:
                settled.append(resolved)

        return settled

    # ================================================================
    # QUERIES
    # ================================================================

    def get_all(self) -> List[Prediction]:
        """All predictions, newest first."""
        return sorted(self._load(), key=lambda p: p.created_at, reverse=True)

    def get_active(self) -> List[Prediction]:
        now = self._clock()
        return [p for p in self._load() if p.is_active(now)]

    def get_expired_unresolved(self) -> List[Prediction]:
        now = self._clock()
        return [p for p in self._load() if p.is_expired_unresolved(now)]

    def get_history(self) -> List[Prediction]:
        """Resolved predictions, newest first."""
        resolved = [p for p in self._load() if p.resolved]
        return sorted(resolved, key=lambda p: p.created_at, reverse=True)

    def get_active_for_token(self, symbol: str) -> Optional[Prediction]:
        return next((p for p in self.get_active() if p.token_symbol == symbol), None)

    def get_summary(self) -> Dict:
        """
        Ledger totals.

        Returns:
            Dict with wins, losses, open, awaiting_resolution, total_staked,
            total_payout and net (payouts minus resolved stakes)
        """
        now = self._clock()
        predictions = self._load()
        resolved = [p for p in predictions if p.resolved]

        total_payout = sum(p.payout or 0 for p in resolved)
        resolved_stake = sum(p.stake for p in resolved)

        return {
            'wins': sum(1 for p in resolved if p.result == Result.WIN),
            'losses': sum(1 for p in resolved if p.result == Result.LOSS),
            'open': sum(1 for p in predictions if p.is_active(now)),
            'awaiting_resolution': sum(1 for p in predictions if p.is_expired_unresolved(now)),
            'total_staked': sum(p.stake for p in predictions),
            'total_payout': total_payout,
            'net': total_payout - resolved_stake,
        }
