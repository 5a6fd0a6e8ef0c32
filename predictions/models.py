"""
Prediction records and ledger errors.
All timestamps are epoch milliseconds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class Direction(Enum):
    UP = "up"
    DOWN = "down"


class Result(Enum):
    WIN = "win"
    LOSS = "loss"


class PredictionError(Exception):
    """Base error for ledger misuse."""


class ActivePredictionExists(PredictionError):
    """An unresolved, unexpired call already exists for this symbol."""

    def __init__(self, symbol: str, prediction_id: str):
        super().__init__(f"Active prediction already exists for {symbol}: {prediction_id}")
        self.symbol = symbol
        self.prediction_id = prediction_id


@dataclass
class Prediction:
    id: str
    token_symbol: str
    direction: Direction
    stake: float
    entry_price: float
    created_at: int
    expires_at: int
    resolved: bool = False
    result: Optional[Result] = None
    exit_price: Optional[float] = None
    payout: Optional[int] = None

    def is_active(self, now_ms: int) -> bool:
        return not self.resolved and now_ms < self.expires_at

    def is_expired_unresolved(self, now_ms: int) -> bool:
        return not self.resolved and now_ms >= self.expires_at

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'token_symbol': self.token_symbol,
            'direction': self.direction.value,
            'stake': self.stake,
            'entry_price': self.entry_price,
            'created_at': self.created_at,
            'expires_at': self.expires_at,
            'resolved': self.resolved,
            'result': self.result.value if self.result else None,
            'exit_price': self.exit_price,
            'payout': self.payout,
        }

    @classmethod
    def from_dict(cls, raw: Dict) -> 'Prediction':
        result = raw.get('result')
        return cls(
            id=raw['id'],
            token_symbol=raw['token_symbol'],
            direction=Direction(raw['direction']),
            stake=raw['stake'],
            entry_price=raw['entry_price'],
            created_at=int(raw['created_at']),
            expires_at=int(raw['expires_at']),
            resolved=bool(raw.get('resolved', False)),
            result=Result(result) if result else None,
            exit_price=raw.get('exit_price'),
            payout=raw.get('payout'),
        )
