"""
PREDICTIONS MODULE

Staked up/down calls on scanner tokens, settled against the house.
"""

from .ledger import PredictionLedger
from .models import ActivePredictionExists, Direction, Prediction, PredictionError, Result
from .store import PredictionStore

__all__ = [
    'PredictionLedger',
    'PredictionStore',
    'Prediction',
    'Direction',
    'Result',
    'PredictionError',
    'ActivePredictionExists',
]
