"""
PREDICTION (CALLS) CONFIGURATION

Single-sided direction calls against the house, settled off-chain.
"""

import os

PREDICTION_CONFIG = {
    'min_stake': 10,
    'max_stake': 100,
    'duration_ms': 24 * 60 * 60 * 1000,  # 24 hours
    'house_cut_bps': 1000,  # 10%

    # Storage
    'db_path': os.path.join(os.getcwd(), 'database', 'predictions.db'),
    'storage_key': 'scanner_predictions',
}


def get_prediction_config() -> dict:
    """Get prediction ledger configuration."""
    return dict(PREDICTION_CONFIG)
