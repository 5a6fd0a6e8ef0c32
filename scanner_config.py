"""
BONDING CURVE SCANNER CONFIGURATION

Scans Mint Club V2 bonding curve tokens on Base.

PIPELINE:
- Phase 1 (fast load): ONE listing call, cheap signals for every token
- Phase 2 (lazy enrich): per-token steps/quotes/price data ON SELECT ONLY
- Whole-list cache with a short TTL so UI refreshes never hit the RPC

Secrets and endpoints can be overridden from .env:
  BASE_RPC_URL, NEYNAR_API_KEY, SCRY_TOKEN_ADDRESS, SCANNER_LISTING_COUNT,
  SCANNER_CACHE_TTL
"""

import copy
import os
import logging

from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

# One whole reserve token at 18 decimals
ONE_TOKEN = 10 ** 18

SCANNER_CONFIG = {
    'chain': 'base',
    'chain_id': 8453,

    # ================================================================
    # CHAIN ACCESS
    # ================================================================
    'rpc_url': 'https://mainnet.base.org',
    'rpc_timeout_seconds': 10,
    'bond_address': '0xc5a076cad94176c2996B32d8466Be1cE757FAa27',  # MCV2_Bond (same across chains)
    'scry_token_address': '',  # tier token (unset until deployed)
    'creator_scan_limit': 1000,  # getTokensByCreator window

    # ================================================================
    # PHASE 1: FAST LOAD
    # ================================================================
    'listing': {
        'count': 200,                   # Newest N tokens per fetch
    },
    'cache': {
        'ttl_seconds': 60,              # Whole-list TTL
    },
    'scheduler': {
        'refresh_interval_seconds': 60,
        'error_backoff_seconds': 30,
    },

    # ================================================================
    # SIGNAL THRESHOLDS
    # ================================================================
    'signals': {
        'early_curve_position': 0.20,
        'graduating_curve_position': 0.90,
        'new_age_hours': 24,
        'hot_momentum_pct': 10,
        'breakout_step_jump_pct': 20,
        'tight_spread': 0.10,
        'deep_reserve_threshold': ONE_TOKEN,
        'low_fee_bps': 500,
        'high_fee_bps': 1500,
    },

    # ================================================================
    # FILTER CHIPS
    # ================================================================
    # Reserve chip buckets; anything else lands in "other"
    'reserve_filter_symbols': ['WETH', 'USDC', 'DEGEN', 'member'],

    # ================================================================
    # OFF-CHAIN APIS
    # ================================================================
    'price_feed': {
        'base_url': 'https://coins.llama.fi',
        'timeout_seconds': 10,
    },
    'metadata': {
        'url': 'https://mint.club/api/tokens/metadata',
        'timeout_seconds': 10,
    },
    'neynar': {
        'base_url': 'https://api.neynar.com/v2/farcaster',
        'api_key': '',
        'timeout_seconds': 10,
    },
}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[CONFIG] Could not parse {name}={raw!r}, using {default}")
        return default


def get_scanner_config() -> dict:
    """
    Get scanner configuration with .env overrides applied.

    Returns a deep copy so callers (and tests) can tweak values freely.
    """
    config = copy.deepcopy(SCANNER_CONFIG)

    rpc_url = (os.getenv('BASE_RPC_URL') or '').strip()
    if rpc_url:
        config['rpc_url'] = rpc_url

    config['neynar']['api_key'] = (os.getenv('NEYNAR_API_KEY') or '').strip().strip('"').strip("'")
    config['scry_token_address'] = (os.getenv('SCRY_TOKEN_ADDRESS') or config['scry_token_address']).strip()
    config['listing']['count'] = _env_int('SCANNER_LISTING_COUNT', config['listing']['count'])
    config['cache']['ttl_seconds'] = _env_int('SCANNER_CACHE_TTL', config['cache']['ttl_seconds'])

    return config


def get_signal_thresholds() -> dict:
    """Get signal thresholds (no env overrides)."""
    return SCANNER_CONFIG['signals']
