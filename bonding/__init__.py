"""
BONDING CURVE SCANNER MODULE

Opportunity signals for Mint Club bonding curve tokens on Base.

GOAL:
- ONE listing call per refresh, cheap signals for every token
- Per-token RPC/API work only when a token is selected
- Never let one failing upstream hide a token

Architecture:
  Mint Club Bond contract (getList)
          ↓
  SIGNAL COMPUTER (fast mode)
          ↓
  OPPORTUNITY CACHE (60s TTL)
          ↓
  FILTER / SORT
          ↓
  ENRICHMENT ON SELECT (steps, 24h change, quotes, metadata...)
          ↓
  SIGNAL COMPUTER (full mode) → memo → merged back into the list
"""

from .base_source import BaseSource, EnrichmentSource, ListingSource, ReputationSource, SourceError
from .cache import OpportunityCache
from .filters import ScanQuery, TokenFilter, apply_filters
from .mintclub_source import MintClubSource
from .orchestrator import EnrichResult, ScanOrchestrator, estimate_amount
from .reputation import NeynarReputationSource, compute_creator_rating
from .scheduler import RefreshScheduler
from .signals import compute_fast, compute_full, get_badges

__all__ = [
    'BaseSource',
    'ListingSource',
    'EnrichmentSource',
    'ReputationSource',
    'SourceError',
    'OpportunityCache',
    'ScanQuery',
    'TokenFilter',
    'apply_filters',
    'MintClubSource',
    'EnrichResult',
    'ScanOrchestrator',
    'estimate_amount',
    'NeynarReputationSource',
    'compute_creator_rating',
    'RefreshScheduler',
    'compute_fast',
    'compute_full',
    'get_badges',
]
