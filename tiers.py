"""
Tier Registry
Maps $SCRY holdings to feature-unlock tiers.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Ordered lowest -> highest
TIER_ORDER = ['free', 'scout', 'pro', 'alpha']

TIERS = {
    'free': {
        'min_balance': 0,
        'label': 'Free',
        'color': '#6B7280',
        'features': ('all_tab', 'basic_cards', 'trade'),
    },
    'scout': {
        'min_balance': 1000,
        'label': 'Scout',
        'color': '#10B981',
        'features': ('all_tab', 'basic_cards', 'trade', 'early_tab', 'hot_tab', 'signals', 'curves'),
    },
    'pro': {
        'min_balance': 5000,
        'label': 'Pro',
        'color': '#8B5CF6',
        'features': ('all_tab', 'basic_cards', 'trade', 'early_tab', 'hot_tab', 'signals', 'curves',
                     'breakout_tab', 'spread', 'advanced_curves'),
    },
    'alpha': {
        'min_balance': 25000,
        'label': 'Alpha',
        'color': '#F59E0B',
        'features': ('all_tab', 'basic_cards', 'trade', 'early_tab', 'hot_tab', 'signals', 'curves',
                     'breakout_tab', 'spread', 'advanced_curves', 'alerts', 'portfolio', 'export',
                     'predictions'),
    },
}


@dataclass(frozen=True)
class TierInfo:
    key: str
    label: str
    color: str
    min_balance: int
    features: Tuple[str, ...]


def _tier_info(key: str, registry: Dict = None) -> TierInfo:
    entry = (registry or TIERS)[key]
    return TierInfo(
        key=key,
        label=entry['label'],
        color=entry['color'],
        min_balance=entry['min_balance'],
        features=tuple(entry['features']),
    )


def get_tier(balance: float, registry: Dict = None) -> TierInfo:
    """
    Highest tier whose minimum the balance meets or exceeds.

    Args:
        balance: Whole-token $SCRY balance
        registry: Optional tier registry (defaults to TIERS)
    """
    registry = registry or TIERS
    for key in reversed(TIER_ORDER):
        if key in registry and balance >= registry[key]['min_balance']:
            return _tier_info(key, registry)
    return _tier_info(TIER_ORDER[0], registry)


def has_feature(tier: TierInfo, feature: str) -> bool:
    return feature in tier.features


def get_required_tier_for_feature(feature: str, registry: Dict = None) -> Optional[TierInfo]:
    """Lowest tier that unlocks the feature, or None if no tier does."""
    registry = registry or TIERS
    for key in TIER_ORDER:
        if key in registry and feature in registry[key]['features']:
            return _tier_info(key, registry)
    return None


def get_upgrade_prompt(feature: str, registry: Dict = None) -> Optional[Dict]:
    """
    Upgrade hint for a locked feature.

    Returns:
        {'tier': label, 'tokens_needed': min_balance} or None
    """
    required = get_required_tier_for_feature(feature, registry)
    if not required:
        logger.debug(f"[TIERS] No tier unlocks feature '{feature}'")
        return None
    return {'tier': required.label, 'tokens_needed': required.min_balance}
