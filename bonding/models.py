"""
BONDING CURVE DATA MODELS

Typed records passed between the sources, the signal computer, the cache
and the orchestrator. All on-chain amounts are base-unit ints.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


def _pick(raw: Dict, *keys, default=None):
    """First present key wins (contract tuples are camelCase, ours snake_case)."""
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


@dataclass
class ListedToken:
    """One row of the bond contract listing (cheap fields only)."""
    creator: str
    token: str
    decimals: int
    symbol: str
    name: str
    created_at: int                  # seconds
    current_supply: int
    max_supply: int
    price_for_next_mint: int
    reserve_token: str
    reserve_decimals: int
    reserve_symbol: str
    reserve_name: str
    reserve_balance: int

    @classmethod
    def from_dict(cls, raw: Dict) -> 'ListedToken':
        return cls(
            creator=_pick(raw, 'creator', default=''),
            token=_pick(raw, 'token', 'address', default=''),
            decimals=int(_pick(raw, 'decimals', default=18)),
            symbol=_pick(raw, 'symbol', default=''),
            name=_pick(raw, 'name', default=''),
            created_at=int(_pick(raw, 'created_at', 'createdAt', default=0)),
            current_supply=int(_pick(raw, 'current_supply', 'currentSupply', default=0)),
            max_supply=int(_pick(raw, 'max_supply', 'maxSupply', default=0)),
            price_for_next_mint=int(_pick(raw, 'price_for_next_mint', 'priceForNextMint', default=0)),
            reserve_token=_pick(raw, 'reserve_token', 'reserveToken', default=''),
            reserve_decimals=int(_pick(raw, 'reserve_decimals', 'reserveDecimals', default=18)),
            reserve_symbol=_pick(raw, 'reserve_symbol', 'reserveSymbol', default=''),
            reserve_name=_pick(raw, 'reserve_name', 'reserveName', default=''),
            reserve_balance=int(_pick(raw, 'reserve_balance', 'reserveBalance', default=0)),
        )


@dataclass(frozen=True)
class CurveStep:
    range_to: int
    price: int


@dataclass
class BondInfo:
    creator: str
    mint_royalty: int                # basis points
    burn_royalty: int                # basis points
    created_at: int
    reserve_token: str
    reserve_balance: int


@dataclass
class TokenDetail:
    """
    Token as shown in the scanner.

    `steps` is empty in cheap mode and only populated after enrichment.
    """
    symbol: str
    name: str
    address: str
    bond: BondInfo
    max_supply: int
    current_supply: int
    steps: List[CurveStep]
    current_price: int
    reserve_symbol: str

    @property
    def is_enriched(self) -> bool:
        return bool(self.steps)


@dataclass(frozen=True)
class PriceChange:
    current_usd_rate: Optional[float] = None
    previous_usd_rate: Optional[float] = None
    change_percent: Optional[float] = None


@dataclass(frozen=True)
class BuyQuote:
    cost: int
    royalty: int


@dataclass(frozen=True)
class SellQuote:
    returns: int
    royalty: int


@dataclass(frozen=True)
class Royalties:
    mint_royalty: int
    burn_royalty: int

    @property
    def total_bps(self) -> int:
        return self.mint_royalty + self.burn_royalty


@dataclass(frozen=True)
class TokenMetadata:
    creator_comment: Optional[str] = None
    website: Optional[str] = None
    distribution_plan: Optional[str] = None
    logo: Optional[str] = None
    background_image: Optional[str] = None
    external_dex_url: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Optional[Dict]) -> Optional['TokenMetadata']:
        """
        Validate an untyped metadata payload once, at the boundary.

        Non-string or empty values become None. A non-dict payload is None.
        """
        if not isinstance(raw, dict):
            return None

        def text(*keys):
            value = _pick(raw, *keys)
            if isinstance(value, str) and value.strip():
                return value
            return None

        return cls(
            creator_comment=text('creatorComment', 'creator_comment'),
            website=text('website'),
            distribution_plan=text('distributionPlan', 'distribution_plan'),
            logo=text('logo'),
            background_image=text('backgroundImage', 'background_image'),
            external_dex_url=text('externalDexUrl', 'external_dex_url'),
        )


@dataclass(frozen=True)
class Signals:
    curve_position: float            # 0-1 share of max supply minted
    momentum: Optional[float]        # 24h price change %
    reserve_depth: int               # raw reserve balance
    step_jump: Optional[float]       # % increase to next step price
    spread: Optional[float]          # buy/sell round trip as fraction
    age_hours: float
    is_early: bool
    is_hot: bool
    is_new: bool
    is_graduating: bool
    is_dormant: bool
    is_rising: bool
    is_breakout: bool
    opportunity_score: int           # 0-100


@dataclass
class ScannedToken:
    detail: TokenDetail
    signals: Signals
    price_change: Optional[PriceChange] = None

    @property
    def address(self) -> str:
        return self.detail.address


@dataclass
class CreatorProfile:
    fid: int
    username: str
    display_name: str
    pfp_url: str
    follower_count: int
    verified_addresses: List[str]
    token_count: int
    rating: int                      # 0-100
    rating_label: str


@dataclass
class TokenEnrichment:
    """Side data fetched alongside an enrichment (not part of the signals)."""
    metadata: Optional[TokenMetadata] = None
    creator_token_count: int = 0
    royalties: Optional[Royalties] = None
    buy_quote: Optional[BuyQuote] = None
    sell_quote: Optional[SellQuote] = None
    zap_available: bool = False
    creator_profile: Optional[CreatorProfile] = None
    failed: List[str] = field(default_factory=list)
