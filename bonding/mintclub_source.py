"""
MINT CLUB V2 SOURCE

Listing + enrichment source for Mint Club bonding curve tokens on Base.

On-chain (web3, MCV2_Bond contract):
- tokenCount / getList          -> newest-first listing window
- getSteps / getDetail          -> curve steps, royalties
- getReserveForToken            -> buy quote
- getRefundForTokens            -> sell quote
- getTokensByCreator            -> creator track record

Off-chain (aiohttp):
- DefiLlama coins API           -> 24h USD price change
- Mint Club metadata API        -> creator comment, website, logo...

web3 calls are blocking, so they run in worker threads. A failed RPC or
HTTP call is logged and raised as SourceError; a 404 from an HTTP API
means "nothing known" and comes back as None.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

import aiohttp
from web3 import Web3

from safe_math import safe_div

from .base_source import EnrichmentSource, ListingSource, SourceError
from .models import (
    BuyQuote,
    CurveStep,
    ListedToken,
    PriceChange,
    Royalties,
    SellQuote,
    TokenMetadata,
)

logger = logging.getLogger(__name__)


_BOND_INFO_COMPONENTS = [
    {"name": "creator", "type": "address"},
    {"name": "token", "type": "address"},
    {"name": "decimals", "type": "uint8"},
    {"name": "symbol", "type": "string"},
    {"name": "name", "type": "string"},
    {"name": "createdAt", "type": "uint40"},
    {"name": "currentSupply", "type": "uint128"},
    {"name": "maxSupply", "type": "uint128"},
    {"name": "priceForNextMint", "type": "uint128"},
    {"name": "reserveToken", "type": "address"},
    {"name": "reserveDecimals", "type": "uint8"},
    {"name": "reserveSymbol", "type": "string"},
    {"name": "reserveName", "type": "string"},
    {"name": "reserveBalance", "type": "uint256"},
]

_BOND_STEP_COMPONENTS = [
    {"name": "rangeTo", "type": "uint128"},
    {"name": "price", "type": "uint128"},
]

# Minimal MCV2_Bond ABI (view functions only)
BOND_ABI = [
    {"inputs": [], "name": "tokenCount", "outputs": [{"name": "", "type": "uint256"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "start", "type": "uint256"}, {"name": "stop", "type": "uint256"}],
     "name": "getList",
     "outputs": [{"name": "info", "type": "tuple[]", "components": _BOND_INFO_COMPONENTS}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "token", "type": "address"}], "name": "getSteps",
     "outputs": [{"name": "", "type": "tuple[]", "components": _BOND_STEP_COMPONENTS}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "token", "type": "address"}], "name": "getDetail",
     "outputs": [{"name": "detail", "type": "tuple", "components": [
         {"name": "mintRoyalty", "type": "uint16"},
         {"name": "burnRoyalty", "type": "uint16"},
         {"name": "info", "type": "tuple", "components": _BOND_INFO_COMPONENTS},
         {"name": "steps", "type": "tuple[]", "components": _BOND_STEP_COMPONENTS},
     ]}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "token", "type": "address"}, {"name": "tokensToMint", "type": "uint256"}],
     "name": "getReserveForToken",
     "outputs": [{"name": "reserveAmount", "type": "uint256"}, {"name": "royalty", "type": "uint256"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "token", "type": "address"}, {"name": "tokensToBurn", "type": "uint256"}],
     "name": "getRefundForTokens",
     "outputs": [{"name": "refundAmount", "type": "uint256"}, {"name": "royalty", "type": "uint256"}],
     "stateMutability": "view", "type": "function"},
    {"inputs": [{"name": "creator", "type": "address"}, {"name": "start", "type": "uint256"},
                {"name": "stop", "type": "uint256"}],
     "name": "getTokensByCreator",
     "outputs": [{"name": "addresses", "type": "address[]"}],
     "stateMutability": "view", "type": "function"},
]

ERC20_ABI = [
    {"constant": True, "inputs": [{"name": "account", "type": "address"}], "name": "balanceOf",
     "outputs": [{"name": "", "type": "uint256"}], "type": "function"},
]

_LISTED_FIELDS = [c["name"] for c in _BOND_INFO_COMPONENTS]


def bond_info_to_listed(info: Any) -> ListedToken:
    """Decode one BondInfo struct (tuple or dict) into a ListedToken."""
    if not isinstance(info, dict):
        info = dict(zip(_LISTED_FIELDS, info))
    return ListedToken.from_dict(info)


def is_zap_available(reserve_symbol: str) -> bool:
    """Native ETH zap only works for WETH-reserve curves."""
    return reserve_symbol == 'WETH'


class MintClubSource(ListingSource, EnrichmentSource):
    """
    Mint Club V2 listing/enrichment client.

    Usage:
        source = MintClubSource(get_scanner_config())
        listed = await source.list_tokens(200)
    """

    def __init__(self, config: Dict = None, w3: Web3 = None):
        """
        Initialize source.

        Args:
            config: Scanner configuration dict
            w3: Optional pre-built Web3 instance (tests / shared provider)
        """
        super().__init__(config)
        self.chain = self.config.get('chain', 'base')
        self.chain_id = self.config.get('chain_id', 8453)
        self.creator_scan_limit = self.config.get('creator_scan_limit', 1000)
        self.price_feed = self.config.get('price_feed', {})
        self.metadata_config = self.config.get('metadata', {})

        self.w3 = w3 or Web3(Web3.HTTPProvider(
            self.config.get('rpc_url', 'https://mainnet.base.org'),
            request_kwargs={'timeout': self.config.get('rpc_timeout_seconds', 10)},
        ))
        self.bond = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.config.get('bond_address', '0xc5a076cad94176c2996B32d8466Be1cE757FAa27')),
            abi=BOND_ABI,
        )
        self.session: Optional[aiohttp.ClientSession] = None

    # ================================================================
    # PLUMBING
    # ================================================================

    async def _call(self, label: str, fn: Callable):
        """Run a blocking contract call in a worker thread."""
        self._update_rate_limit()
        try:
            return await asyncio.to_thread(fn)
        except Exception as e:
            self._record_error()
            logger.warning(f"[MINTCLUB] {label} error: {e}")
            raise SourceError(f"{label} failed: {e}") from e

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        return self.session

    async def close(self):
        """Close aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _get_json(self, url: str, params: Dict = None, timeout: float = 10) -> Optional[Dict]:
        """
        GET a JSON document.

        Returns:
            Parsed JSON, or None when the API has no record (404)

        Raises:
            SourceError: on any other HTTP status, timeout or connection error
        """
        session = await self._get_session()
        self._update_rate_limit()

        try:
            async with session.get(url, params=params, timeout=aiohttp.ClientTimeout(total=timeout)) as response:
                if response.status == 200:
                    return await response.json(content_type=None)
                if response.status == 404:
                    return None
                if response.status == 429:
                    logger.warning(f"[MINTCLUB] Rate limited: {url}")
                else:
                    logger.warning(f"[MINTCLUB] HTTP {response.status}: {url}")
                self._record_error()
                raise SourceError(f"HTTP {response.status}: {url}")
        except asyncio.TimeoutError as e:
            self._record_error()
            logger.warning(f"[MINTCLUB] Timeout: {url}")
            raise SourceError(f"Timeout: {url}") from e
        except aiohttp.ClientError as e:
            self._record_error()
            logger.warning(f"[MINTCLUB] Request error: {e}")
            raise SourceError(f"Request error: {e}") from e

    def _checksum(self, address: str) -> str:
        return Web3.to_checksum_address(address)

    # ================================================================
    # LISTING
    # ================================================================

    async def get_token_count(self) -> int:
        """Total number of bonding curve tokens."""
        count = await self._call('tokenCount', self.bond.functions.tokenCount().call)
        return int(count or 0)

    async def list_tokens(self, count: int) -> List[ListedToken]:
        """Fetch the latest `count` tokens (newest first, all reserves)."""
        total = await self.get_token_count()
        if total == 0:
            return []

        start = max(0, total - count)
        raw = await self._call('getList', self.bond.functions.getList(start, total).call)
        if not raw:
            return []

        listed = []
        for info in raw:
            try:
                listed.append(bond_info_to_listed(info))
            except (TypeError, ValueError) as e:
                logger.warning(f"[MINTCLUB] Skipping undecodable bond row: {e}")

        listed.reverse()
        logger.debug(f"[MINTCLUB] Listed {len(listed)} tokens (window {start}-{total})")
        return listed

    # ================================================================
    # ENRICHMENT
    # ================================================================

    async def get_steps(self, token: str) -> List[CurveStep]:
        raw = await self._call('getSteps', self.bond.functions.getSteps(self._checksum(token)).call)
        if not raw:
            return []
        return [CurveStep(range_to=int(step[0]), price=int(step[1])) for step in raw]

    async def get_royalties(self, token: str) -> Optional[Royalties]:
        raw = await self._call('getDetail', self.bond.functions.getDetail(self._checksum(token)).call)
        if not raw:
            return None
        return Royalties(mint_royalty=int(raw[0] or 0), burn_royalty=int(raw[1] or 0))

    async def get_buy_quote(self, token: str, amount: int) -> Optional[BuyQuote]:
        raw = await self._call(
            'getReserveForToken',
            self.bond.functions.getReserveForToken(self._checksum(token), amount).call,
        )
        if not raw:
            return None
        return BuyQuote(cost=int(raw[0]), royalty=int(raw[1]))

    async def get_sell_quote(self, token: str, amount: int) -> Optional[SellQuote]:
        raw = await self._call(
            'getRefundForTokens',
            self.bond.functions.getRefundForTokens(self._checksum(token), amount).call,
        )
        if not raw:
            return None
        return SellQuote(returns=int(raw[0]), royalty=int(raw[1]))

    async def get_creator_token_count(self, creator: str) -> int:
        raw = await self._call(
            'getTokensByCreator',
            self.bond.functions.getTokensByCreator(self._checksum(creator), 0, self.creator_scan_limit).call,
        )
        return len(raw) if raw else 0

    async def get_token_balance(self, token: str, wallet: str) -> int:
        """ERC20 balance in base units."""
        contract = self.w3.eth.contract(address=self._checksum(token), abi=ERC20_ABI)
        balance = await self._call('balanceOf', contract.functions.balanceOf(self._checksum(wallet)).call)
        return int(balance or 0)

    async def get_24h_change(self, token: str) -> Optional[PriceChange]:
        """
        24h USD price change from the DefiLlama coins API.

        Returns:
            PriceChange (fields may be None), or None when no price matched
        """
        base_url = self.price_feed.get('base_url', 'https://coins.llama.fi')
        timeout = self.price_feed.get('timeout_seconds', 10)
        coin_id = f"{self.chain}:{token.lower()}"

        current_data, percent_data = await asyncio.gather(
            self._get_json(f"{base_url}/prices/current/{coin_id}", timeout=timeout),
            self._get_json(f"{base_url}/percentage/{coin_id}", params={'period': '24h'}, timeout=timeout),
        )

        current = self._find_coin(current_data, coin_id)
        current_rate = current.get('price') if isinstance(current, dict) else None
        change_percent = self._find_coin(percent_data, coin_id)
        if not isinstance(change_percent, (int, float)):
            change_percent = None

        if current_rate is None and change_percent is None:
            return None

        previous_rate = None
        if current_rate is not None and change_percent is not None:
            previous_rate = safe_div(current_rate, 1 + change_percent / 100)

        return PriceChange(
            current_usd_rate=current_rate,
            previous_usd_rate=previous_rate,
            change_percent=change_percent,
        )

    @staticmethod
    def _find_coin(payload: Optional[Dict], coin_id: str):
        if not isinstance(payload, dict):
            return None
        coins = payload.get('coins') or {}
        for key, value in coins.items():
            if key.lower() == coin_id:
                return value
        return None

    async def get_metadata(self, token: str) -> Optional[TokenMetadata]:
        """Off-chain Mint Club metadata, validated into TokenMetadata."""
        url = self.metadata_config.get('url', 'https://mint.club/api/tokens/metadata')
        payload = await self._get_json(
            url,
            params={'chainId': self.chain_id, 'tokenAddress': token},
            timeout=self.metadata_config.get('timeout_seconds', 10),
        )
        if isinstance(payload, dict) and isinstance(payload.get('data'), dict):
            payload = payload['data']
        return TokenMetadata.from_raw(payload)
