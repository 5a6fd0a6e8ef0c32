"""
CREATOR REPUTATION

Farcaster profile lookup (Neynar bulk-by-address) plus a 0-100 creator
rating built from account age, followers, token track record and address
verification.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

import aiohttp

from .base_source import ReputationSource
from .models import CreatorProfile

logger = logging.getLogger(__name__)

RATING_LABELS = [
    (80, 'Trusted'),
    (60, 'Established'),
    (40, 'Active'),
    (20, 'New'),
]


def _fid_points(fid: int) -> int:
    # Lower FID = older account (max 30)
    if fid < 1000:
        return 30
    if fid < 10000:
        return 25
    if fid < 50000:
        return 20
    if fid < 200000:
        return 10
    return 5


def _follower_points(follower_count: int) -> int:
    # max 30
    if follower_count >= 10000:
        return 30
    if follower_count >= 1000:
        return 25
    if follower_count >= 100:
        return 15
    if follower_count >= 10:
        return 5
    return 0


def _track_record_points(token_count: int) -> int:
    # max 20
    if token_count >= 5:
        return 20
    if token_count >= 3:
        return 15
    if token_count >= 2:
        return 10
    return 5


def rating_label(rating: int) -> str:
    for floor, label in RATING_LABELS:
        if rating >= floor:
            return label
    return 'Unknown'


def compute_creator_rating(fid: int, follower_count: int, token_count: int, verified: bool) -> Tuple[int, str]:
    """
    Creator rating.

    Returns:
        (rating 0-100, label)
    """
    score = _fid_points(fid) + _follower_points(follower_count) + _track_record_points(token_count)
    if verified:
        score += 20

    rating = min(100, score)
    return rating, rating_label(rating)


def is_address_verified(address: str, verified_addresses: List[str]) -> bool:
    target = address.lower()
    return any(isinstance(a, str) and a.lower() == target for a in verified_addresses or [])


class NeynarReputationSource(ReputationSource):
    """
    Neynar-backed creator profile lookup.

    Without an API key every lookup returns None (profile simply absent).
    """

    def __init__(self, config: Dict = None):
        super().__init__(config)
        self.base_url = self.config.get('base_url', 'https://api.neynar.com/v2/farcaster')
        self.api_key = self.config.get('api_key', '')
        self.timeout = self.config.get('timeout_seconds', 10)
        self.session: Optional[aiohttp.ClientSession] = None

        if not self.api_key:
            logger.warning("⚠️ NEYNAR_API_KEY not set - creator profiles will be skipped")

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        return self.session

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _fetch_user(self, address: str) -> Optional[Dict]:
        session = await self._get_session()
        url = f"{self.base_url}/user/bulk-by-address"
        self._update_rate_limit()

        try:
            async with session.get(
                url,
                params={'addresses': address.lower()},
                headers={'x-api-key': self.api_key},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    self._record_error()
                    logger.warning(f"[NEYNAR] HTTP {response.status} for {address[:10]}...")
                    return None
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._record_error()
            logger.warning(f"[NEYNAR] Lookup error: {e}")
            return None

        users = data.get(address.lower()) if isinstance(data, dict) else None
        if not users:
            return None
        return users[0]

    async def get_profile(self, address: str, token_count: int) -> Optional[CreatorProfile]:
        if not self.api_key or not address:
            return None

        user = await self._fetch_user(address)
        if not user or not user.get('fid'):
            return None

        verified_addresses = (user.get('verified_addresses') or {}).get('eth_addresses') or []
        follower_count = user.get('follower_count') or 0
        rating, label = compute_creator_rating(
            user['fid'],
            follower_count,
            token_count,
            is_address_verified(address, verified_addresses),
        )

        return CreatorProfile(
            fid=user['fid'],
            username=user.get('username', ''),
            display_name=user.get('display_name', ''),
            pfp_url=user.get('pfp_url', ''),
            follower_count=follower_count,
            verified_addresses=list(verified_addresses),
            token_count=token_count,
            rating=rating,
            rating_label=label,
        )
