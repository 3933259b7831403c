"""Client for the curated strategy targets API."""

import asyncio
import logging
from typing import List, Optional

import aiohttp

from config.settings import Settings, get_settings
from reallocator.core.models import Strategy
from reallocator.data.parser import MorphoParser

logger = logging.getLogger(__name__)


class StrategyClient:
    """
    Fetches per market strategies (targets, ranges, blacklist, idle flag).

    The targets API is best effort: failures are logged and yield no
    strategies, which leaves every market without a target.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._session: Optional[aiohttp.ClientSession] = None
        self._parser = MorphoParser()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
            )
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def fetch_strategies(self, chain_id: int) -> List[Strategy]:
        """Fetch the strategies of every curated market on a chain."""
        session = await self._get_session()
        try:
            async with session.get(
                self.settings.targets_api_url, params={"chainId": chain_id}
            ) as resp:
                if resp.status != 200:
                    logger.error(f"Targets API returned {resp.status} for chain {chain_id}")
                    return []
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to fetch strategies for chain {chain_id}: {e}")
            return []

        if isinstance(data, dict):
            data = data.get("strategies") or data.get("data") or []
        strategies = self._parser.parse_strategies(data)
        logger.info(f"Fetched {len(strategies)} strategies for chain {chain_id}")
        return strategies
