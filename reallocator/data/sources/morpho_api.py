"""Morpho GraphQL API client."""

import logging
from typing import Any, Dict, List, Optional, Sequence

from aiolimiter import AsyncLimiter
from gql import Client, gql
from gql.transport.aiohttp import AIOHTTPTransport

from config.settings import Settings, get_settings
from reallocator.core.models import MarketTargets
from reallocator.data.parser import MorphoParser
from reallocator.errors import DataSourceError
from reallocator.protocols.morpho.queries import MorphoQueries

logger = logging.getLogger(__name__)


class MorphoAPIClient:
    """GraphQL client for Morpho Blue API."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._rate_limiter = AsyncLimiter(
            self.settings.api_rate_limit, self.settings.api_rate_window
        )
        self._parser = MorphoParser()

    async def _execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a GraphQL query with rate limiting."""
        async with self._rate_limiter:
            # Fresh transport per request, sessions are not shared across event loops
            transport = AIOHTTPTransport(
                url=self.settings.morpho_api_url,
                timeout=self.settings.request_timeout_seconds,
            )
            client = Client(transport=transport, fetch_schema_from_transport=False)
            async with client as session:
                return await session.execute(gql(query), variable_values=variables)

    async def fetch_market_simulation_data(self, market_id: str, chain_id: int) -> Dict[str, Any]:
        """
        Fetch a market with the liquidity vaults share with it.

        Args:
            market_id: Market unique key
            chain_id: Chain the market lives on

        Returns:
            Raw `marketByUniqueKey` payload

        Raises:
            DataSourceError: If the request fails or the market is unknown
        """
        try:
            result = await self._execute(
                MorphoQueries.MARKET_SIMULATION_QUERY,
                {"uniqueKey": market_id, "chainId": chain_id},
            )
        except Exception as e:
            logger.error(f"Failed to fetch simulation data for market {market_id}: {e}")
            raise DataSourceError(f"Failed to fetch market {market_id}: {e}") from e

        market = result.get("marketByUniqueKey")
        if not market:
            raise DataSourceError(f"Market {market_id} not found on chain {chain_id}")
        return market

    async def fetch_markets(self, market_ids: Sequence[str], chain_id: int) -> List[Dict[str, Any]]:
        """Fetch raw market payloads by unique key."""
        if not market_ids:
            return []

        try:
            result = await self._execute(
                MorphoQueries.MARKETS_BY_KEYS_QUERY,
                {"uniqueKeys": list(market_ids), "chainId": chain_id, "first": len(market_ids)},
            )
        except Exception as e:
            logger.error(f"Failed to fetch markets: {e}")
            raise DataSourceError(f"Failed to fetch markets: {e}") from e

        items = (result.get("markets") or {}).get("items") or []
        logger.info(f"Fetched {len(items)}/{len(market_ids)} markets on chain {chain_id}")
        return items

    async def fetch_supplying_vaults(self, market_id: str, chain_id: int) -> List[Dict[str, Any]]:
        """Fetch raw payloads of the vaults supplying into a market."""
        try:
            result = await self._execute(
                MorphoQueries.SUPPLYING_VAULTS_QUERY,
                {"uniqueKey": market_id, "chainId": chain_id},
            )
        except Exception as e:
            logger.error(f"Failed to fetch vaults supplying {market_id}: {e}")
            raise DataSourceError(f"Failed to fetch vaults supplying {market_id}: {e}") from e

        market = result.get("marketByUniqueKey") or {}
        return market.get("supplyingVaults") or []

    async def fetch_market_targets(self, chain_id: int) -> MarketTargets:
        """
        Fetch per market PublicAllocator targets.

        Targets are optional: on failure an empty MarketTargets is returned
        and callers fall back to the configured defaults.
        """
        try:
            result = await self._execute(MorphoQueries.MARKET_TARGETS_QUERY, {"chainId": chain_id})
        except Exception as e:
            logger.error(f"Failed to fetch market targets on chain {chain_id}: {e}")
            return MarketTargets()
        return self._parser.parse_market_targets(result)

    async def close(self):
        """Nothing to release, transports are closed per request."""
