"""Morpho API and strategy API response parser.

Contains all parsing logic for converting API JSON into domain models. Raw
on-chain quantities stay integers; float fields of the API (fees, APYs) are
converted to WAD.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from reallocator.core.constants import MAX_UINT184, WAD, ZERO_ADDRESS
from reallocator.core.models import (
    ApyTarget,
    Asset,
    FlowCaps,
    MarketChainData,
    MarketData,
    MarketParams,
    MarketSnapshot,
    MarketState,
    MarketTargets,
    MetaMorphoVault,
    Range,
    SharedLiquidity,
    Strategy,
    UtilizationTarget,
    VaultPosition,
)
from reallocator.engine.targets import get_reallocation_data
from reallocator.errors import DataSourceError
from reallocator.protocols.morpho.irm import compute_market_chain_data
from reallocator.utils.formatting import format_vault_link, get_market_name

logger = logging.getLogger(__name__)


class MorphoParser:
    """Parser for Morpho GraphQL and strategy API responses."""

    @staticmethod
    def parse_decimal(value: Any) -> Decimal:
        """Safely parse a value to Decimal."""
        if value is None:
            return Decimal("0")
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise DataSourceError(f"Invalid number: {value!r}") from None

    @classmethod
    def parse_int(cls, value: Any) -> int:
        """Parse a raw integer amount, which the API may send as a string."""
        return int(cls.parse_decimal(value))

    @classmethod
    def parse_wad(cls, value: Any) -> int:
        """Convert a float fraction (e.g. 0.05) to WAD."""
        return int(cls.parse_decimal(value) * WAD)

    @classmethod
    def parse_asset(cls, data: Optional[Dict[str, Any]]) -> Optional[Asset]:
        if not data:
            return None
        return Asset(
            address=data.get("address", ZERO_ADDRESS),
            symbol=data.get("symbol", "???"),
            decimals=int(data.get("decimals", 18)),
            price_usd=cls.parse_decimal(data.get("priceUsd")),
        )

    @classmethod
    def parse_market_params(cls, data: Dict[str, Any]) -> MarketParams:
        loan_asset = data.get("loanAsset") or {}
        collateral_asset = data.get("collateralAsset") or {}
        return MarketParams(
            loan_token=loan_asset.get("address", ZERO_ADDRESS),
            collateral_token=collateral_asset.get("address", ZERO_ADDRESS),
            oracle=data.get("oracleAddress") or ZERO_ADDRESS,
            irm=data.get("irmAddress") or ZERO_ADDRESS,
            lltv=cls.parse_int(data.get("lltv")),
        )

    @classmethod
    def parse_market_state(cls, data: Dict[str, Any]) -> MarketState:
        return MarketState(
            total_supply_assets=cls.parse_int(data.get("supplyAssets")),
            total_supply_shares=cls.parse_int(data.get("supplyShares")),
            total_borrow_assets=cls.parse_int(data.get("borrowAssets")),
            total_borrow_shares=cls.parse_int(data.get("borrowShares")),
            last_update=cls.parse_int(data.get("timestamp")),
            fee=cls.parse_wad(data.get("fee")),
        )

    @classmethod
    def parse_market_chain_data(
        cls,
        data: Dict[str, Any],
        timestamp: Optional[int] = None,
    ) -> MarketChainData:
        """Market state accrued to `timestamp`, or left at its last update."""
        state_data = data.get("state")
        if not state_data:
            raise DataSourceError(f"Market {data.get('uniqueKey')} has no state")

        state = cls.parse_market_state(state_data)
        return compute_market_chain_data(
            state,
            cls.parse_int(state_data.get("rateAtTarget")),
            timestamp if timestamp is not None else state.last_update,
            data.get("irmAddress") or ZERO_ADDRESS,
        )

    @staticmethod
    def market_name(data: Dict[str, Any], lltv: int) -> str:
        loan_asset = data.get("loanAsset") or {}
        collateral_asset = data.get("collateralAsset") or {}
        return get_market_name(
            loan_asset.get("symbol", "???"),
            collateral_asset.get("symbol"),
            lltv,
        )

    # ========== STRATEGIES ==========

    @classmethod
    def parse_range(cls, data: Optional[Dict[str, Any]]) -> Optional[Range]:
        if not data:
            return None
        return Range(
            lower_bound=cls.parse_int(data.get("lowerBound")),
            upper_bound=cls.parse_int(data.get("upperBound")),
        )

    @classmethod
    def parse_strategy(cls, data: Dict[str, Any]) -> Strategy:
        """Parse a strategy of the targets API.

        A strategy sets either `utilizationTarget` or `targetBorrowApy`,
        each with an optional range.
        """
        target = None
        if data.get("utilizationTarget") is not None:
            target = UtilizationTarget(
                target=cls.parse_int(data["utilizationTarget"]),
                range=cls.parse_range(data.get("utilizationRange")),
            )
        elif data.get("targetBorrowApy") is not None:
            target = ApyTarget(
                target=cls.parse_int(data["targetBorrowApy"]),
                range=cls.parse_range(data.get("apyRange")),
            )

        return Strategy(
            id=data.get("id", ""),
            target=target,
            blacklist=bool(data.get("blacklist", False)),
            idle_market=bool(data.get("idleMarket", False)),
        )

    @classmethod
    def parse_strategies(cls, data: Iterable[Dict[str, Any]]) -> List[Strategy]:
        strategies = []
        for item in data:
            try:
                strategies.append(cls.parse_strategy(item))
            except DataSourceError as e:
                logger.warning(f"Skipping malformed strategy {item.get('id')}: {e}")
        return strategies

    # ========== MARKETS ==========

    @classmethod
    def parse_market_data(
        cls,
        data: Dict[str, Any],
        strategy: Optional[Strategy] = None,
        timestamp: Optional[int] = None,
    ) -> MarketData:
        """Parse a market with its strategy and resolved reallocation data."""
        market_params = cls.parse_market_params(data)
        chain_data = cls.parse_market_chain_data(data, timestamp)
        loan_asset = cls.parse_asset(data.get("loanAsset"))
        if loan_asset is None:
            raise DataSourceError(f"Market {data.get('uniqueKey')} has no loan asset")

        return MarketData(
            id=data.get("uniqueKey") or market_params.id,
            name=cls.market_name(data, market_params.lltv),
            market_params=market_params,
            chain_data=chain_data,
            loan_asset=loan_asset,
            collateral_asset=cls.parse_asset(data.get("collateralAsset")),
            strategy=strategy,
            reallocation_data=get_reallocation_data(chain_data, strategy),
        )

    @classmethod
    def parse_market_snapshot(
        cls,
        data: Optional[Dict[str, Any]],
        timestamp: Optional[int] = None,
    ) -> MarketSnapshot:
        if not data:
            raise DataSourceError("Market data not found")

        market_params = cls.parse_market_params(data)
        loan_asset = cls.parse_asset(data.get("loanAsset"))
        if loan_asset is None:
            raise DataSourceError(f"Market {data.get('uniqueKey')} has no loan asset")

        return MarketSnapshot(
            market_id=data.get("uniqueKey") or market_params.id,
            market_params=market_params,
            chain_data=cls.parse_market_chain_data(data, timestamp),
            loan_asset=loan_asset,
            collateral_asset=cls.parse_asset(data.get("collateralAsset")),
        )

    @classmethod
    def parse_shared_liquidity(cls, data: Optional[Dict[str, Any]]) -> List[SharedLiquidity]:
        """Parse `publicAllocatorSharedLiquidity`, keeping the API order."""
        if not data:
            return []

        shared = []
        for item in data.get("publicAllocatorSharedLiquidity") or []:
            vault = item.get("vault") or {}
            market = item.get("allocationMarket") or {}
            state_data = market.get("state") or {}
            shared.append(
                SharedLiquidity(
                    vault_address=vault.get("address", ""),
                    vault_name=vault.get("name", ""),
                    market_id=market.get("uniqueKey", ""),
                    market_params=cls.parse_market_params(market),
                    assets=cls.parse_int(item.get("assets")),
                    market_state=cls.parse_market_state(state_data),
                    rate_at_target=cls.parse_int(state_data.get("rateAtTarget")),
                )
            )
        return shared

    @classmethod
    def parse_market_targets(cls, data: Dict[str, Any]) -> MarketTargets:
        """Parse per market PublicAllocator targets; unset targets are skipped."""
        supply_targets = {}
        withdrawal_targets = {}
        for market in (data.get("markets") or {}).get("items") or []:
            key = market.get("uniqueKey")
            if market.get("targetBorrowUtilization") is not None:
                supply_targets[key] = cls.parse_int(market["targetBorrowUtilization"])
            if market.get("targetWithdrawUtilization") is not None:
                withdrawal_targets[key] = cls.parse_int(market["targetWithdrawUtilization"])

        vaults = (data.get("vaults") or {}).get("items") or []
        return MarketTargets(
            supply_target_utilization=supply_targets,
            max_withdrawal_utilization=withdrawal_targets,
            reallocatable_vaults=tuple(v.get("address", "") for v in vaults),
        )

    # ========== VAULTS ==========

    @classmethod
    def parse_vault(
        cls,
        data: Dict[str, Any],
        strategies: Dict[str, Strategy],
        network_id: int,
        timestamp: Optional[int] = None,
    ) -> MetaMorphoVault:
        """
        Parse a vault with its positions in curated, non blacklisted markets.

        Markets without a flow cap entry get zero flow caps. A supply cap at
        the uint184 maximum means no cap.
        """
        asset = cls.parse_asset(data.get("asset"))
        if asset is None:
            raise DataSourceError(f"Vault {data.get('address')} has no asset")

        flow_caps = {}
        allocator_config = data.get("publicAllocatorConfig") or {}
        for item in allocator_config.get("flowCaps") or []:
            market_id = (item.get("market") or {}).get("uniqueKey", "")
            flow_caps[market_id] = FlowCaps(
                max_in=cls.parse_int(item.get("maxIn")),
                max_out=cls.parse_int(item.get("maxOut")),
            )

        positions = {}
        state_data = data.get("state") or {}
        for allocation in state_data.get("allocation") or []:
            market = allocation.get("market") or {}
            market_id = market.get("uniqueKey", "")
            strategy = strategies.get(market_id)
            if strategy is None or strategy.blacklist:
                continue

            supply_cap = cls.parse_int(allocation.get("supplyCap"))
            positions[market_id] = VaultPosition(
                market_data=cls.parse_market_data(market, strategy, timestamp),
                supply_assets=cls.parse_int(allocation.get("supplyAssets")),
                supply_cap=None if supply_cap >= MAX_UINT184 else supply_cap,
            )
            flow_caps.setdefault(market_id, FlowCaps(max_in=0, max_out=0))

        address = data.get("address", "")
        return MetaMorphoVault(
            address=address,
            name=data.get("name", ""),
            underlying_asset=asset,
            positions=positions,
            flow_caps=flow_caps,
            total_assets_usd=cls.parse_decimal(state_data.get("totalAssetsUsd")),
            link=format_vault_link(address, network_id),
        )
