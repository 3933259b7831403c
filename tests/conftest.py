"""Pytest configuration and fixtures."""

from decimal import Decimal
from typing import Callable, Optional

import pytest

from config.settings import Settings
from reallocator.core.constants import MAX_UINT128, WAD, ZERO_ADDRESS
from reallocator.core.models import (
    Asset,
    FlowCaps,
    MarketData,
    MarketParams,
    MarketState,
    MetaMorphoVault,
    ReallocationData,
    Strategy,
    VaultPosition,
)
from reallocator.engine.targets import get_reallocation_data
from reallocator.protocols.morpho.config import INITIAL_RATE_AT_TARGET
from reallocator.protocols.morpho.irm import compute_market_chain_data

TIMESTAMP = 1_700_000_000
ADAPTIVE_IRM = "0x870ac11d48b15db9a138cf899d20f13f79ba00bc"
USDC_ADDRESS = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
# 1,000 USDC in raw units
THOUSAND_USDC = 1_000 * 10**6

_UNSET = object()


def market_id(index: int) -> str:
    """32-byte market id whose lexicographic and numeric orders agree."""
    return f"0x{index:064x}"


@pytest.fixture
def settings() -> Settings:
    """Settings with the production thresholds."""
    return Settings(
        reallocation_usd_threshold=Decimal("10000"),
        usd_flowcap_threshold=Decimal("50000"),
        default_supply_target_utilization=905 * 10**15,
    )


@pytest.fixture
def usdc() -> Asset:
    return Asset(address=USDC_ADDRESS, symbol="USDC", decimals=6, price_usd=Decimal("1"))


@pytest.fixture
def make_state() -> Callable[..., MarketState]:
    """Factory for market states last updated at TIMESTAMP."""

    def _make(supply: int, borrow: int, fee: int = 0) -> MarketState:
        return MarketState(
            total_supply_assets=supply,
            total_supply_shares=supply * 10**6,
            total_borrow_assets=borrow,
            total_borrow_shares=borrow * 10**6,
            last_update=TIMESTAMP,
            fee=fee,
        )

    return _make


@pytest.fixture
def make_market(usdc, make_state) -> Callable[..., MarketData]:
    """
    Factory for USDC markets evaluated at TIMESTAMP.

    `reallocation_data` defaults to what the strategy resolves to.
    """

    def _make(
        index: int,
        supply: int = 10_000 * THOUSAND_USDC,
        borrow: int = 8_000 * THOUSAND_USDC,
        strategy: Optional[Strategy] = None,
        reallocation_data=_UNSET,
        idle: bool = False,
        rate_at_target: int = INITIAL_RATE_AT_TARGET,
        fee: int = 0,
    ) -> MarketData:
        params = MarketParams(
            loan_token=USDC_ADDRESS,
            collateral_token=ZERO_ADDRESS if idle else f"0x{index:040x}",
            oracle=ZERO_ADDRESS if idle else f"0x{index + 1000:040x}",
            irm=ADAPTIVE_IRM,
            lltv=0 if idle else 86 * WAD // 100,
        )
        chain_data = compute_market_chain_data(
            make_state(supply, borrow, fee), rate_at_target, TIMESTAMP, params.irm
        )
        if strategy is None:
            strategy = Strategy(id=market_id(index), idle_market=idle)
        if reallocation_data is _UNSET:
            reallocation_data = get_reallocation_data(chain_data, strategy)

        return MarketData(
            id=market_id(index),
            name=f"USDC market {index}",
            market_params=params,
            chain_data=chain_data,
            loan_asset=usdc,
            strategy=strategy,
            reallocation_data=reallocation_data,
        )

    return _make


@pytest.fixture
def make_vault(usdc) -> Callable[..., MetaMorphoVault]:
    """
    Factory for a USDC vault.

    Each position is a tuple (market_data, supply_assets[, supply_cap[, flow_caps]]).
    Flow caps default to unbounded in both directions.
    """

    def _make(*positions, name: str = "Steakhouse USDC", total_assets_usd: Decimal = Decimal("0")):
        vault_positions = {}
        flow_caps = {}
        for position in positions:
            market_data, supply_assets = position[0], position[1]
            supply_cap = position[2] if len(position) > 2 else None
            caps = position[3] if len(position) > 3 else FlowCaps(MAX_UINT128, MAX_UINT128)
            vault_positions[market_data.id] = VaultPosition(
                market_data=market_data,
                supply_assets=supply_assets,
                supply_cap=supply_cap,
            )
            flow_caps[market_data.id] = caps

        return MetaMorphoVault(
            address="0xbeef01735c132ada46aa9aa4c54623caa92a64cb",
            name=name,
            underlying_asset=usdc,
            positions=vault_positions,
            flow_caps=flow_caps,
            total_assets_usd=total_assets_usd,
        )

    return _make


@pytest.fixture
def supply_data() -> Callable[[int], ReallocationData]:
    return lambda amount: ReallocationData(to_supply=amount)


@pytest.fixture
def withdraw_data() -> Callable[[int], ReallocationData]:
    return lambda amount: ReallocationData(to_supply=0, to_withdraw=amount)
