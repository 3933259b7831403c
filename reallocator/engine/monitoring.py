"""Scans over curated markets and vault flow caps."""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional

from config.settings import Settings, get_settings
from reallocator.core.constants import MAX_UINT128
from reallocator.core.models import (
    ApyTarget,
    BoundsBreach,
    Link,
    MarketData,
    MarketFlowCaps,
    MetaMorphoVault,
    OutOfBoundsMarket,
    Strategy,
    UtilizationTarget,
    VaultFlowCaps,
)
from reallocator.engine.targets import compute_supply_value, compute_withdraw_value
from reallocator.protocols.morpho.fixed_point import w_div_down
from reallocator.utils.formatting import format_market_link

logger = logging.getLogger(__name__)


def _apy_breach(market: MarketData, target: ApyTarget) -> Optional[BoundsBreach]:
    """Borrow APY outside the target range.

    Both bounds, the lower one included, are checked against the borrow
    APY rather than the supply APY, so a breach always reports a distance
    in the same unit as the target.
    """
    borrow_apy = market.chain_data.apys.borrow_apy
    if target.range is None or target.target == 0 or target.range.contains(borrow_apy):
        return None
    return BoundsBreach(
        target=target,
        range=target.range,
        distance_to_target=w_div_down(abs(target.target - borrow_apy), target.target),
        upper_bound_crossed=borrow_apy > target.range.upper_bound,
    )


def _utilization_breach(market: MarketData, target: UtilizationTarget) -> Optional[BoundsBreach]:
    utilization = market.chain_data.utilization
    if target.range is None or target.target == 0 or target.range.contains(utilization):
        return None
    return BoundsBreach(
        target=target,
        range=target.range,
        distance_to_target=w_div_down(abs(target.target - utilization), target.target),
        upper_bound_crossed=utilization > target.range.upper_bound,
    )


def _amount_to_reach_target(market: MarketData, breach: BoundsBreach) -> Optional[int]:
    state = market.chain_data.market_state
    target = breach.target

    if isinstance(target, ApyTarget):
        if breach.upper_bound_crossed:
            return compute_supply_value(market.chain_data, target.target).amount
        return compute_withdraw_value(market.chain_data, target.target).amount

    supply_at_target = w_div_down(state.total_borrow_assets, target.target)
    if breach.upper_bound_crossed:
        return supply_at_target - state.total_supply_assets
    return state.total_supply_assets - supply_at_target


def find_out_of_bounds_markets(
    markets: Iterable[MarketData],
    network_id: int,
) -> List[OutOfBoundsMarket]:
    """
    Markets whose borrow APY or utilization left their strategy range.

    Blacklisted and idle markets, markets without a range and markets with a
    zero target are ignored.

    Args:
        markets: Markets with their strategy
        network_id: Chain id used for links

    Returns:
        Out of bounds markets, furthest from target first
    """
    out_of_bounds = []

    for market in markets:
        strategy = market.strategy
        if strategy is None or strategy.blacklist or strategy.idle_market:
            continue

        target = strategy.target
        if isinstance(target, ApyTarget):
            breach = _apy_breach(market, target)
        elif isinstance(target, UtilizationTarget):
            breach = _utilization_breach(market, target)
        else:
            breach = None
        if breach is None:
            continue

        logger.debug(
            f"Market {market.id} out of bounds, distance to target {breach.distance_to_target}"
        )
        out_of_bounds.append(
            OutOfBoundsMarket(
                id=market.id,
                name=market.name,
                link=Link(name=market.name, url=format_market_link(market.id, network_id)),
                loan_asset=market.loan_asset,
                collateral_asset=market.collateral_asset,
                total_supply_usd=market.loan_asset.to_usd(
                    market.chain_data.market_state.total_supply_assets
                ),
                utilization=market.chain_data.utilization,
                chain_data=market.chain_data,
                breach=breach,
                amount_to_reach_target=_amount_to_reach_target(market, breach),
            )
        )

    logger.info(f"Found {len(out_of_bounds)} out of bounds markets")
    return sorted(out_of_bounds, key=lambda m: m.breach.distance_to_target, reverse=True)


def find_markets_without_strategy(strategies: Iterable[Strategy]) -> List[Strategy]:
    """Strategies that are neither blacklisted nor idle and carry a zero target."""
    return [
        strategy
        for strategy in strategies
        if not strategy.blacklist
        and not strategy.idle_market
        and strategy.target is not None
        and strategy.target.target == 0
    ]


def compute_vault_flow_caps(
    vault: MetaMorphoVault,
    settings: Optional[Settings] = None,
) -> VaultFlowCaps:
    """
    USD view of a vault's flow caps.

    A market is flagged missing when either flow cap is worth less than the
    configured USD threshold.
    """
    settings = settings or get_settings()
    threshold: Decimal = settings.usd_flowcap_threshold

    markets = []
    for market_id in sorted(vault.positions):
        position = vault.positions[market_id]
        flow_caps = vault.flow_caps[market_id]
        max_in_usd = vault.usd_value(flow_caps.max_in)
        max_out_usd = vault.usd_value(flow_caps.max_out)
        supply_cap_usd = (
            vault.usd_value(position.supply_cap) if position.supply_cap is not None else None
        )

        markets.append(
            MarketFlowCaps(
                id=market_id,
                name=position.market_data.name,
                max_in_usd=max_in_usd,
                max_out_usd=max_out_usd,
                supply_assets_usd=vault.usd_value(position.supply_assets),
                supply_cap_usd=supply_cap_usd,
                max_in_unbounded=flow_caps.max_in >= MAX_UINT128,
                missing=max_in_usd < threshold or max_out_usd < threshold,
                idle=position.market_data.is_idle,
            )
        )

    result = VaultFlowCaps(
        address=vault.address,
        name=vault.name,
        total_assets_usd=vault.total_assets_usd,
        markets=markets,
    )
    if result.missing_flow_caps:
        logger.warning(f"Vault {vault.name} has missing flow caps")
    return result
