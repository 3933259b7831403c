"""Resolve market targets into amounts to supply, withdraw or borrow.

A strategy sets either a utilization target or a borrow APY target. The
functions here invert the IRM curve to find the utilization a target implies
and turn the gap into asset amounts, leaving markets alone while they sit in
a small dead band around their target.
"""

import logging
from typing import Optional

from reallocator.core.constants import SECONDS_PER_YEAR, WAD
from reallocator.core.models import (
    ApyTarget,
    InteractionData,
    MarketChainData,
    ReallocationData,
    Strategy,
    UtilizationTarget,
)
from reallocator.protocols.morpho.config import CURVE_STEEPNESS, TARGET_UTILIZATION
from reallocator.protocols.morpho.fixed_point import (
    mul_div_down,
    percent_of,
    w_div_down,
    w_mul_down,
)

logger = logging.getLogger(__name__)

# Borrow APY dead band around an APY target, in percent of the target
REALLOCATION_DIST_THRESHOLD = 5
# Utilization dead band around a utilization target, in percent of the target
REALLOCATION_THRESHOLD_PERCENT = 2
# Share of the current liquidity a withdrawal or borrow may take
LIQUIDITY_BUFFER_PERCENT = 95

_NEWTON_MAX_ITERATIONS = 8


def get_rate_from_apy(apy: int) -> int:
    """
    Per second borrow rate whose Taylor-compounded APY is `apy`.

    Starts from the log series ln(1 + apy) and refines it with Newton steps on
    the three-term compounding polynomial, so the rate maps back onto `apy`
    through `w_taylor_compounded` rather than through a true exponential.

    Args:
        apy: Annual percentage yield (WAD)

    Returns:
        Rate per second (WAD)
    """
    if apy <= 0:
        return 0

    apy_squared = w_mul_down(apy, apy)
    yearly = apy - apy_squared // 2 + w_mul_down(apy_squared, apy) // 3

    for _ in range(_NEWTON_MAX_ITERATIONS):
        second = mul_div_down(yearly, yearly, 2 * WAD)
        third = mul_div_down(second, yearly, 3 * WAD)
        residual = yearly + second + third - apy
        slope = WAD + yearly + second
        step = mul_div_down(residual, WAD, slope)
        if step == 0:
            break
        yearly -= step

    return yearly // SECONDS_PER_YEAR


def compute_new_utilization(wanted_rate: int, rate_at_target: int) -> int:
    """
    Utilization at which the kinked curve yields `wanted_rate`.

    Args:
        wanted_rate: Borrow rate per second (WAD)
        rate_at_target: Rate at target of the market (per second, WAD)

    Returns:
        Utilization (WAD), 0 or WAD when the rate is outside the curve
    """
    max_rate = w_mul_down(rate_at_target, CURVE_STEEPNESS)
    min_rate = w_div_down(rate_at_target, CURVE_STEEPNESS)

    if wanted_rate >= max_rate:
        return WAD
    if wanted_rate >= rate_at_target:
        return TARGET_UTILIZATION + mul_div_down(
            WAD - TARGET_UTILIZATION,
            wanted_rate - rate_at_target,
            max_rate - rate_at_target,
        )
    if wanted_rate > min_rate:
        return mul_div_down(
            TARGET_UTILIZATION,
            wanted_rate - min_rate,
            rate_at_target - min_rate,
        )
    return 0


def _utilization_for_apy(chain_data: MarketChainData, wanted_apy: int) -> int:
    return compute_new_utilization(get_rate_from_apy(wanted_apy), chain_data.rate_at_target)


def compute_supply_value(chain_data: MarketChainData, wanted_apy: int) -> InteractionData:
    """Assets to supply, borrows unchanged, for the borrow APY to reach `wanted_apy`.

    The amount is None when the target utilization is 0: any supply helps.
    """
    state = chain_data.market_state
    new_utilization = _utilization_for_apy(chain_data, wanted_apy)
    if new_utilization == 0:
        return InteractionData(amount=None, new_utilization=0)

    new_supply = w_div_down(state.total_borrow_assets, new_utilization)
    return InteractionData(
        amount=max(new_supply - state.total_supply_assets, 0),
        new_utilization=new_utilization,
    )


def compute_withdraw_value(chain_data: MarketChainData, wanted_apy: int) -> InteractionData:
    """Assets to withdraw, borrows unchanged, for the borrow APY to reach `wanted_apy`."""
    state = chain_data.market_state
    new_utilization = _utilization_for_apy(chain_data, wanted_apy)
    if new_utilization == 0:
        return InteractionData(amount=0, new_utilization=0)

    new_supply = w_div_down(state.total_borrow_assets, new_utilization)
    return InteractionData(
        amount=max(state.total_supply_assets - new_supply, 0),
        new_utilization=new_utilization,
    )


def compute_borrow_value(chain_data: MarketChainData, wanted_apy: int) -> InteractionData:
    """Assets to borrow, supply unchanged, for the borrow APY to reach `wanted_apy`."""
    state = chain_data.market_state
    new_utilization = _utilization_for_apy(chain_data, wanted_apy)
    new_borrow = w_mul_down(state.total_supply_assets, new_utilization)
    return InteractionData(
        amount=max(new_borrow - state.total_borrow_assets, 0),
        new_utilization=new_utilization,
    )


def compute_reallocation_data(chain_data: MarketChainData, target: ApyTarget) -> ReallocationData:
    """
    Amounts that move the borrow APY back to an APY target.

    Nothing happens while the borrow APY stays within REALLOCATION_DIST_THRESHOLD
    percent of the target. Withdrawals and borrows never take more than
    LIQUIDITY_BUFFER_PERCENT of the current liquidity.

    Args:
        chain_data: Market data accrued to the current block
        target: Borrow APY target

    Returns:
        ReallocationData with the side that applies filled in
    """
    borrow_apy = chain_data.apys.borrow_apy
    lower_bound = percent_of(target.target, 100 - REALLOCATION_DIST_THRESHOLD)
    upper_bound = percent_of(target.target, 100 + REALLOCATION_DIST_THRESHOLD)

    if borrow_apy <= lower_bound:
        max_amount = percent_of(chain_data.market_state.liquidity, LIQUIDITY_BUFFER_PERCENT)
        to_withdraw = compute_withdraw_value(chain_data, target.target).amount
        to_borrow = compute_borrow_value(chain_data, target.target).amount
        return ReallocationData(
            to_supply=0,
            to_withdraw=min(to_withdraw, max_amount),
            to_borrow=min(to_borrow, max_amount),
        )

    if borrow_apy > upper_bound:
        return ReallocationData(
            to_supply=compute_supply_value(chain_data, target.target).amount,
        )

    return ReallocationData()


def compute_utilization_reallocation_data(
    chain_data: MarketChainData,
    target: UtilizationTarget,
) -> Optional[ReallocationData]:
    """
    Amounts that move utilization back to a utilization target.

    Acts only once the relative distance to the target exceeds
    REALLOCATION_THRESHOLD_PERCENT. Below target, `to_borrow` is the extra
    borrow that would reach the target with supply unchanged.

    Returns:
        ReallocationData, or None for a zero target
    """
    utilization_target = target.target
    if utilization_target == 0:
        return None

    state = chain_data.market_state
    utilization = state.utilization
    distance = w_div_down(abs(utilization_target - utilization), utilization_target)
    if distance <= WAD * REALLOCATION_THRESHOLD_PERCENT // 100:
        return ReallocationData()

    supply_at_target = w_div_down(state.total_borrow_assets, utilization_target)

    if utilization > utilization_target:
        return ReallocationData(
            to_supply=max(supply_at_target - state.total_supply_assets, 0),
        )

    return ReallocationData(
        to_supply=0,
        to_withdraw=max(state.total_supply_assets - supply_at_target, 0),
        to_borrow=max(
            w_mul_down(state.total_supply_assets, utilization_target) - state.total_borrow_assets,
            0,
        ),
    )


def get_reallocation_data(
    chain_data: MarketChainData,
    strategy: Optional[Strategy],
) -> Optional[ReallocationData]:
    """
    Resolve a market strategy into the amounts that would bring it to target.

    Args:
        chain_data: Market data accrued to the current block
        strategy: Curated strategy of the market, if any

    Returns:
        None for markets without strategy, blacklisted or without target.
        Idle markets can always be fully withdrawn and take any supply.
    """
    if strategy is None or strategy.blacklist:
        return None

    if strategy.idle_market:
        return ReallocationData(
            to_supply=None,
            to_withdraw=chain_data.market_state.total_supply_assets,
            to_borrow=0,
        )

    target = strategy.target
    if isinstance(target, UtilizationTarget):
        data = compute_utilization_reallocation_data(chain_data, target)
    elif isinstance(target, ApyTarget) and target.target != 0:
        data = compute_reallocation_data(chain_data, target)
    else:
        data = None

    logger.debug(f"Reallocation data for {strategy.id}: {data}")
    return data
