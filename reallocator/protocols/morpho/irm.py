"""AdaptiveCurveIRM calculations for Morpho Blue.

Integer rendition of the on-chain model: every rate is a WAD-scaled per
second rate and every APY is annualized with Taylor compounding.

Reference: https://docs.morpho.org/morpho/concepts/irm
"""

import logging
from dataclasses import replace
from typing import List, Tuple

from reallocator.core.constants import SECONDS_PER_YEAR, WAD, ZERO_ADDRESS
from reallocator.core.models import Apys, MarketChainData, MarketState
from reallocator.protocols.morpho.config import (
    ADJUSTMENT_SPEED,
    CURVE_STEEPNESS,
    INITIAL_RATE_AT_TARGET,
    MAX_RATE_AT_TARGET,
    MIN_RATE_AT_TARGET,
    TARGET_UTILIZATION,
)
from reallocator.protocols.morpho.fixed_point import (
    mul_div_down,
    to_shares_down,
    w_div_down,
    w_exp,
    w_mul_down,
    w_taylor_compounded,
)

logger = logging.getLogger(__name__)


def compute_utilization(total_borrow: int, total_supply: int) -> int:
    """Utilization scaled by WAD, 0 for an empty market."""
    if total_supply == 0:
        return 0
    return w_div_down(total_borrow, total_supply)


def _utilization_error(utilization: int) -> int:
    """Distance to the target utilization, normalized to [-WAD, WAD]."""
    if utilization > TARGET_UTILIZATION:
        err_norm_factor = WAD - TARGET_UTILIZATION
    else:
        err_norm_factor = TARGET_UTILIZATION
    return w_div_down(utilization - TARGET_UTILIZATION, err_norm_factor)


def _new_rate_at_target(start_rate_at_target: int, linear_adaptation: int) -> int:
    rate_at_target = w_mul_down(start_rate_at_target, w_exp(linear_adaptation))
    return max(MIN_RATE_AT_TARGET, min(MAX_RATE_AT_TARGET, rate_at_target))


def compute_adapted_rates(
    market_state: MarketState,
    start_rate_at_target: int,
    timestamp: int,
) -> Tuple[int, int]:
    """
    Adapt the rate at target over the time elapsed since the last update.

    The rate drifts exponentially up while utilization is above target and
    down while below, at a speed proportional to the normalized error. The
    average over the period is approximated with the trapezoidal rule on the
    start, mid and end rates, as the on-chain `borrowRateView` does.

    Args:
        market_state: Market state at its last update
        start_rate_at_target: Rate at target stored on-chain (per second, WAD)
        timestamp: Unix timestamp to adapt to

    Returns:
        Tuple of (average, end) rates at target, each clamped to
        [MIN_RATE_AT_TARGET, MAX_RATE_AT_TARGET]
    """
    utilization = compute_utilization(
        market_state.total_borrow_assets, market_state.total_supply_assets
    )
    err = _utilization_error(utilization)
    speed = w_mul_down(ADJUSTMENT_SPEED, err)
    elapsed = timestamp - market_state.last_update

    linear_adaptation = speed * elapsed
    if linear_adaptation == 0:
        return start_rate_at_target, start_rate_at_target

    end_rate_at_target = _new_rate_at_target(start_rate_at_target, linear_adaptation)
    mid_rate_at_target = _new_rate_at_target(
        start_rate_at_target, mul_div_down(linear_adaptation, 1, 2)
    )
    average_rate_at_target = (
        start_rate_at_target + end_rate_at_target + 2 * mid_rate_at_target
    ) // 4
    return average_rate_at_target, end_rate_at_target


def compute_rate_at_target(
    market_state: MarketState,
    start_rate_at_target: int,
    timestamp: int,
) -> int:
    """Rate at target at `timestamp`, see `compute_adapted_rates`."""
    return compute_adapted_rates(market_state, start_rate_at_target, timestamp)[1]


def accrue_interest(timestamp: int, market_state: MarketState, borrow_rate: int) -> MarketState:
    """
    Accrue borrow interest from the last update up to `timestamp`.

    Interest increases both totals. The fee part is minted as supply shares
    to the fee recipient.

    Args:
        timestamp: Unix timestamp to accrue to
        market_state: Market state at its last update
        borrow_rate: Borrow rate per second (WAD)

    Returns:
        A new MarketState; the input is returned unchanged when nothing accrues
    """
    elapsed = timestamp - market_state.last_update
    if elapsed == 0 or market_state.total_borrow_assets == 0:
        return market_state

    interest = w_mul_down(
        market_state.total_borrow_assets, w_taylor_compounded(borrow_rate, elapsed)
    )
    accrued = replace(
        market_state,
        total_borrow_assets=market_state.total_borrow_assets + interest,
        total_supply_assets=market_state.total_supply_assets + interest,
        last_update=timestamp,
    )

    if accrued.fee == 0:
        return accrued

    fee_amount = w_mul_down(interest, accrued.fee)
    # Total supply already includes the fee part of the interest
    fee_shares = to_shares_down(
        fee_amount,
        accrued.total_supply_assets - fee_amount,
        accrued.total_supply_shares,
    )
    return replace(accrued, total_supply_shares=accrued.total_supply_shares + fee_shares)


def compute_borrow_rate(irm: str, utilization: int, rate_at_target: int) -> int:
    """
    Borrow rate per second on the kinked curve around the target utilization.

    Above target the rate goes linearly from `rate_at_target` to
    CURVE_STEEPNESS times it at full utilization. Below target it goes
    linearly down to `rate_at_target / CURVE_STEEPNESS` at zero utilization.

    Args:
        irm: Address of the market IRM; the zero address means no interest
        utilization: Utilization (WAD)
        rate_at_target: Rate at target (per second, WAD)

    Returns:
        Borrow rate per second (WAD)
    """
    if irm.lower() == ZERO_ADDRESS:
        return 0

    err = _utilization_error(utilization)
    if err < 0:
        coeff = WAD - w_div_down(WAD, CURVE_STEEPNESS)
    else:
        coeff = CURVE_STEEPNESS - WAD
    return w_mul_down(w_mul_down(coeff, err) + WAD, rate_at_target)


def compute_new_borrow_apy(irm: str, new_utilization: int, rate_at_target: int) -> int:
    """Annualized borrow APY at `new_utilization` (WAD)."""
    borrow_rate = compute_borrow_rate(irm, new_utilization, rate_at_target)
    return w_taylor_compounded(borrow_rate, SECONDS_PER_YEAR)


def compute_new_supply_apy(
    irm: str,
    new_utilization: int,
    rate_at_target: int,
    fee: int = 0,
) -> int:
    """Annualized supply APY at `new_utilization`, optionally net of the market fee."""
    borrow_apy = compute_new_borrow_apy(irm, new_utilization, rate_at_target)
    supply_apy = w_mul_down(borrow_apy, new_utilization)
    if fee:
        supply_apy = w_mul_down(supply_apy, WAD - fee)
    return supply_apy


def compute_market_chain_data(
    market_state: MarketState,
    start_rate_at_target: int,
    timestamp: int,
    irm: str,
) -> MarketChainData:
    """
    Bring an on-chain snapshot up to `timestamp` and derive its rates.

    The borrow rate is evaluated at the current utilization with the rate at
    target averaged over the elapsed period, interest is accrued with it, and
    APYs are read from the accrued state. The returned rate at target is the
    one reached at `timestamp`.

    Args:
        market_state: Market state as read on-chain
        start_rate_at_target: Rate at target as read on-chain (per second, WAD)
        timestamp: Current block timestamp
        irm: Address of the market IRM

    Returns:
        MarketChainData with the accrued state
    """
    if irm.lower() == ZERO_ADDRESS:
        average_rate_at_target = rate_at_target = 0
    elif start_rate_at_target == 0:
        # First interaction with the IRM
        average_rate_at_target = rate_at_target = INITIAL_RATE_AT_TARGET
    else:
        average_rate_at_target, rate_at_target = compute_adapted_rates(
            market_state, start_rate_at_target, timestamp
        )

    borrow_rate = compute_borrow_rate(irm, market_state.utilization, average_rate_at_target)
    accrued = market_state
    if borrow_rate != 0:
        accrued = accrue_interest(timestamp, market_state, borrow_rate)

    utilization = compute_utilization(accrued.total_borrow_assets, accrued.total_supply_assets)
    borrow_apy = w_taylor_compounded(borrow_rate, SECONDS_PER_YEAR)
    apys = Apys(
        borrow_apy=borrow_apy,
        supply_apy=w_mul_down(w_mul_down(borrow_apy, utilization), WAD - accrued.fee),
    )
    logger.debug(
        f"Accrued market to {timestamp}: utilization={utilization}, "
        f"rate_at_target={rate_at_target}, borrow_apy={apys.borrow_apy}"
    )

    return MarketChainData(
        market_state=accrued,
        borrow_rate=borrow_rate,
        rate_at_target=rate_at_target,
        apys=apys,
    )


def generate_rate_curve(
    irm: str,
    rate_at_target: int,
    fee: int = 0,
    num_points: int = 101,
) -> Tuple[List[int], List[int], List[int]]:
    """
    Sweep the borrow and supply APY curve from 0% to 100% utilization.

    Args:
        irm: Address of the market IRM
        rate_at_target: Rate at target (per second, WAD)
        fee: Market fee (WAD)
        num_points: Number of points, evenly spaced, both ends included

    Returns:
        Tuple of (utilizations, borrow_apys, supply_apys), all WAD scaled
    """
    if num_points < 2:
        raise ValueError("num_points must be at least 2")

    utilizations = []
    borrow_apys = []
    supply_apys = []

    for i in range(num_points):
        utilization = WAD * i // (num_points - 1)
        utilizations.append(utilization)
        borrow_apys.append(compute_new_borrow_apy(irm, utilization, rate_at_target))
        supply_apys.append(compute_new_supply_apy(irm, utilization, rate_at_target, fee))

    return utilizations, borrow_apys, supply_apys
