"""Borrow simulations with PublicAllocator shared liquidity.

Projects what happens to a market when a borrower takes liquidity from it:
if the borrow pushes utilization above the supply target, liquidity shared
by vaults through the PublicAllocator is reallocated into the market first.
The pure functions work on snapshots; MarketSimulationService fetches them.
"""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from config.settings import Settings, get_settings
from reallocator.core.constants import WAD
from reallocator.core.models import (
    BorrowSimulation,
    MarketProjection,
    MarketSimulationResult,
    MarketSnapshot,
    MarketState,
    ReallocationSummary,
    SharedLiquidity,
    SharedWithdrawal,
    SimulationReason,
    SimulationResults,
    SimulationSeries,
    TargetMarketSimulation,
)
from reallocator.data.parser import MorphoParser
from reallocator.errors import DataSourceError
from reallocator.protocols.morpho.fixed_point import w_div_down, w_mul_up
from reallocator.protocols.morpho.irm import compute_new_borrow_apy, compute_utilization

if TYPE_CHECKING:
    from reallocator.data.sources.morpho_api import MorphoAPIClient

logger = logging.getLogger(__name__)

DEFAULT_SUPPLY_TARGET_UTILIZATION = 905 * 10**15  # 90.5%
DEFAULT_SERIES_STEPS = 21


def max_borrow_without_reallocation(
    market_state: MarketState,
    supply_target_utilization: int = DEFAULT_SUPPLY_TARGET_UTILIZATION,
) -> int:
    """Largest borrow that keeps utilization at or below the supply target."""
    return w_mul_up(supply_target_utilization, market_state.total_supply_assets) - (
        market_state.total_borrow_assets
    )


def allocate_shared_liquidity(
    shared_liquidity: Sequence[SharedLiquidity],
    required_assets: int,
) -> List[SharedWithdrawal]:
    """
    Take shared liquidity in the order given until `required_assets` is met.

    Returns:
        Withdrawals, the last one possibly partial
    """
    withdrawals = []
    remaining = required_assets

    for shared in shared_liquidity:
        if remaining <= 0:
            break
        if shared.assets <= 0:
            continue
        amount = min(shared.assets, remaining)
        withdrawals.append(
            SharedWithdrawal(
                vault_address=shared.vault_address,
                market_id=shared.market_id,
                market_params=shared.market_params,
                amount=amount,
                source_market_liquidity=shared.market_state.liquidity,
            )
        )
        remaining -= amount

    return withdrawals


def _projection(
    irm: str,
    state: MarketState,
    rate_at_target: int,
    amount: int = 0,
) -> MarketProjection:
    utilization = compute_utilization(state.total_borrow_assets, state.total_supply_assets)
    return MarketProjection(
        liquidity=state.liquidity,
        borrow_apy=compute_new_borrow_apy(irm, utilization, rate_at_target),
        utilization=utilization,
        amount=amount,
    )


def _supply(state: MarketState, assets: int) -> MarketState:
    return replace(state, total_supply_assets=state.total_supply_assets + assets)


def _borrow(state: MarketState, assets: int) -> MarketState:
    return replace(state, total_borrow_assets=state.total_borrow_assets + assets)


def _project_borrow(
    snapshot: MarketSnapshot,
    shared_liquidity: Sequence[SharedLiquidity],
    borrow_amount: int,
    supply_target_utilization: int,
) -> Tuple[MarketState, List[SharedWithdrawal], int]:
    """Reallocate what the borrow needs, then borrow as much as the market allows.

    Returns:
        Tuple of (market state after borrow, withdrawals, assets borrowed)
    """
    state = snapshot.market_state
    new_total_borrow = state.total_borrow_assets + borrow_amount

    withdrawals: List[SharedWithdrawal] = []
    if compute_utilization(new_total_borrow, state.total_supply_assets) > supply_target_utilization:
        required_assets = (
            w_div_down(new_total_borrow, supply_target_utilization) - state.total_supply_assets
        )
        withdrawals = allocate_shared_liquidity(shared_liquidity, required_assets)

    reallocated = _supply(state, sum(w.amount for w in withdrawals))
    borrowed = min(borrow_amount, reallocated.liquidity)
    return _borrow(reallocated, borrowed), withdrawals, borrowed


def _source_market_results(
    shared_liquidity: Sequence[SharedLiquidity],
    withdrawals: Sequence[SharedWithdrawal],
) -> Dict[str, MarketSimulationResult]:
    sources = {shared.market_id: shared for shared in shared_liquidity}
    withdrawn: Dict[str, int] = {}
    for withdrawal in withdrawals:
        withdrawn[withdrawal.market_id] = withdrawn.get(withdrawal.market_id, 0) + withdrawal.amount

    results = {}
    for market_id, amount in withdrawn.items():
        source = sources[market_id]
        irm = source.market_params.irm
        post_state = replace(
            source.market_state,
            total_supply_assets=source.market_state.total_supply_assets - amount,
        )
        results[market_id] = MarketSimulationResult(
            pre_reallocation=_projection(irm, source.market_state, source.rate_at_target),
            post_reallocation=_projection(irm, post_state, source.rate_at_target, amount),
        )
    return results


def _check_supply_target(supply_target_utilization: int) -> None:
    if not 0 < supply_target_utilization <= WAD:
        raise ValueError(
            f"supply_target_utilization must be in (0, WAD], got {supply_target_utilization}"
        )


def simulate_borrow(
    snapshot: MarketSnapshot,
    shared_liquidity: Sequence[SharedLiquidity],
    requested_liquidity: int,
    supply_target_utilization: int = DEFAULT_SUPPLY_TARGET_UTILIZATION,
) -> BorrowSimulation:
    """
    Simulate borrowing `requested_liquidity` from the market.

    When the borrow would push utilization above `supply_target_utilization`,
    shared liquidity is pulled in until utilization is back at the target or
    the shared liquidity runs out.

    Args:
        snapshot: Market to borrow from
        shared_liquidity: Liquidity vaults share with the market, in priority order
        requested_liquidity: Raw amount of loan token to borrow
        supply_target_utilization: Utilization above which liquidity is reallocated (WAD)

    Returns:
        BorrowSimulation with projections and, when needed, the reallocation

    Raises:
        ValueError: If supply_target_utilization is not in (0, WAD]
    """
    _check_supply_target(supply_target_utilization)

    state = snapshot.market_state
    irm = snapshot.market_params.irm
    rate_at_target = snapshot.chain_data.rate_at_target
    reallocatable = sum(shared.assets for shared in shared_liquidity)

    new_total_borrow = state.total_borrow_assets + requested_liquidity
    needs_reallocation = (
        compute_utilization(new_total_borrow, state.total_supply_assets) > supply_target_utilization
    )

    result = BorrowSimulation(
        requested_liquidity=requested_liquidity,
        current_market_liquidity=state.liquidity,
        max_borrow_without_reallocation=max_borrow_without_reallocation(
            state, supply_target_utilization
        ),
        reallocatable_liquidity=reallocatable,
    )
    pre_reallocation = MarketProjection(
        liquidity=state.liquidity,
        borrow_apy=snapshot.chain_data.apys.borrow_apy,
        utilization=state.utilization,
    )

    if not needs_reallocation:
        borrowed = min(requested_liquidity, state.liquidity)
        post_borrow_state = _borrow(state, borrowed)
        logger.info(f"No reallocation needed to borrow {requested_liquidity} from {snapshot.market_id}")
        return replace(
            result,
            simulation=SimulationResults(
                target_market=TargetMarketSimulation(
                    pre_reallocation=pre_reallocation,
                    post_reallocation=pre_reallocation,
                    post_borrow=_projection(irm, post_borrow_state, rate_at_target, borrowed),
                ),
            ),
            reason=SimulationReason(
                type="success",
                message="Sufficient liquidity already available in the market, no reallocation needed",
            ),
        )

    if reallocatable == 0:
        logger.warning(f"No shared liquidity available for {snapshot.market_id}")
        return replace(
            result,
            reason=SimulationReason(
                type="error",
                message="No onchain reallocatable liquidity available at the moment",
            ),
        )

    required_assets = (
        w_div_down(new_total_borrow, supply_target_utilization) - state.total_supply_assets
    )
    post_borrow_state, withdrawals, borrowed = _project_borrow(
        snapshot, shared_liquidity, requested_liquidity, supply_target_utilization
    )
    total_reallocated = sum(w.amount for w in withdrawals)
    post_reallocation_state = _supply(state, total_reallocated)

    withdrawals_per_vault: Dict[str, List[SharedWithdrawal]] = {}
    for withdrawal in withdrawals:
        withdrawals_per_vault.setdefault(withdrawal.vault_address, []).append(withdrawal)

    fully_matched = state.liquidity + total_reallocated >= requested_liquidity
    shortfall = 0 if fully_matched else requested_liquidity - (state.liquidity + total_reallocated)

    logger.info(
        f"Borrow of {requested_liquidity} from {snapshot.market_id}: "
        f"reallocating {total_reallocated} from {len(withdrawals)} markets, shortfall {shortfall}"
    )

    return replace(
        result,
        simulation=SimulationResults(
            target_market=TargetMarketSimulation(
                pre_reallocation=pre_reallocation,
                post_reallocation=_projection(
                    irm, post_reallocation_state, rate_at_target, total_reallocated
                ),
                post_borrow=_projection(irm, post_borrow_state, rate_at_target, borrowed),
            ),
            source_markets=_source_market_results(shared_liquidity, withdrawals),
        ),
        reallocation=ReallocationSummary(
            withdrawals_per_vault={
                vault: tuple(vault_withdrawals)
                for vault, vault_withdrawals in withdrawals_per_vault.items()
            },
            total_reallocated=total_reallocated,
            liquidity_needed_from_reallocation=required_assets,
            is_liquidity_fully_matched=fully_matched,
            liquidity_shortfall=shortfall,
        ),
        reason=(
            SimulationReason(
                type="success",
                message="Successfully matched requested liquidity with shared liquidity",
            )
            if fully_matched
            else SimulationReason(
                type="error",
                message="Unable to fully match requested liquidity with available reallocations",
            )
        ),
    )


def _to_percent(wad: int) -> float:
    return wad / (WAD // 100)


def simulate_series(
    snapshot: MarketSnapshot,
    shared_liquidity: Sequence[SharedLiquidity],
    steps: int = DEFAULT_SERIES_STEPS,
    supply_target_utilization: int = DEFAULT_SUPPLY_TARGET_UTILIZATION,
) -> SimulationSeries:
    """
    Sweep borrows from 0% to 100% of the liquidity available to borrowers.

    Available liquidity is the market liquidity plus all shared liquidity.
    Each point reallocates what its borrow needs before borrowing.

    Args:
        snapshot: Market to borrow from
        shared_liquidity: Liquidity vaults share with the market, in priority order
        steps: Number of evenly spaced percentages, both ends included
        supply_target_utilization: Utilization above which liquidity is reallocated (WAD)

    Returns:
        SimulationSeries with utilization and borrow APY in percent

    Raises:
        ValueError: If steps < 2 or supply_target_utilization is not in (0, WAD]
    """
    if steps < 2:
        raise ValueError("steps must be at least 2")
    _check_supply_target(supply_target_utilization)

    state = snapshot.market_state
    irm = snapshot.market_params.irm
    rate_at_target = snapshot.chain_data.rate_at_target
    max_liquidity = state.liquidity + sum(shared.assets for shared in shared_liquidity)

    percentages = [100 * i / (steps - 1) for i in range(steps)]
    utilization_series = []
    apy_series = []
    borrow_amounts = []

    for i in range(steps):
        borrow_amount = max_liquidity * i // (steps - 1)
        borrow_amounts.append(borrow_amount)

        if borrow_amount == 0:
            utilization_series.append(_to_percent(state.utilization))
            apy_series.append(_to_percent(snapshot.chain_data.apys.borrow_apy))
            continue

        final_state, _, _ = _project_borrow(
            snapshot, shared_liquidity, borrow_amount, supply_target_utilization
        )
        projection = _projection(irm, final_state, rate_at_target)
        utilization_series.append(_to_percent(projection.utilization))
        apy_series.append(_to_percent(projection.borrow_apy))

    logger.debug(f"Simulated {steps} points for {snapshot.market_id}, max liquidity {max_liquidity}")

    return SimulationSeries(
        percentages=percentages,
        initial_liquidity=max_liquidity,
        utilization_series=utilization_series,
        apy_series=apy_series,
        borrow_amounts=borrow_amounts,
        decimals=snapshot.loan_asset.decimals,
    )


class MarketSimulationService:
    """
    Fetches market snapshots and shared liquidity, then runs the simulations.

    Data source failures are reported in the result rather than raised.
    """

    def __init__(
        self,
        client: "MorphoAPIClient",
        parser: Optional[MorphoParser] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._client = client
        self._parser = parser or MorphoParser()

    async def load(self, market_id: str, chain_id: int) -> Tuple[MarketSnapshot, List[SharedLiquidity]]:
        """Fetch and parse the market snapshot and its shared liquidity."""
        data = await self._client.fetch_market_simulation_data(market_id, chain_id)
        snapshot = self._parser.parse_market_snapshot(data)
        shared = self._parser.parse_shared_liquidity(data)
        return snapshot, shared

    async def simulate_borrow(
        self,
        market_id: str,
        chain_id: int,
        requested_liquidity: int,
        supply_target_utilization: Optional[int] = None,
    ) -> BorrowSimulation:
        """Simulate a borrow of `requested_liquidity` raw units of the loan token.

        `supply_target_utilization` defaults to the configured target.
        """
        try:
            snapshot, shared = await self.load(market_id, chain_id)
        except DataSourceError as e:
            logger.error(f"Failed to load market {market_id} on chain {chain_id}: {e}")
            return BorrowSimulation(
                requested_liquidity=requested_liquidity,
                current_market_liquidity=0,
                max_borrow_without_reallocation=0,
                reallocatable_liquidity=0,
                reason=SimulationReason(type="error", message=str(e)),
            )

        return simulate_borrow(
            snapshot,
            shared,
            requested_liquidity,
            supply_target_utilization or self.settings.default_supply_target_utilization,
        )

    async def simulate_series(
        self,
        market_id: str,
        chain_id: int,
        steps: int = DEFAULT_SERIES_STEPS,
        supply_target_utilization: Optional[int] = None,
    ) -> SimulationSeries:
        try:
            snapshot, shared = await self.load(market_id, chain_id)
        except DataSourceError as e:
            logger.error(f"Failed to load market {market_id} on chain {chain_id}: {e}")
            return SimulationSeries(
                percentages=[],
                initial_liquidity=0,
                utilization_series=[],
                apy_series=[],
                borrow_amounts=[],
                error=str(e),
            )

        return simulate_series(
            snapshot,
            shared,
            steps,
            supply_target_utilization or self.settings.default_supply_target_utilization,
        )
