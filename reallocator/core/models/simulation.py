"""Borrow simulation models."""

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

import numpy as np

from reallocator.core.models.market import Asset, MarketChainData, MarketParams, MarketState


@dataclass(frozen=True)
class SharedLiquidity:
    """Liquidity a vault can move into the simulated market through the PublicAllocator.

    `market_state` and `rate_at_target` describe the source market the
    assets would be withdrawn from.
    """

    vault_address: str
    vault_name: str
    market_id: str
    market_params: MarketParams
    assets: int
    market_state: MarketState
    rate_at_target: int


@dataclass(frozen=True)
class MarketSnapshot:
    """State of the simulated market at the time of the request."""

    market_id: str
    market_params: MarketParams
    chain_data: MarketChainData
    loan_asset: Asset
    collateral_asset: Optional[Asset] = None

    @property
    def market_state(self) -> MarketState:
        return self.chain_data.market_state


@dataclass(frozen=True)
class SharedWithdrawal:
    """Assets pulled from one vault market to fund the simulated borrow."""

    vault_address: str
    market_id: str
    market_params: MarketParams
    amount: int
    source_market_liquidity: int


@dataclass(frozen=True)
class MarketProjection:
    """Liquidity, utilization and borrow APY of a market at one step.

    `amount` is the reallocated or borrowed amount that led to this step.
    """

    liquidity: int
    borrow_apy: int
    utilization: int
    amount: int = 0


@dataclass(frozen=True)
class MarketSimulationResult:
    pre_reallocation: MarketProjection
    post_reallocation: MarketProjection


@dataclass(frozen=True)
class TargetMarketSimulation:
    pre_reallocation: MarketProjection
    post_reallocation: MarketProjection
    post_borrow: MarketProjection


@dataclass(frozen=True)
class SimulationResults:
    target_market: TargetMarketSimulation
    source_markets: Dict[str, MarketSimulationResult] = field(default_factory=dict)


@dataclass(frozen=True)
class ReallocationSummary:
    """Shared liquidity pulled in to serve the borrow, grouped by vault."""

    withdrawals_per_vault: Dict[str, Tuple[SharedWithdrawal, ...]]
    total_reallocated: int
    liquidity_needed_from_reallocation: int
    is_liquidity_fully_matched: bool
    liquidity_shortfall: int


@dataclass(frozen=True)
class SimulationReason:
    type: Literal["success", "error"]
    message: str


@dataclass(frozen=True)
class BorrowSimulation:
    """Outcome of simulating a single borrow, with or without reallocation."""

    requested_liquidity: int
    current_market_liquidity: int
    max_borrow_without_reallocation: int
    reallocatable_liquidity: int
    simulation: Optional[SimulationResults] = None
    reallocation: Optional[ReallocationSummary] = None
    reason: Optional[SimulationReason] = None


@dataclass(frozen=True)
class SeriesPoint:
    percentage: float
    utilization: float  # percent
    borrow_apy: float  # percent
    borrow_amount: int


@dataclass(frozen=True)
class SimulationSeries:
    """Projected utilization and borrow APY over a sweep of borrow sizes.

    Utilization and APY values are percents. `borrow_amounts` are raw
    integer amounts of the loan token.
    """

    percentages: List[float]
    initial_liquidity: int
    utilization_series: List[float]
    apy_series: List[float]
    borrow_amounts: List[int]
    decimals: int = 18
    error: Optional[str] = None

    def interpolate(self, percentage: float) -> SeriesPoint:
        """Linearly interpolate the series at `percentage`.

        Borrow amounts go through token units so the interpolation does
        not overflow floats for large raw amounts.
        """
        if not self.percentages:
            raise ValueError("Cannot interpolate an empty series")

        scale = 10**self.decimals
        amounts = [amount / scale for amount in self.borrow_amounts]
        utilization = float(np.interp(percentage, self.percentages, self.utilization_series))
        borrow_apy = float(np.interp(percentage, self.percentages, self.apy_series))
        amount = float(np.interp(percentage, self.percentages, amounts))

        return SeriesPoint(
            percentage=percentage,
            utilization=utilization,
            borrow_apy=borrow_apy,
            borrow_amount=round(amount * scale),
        )


@dataclass(frozen=True)
class MarketTargets:
    """PublicAllocator utilization targets published by the Morpho API, WAD scaled."""

    supply_target_utilization: Dict[str, int] = field(default_factory=dict)
    max_withdrawal_utilization: Dict[str, int] = field(default_factory=dict)
    reallocatable_vaults: Tuple[str, ...] = ()
