"""Reallocation plan models."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple, Union

from reallocator.core.models.market import Apys, MarketParams


@dataclass(frozen=True)
class ReallocationData:
    """Amounts that would bring a market back to its target.

    `to_supply` is None when the market can absorb an unbounded amount.
    """

    to_supply: Optional[int] = 0
    to_withdraw: int = 0
    to_borrow: int = 0

    @property
    def is_noop(self) -> bool:
        return self.to_supply == 0 and self.to_withdraw == 0 and self.to_borrow == 0


@dataclass(frozen=True)
class InteractionData:
    """Amount of a single interaction and the utilization it leads to.

    `amount` is None when the interaction is unbounded.
    """

    amount: Optional[int]
    new_utilization: int


@dataclass(frozen=True)
class Withdrawal:
    """One leg of a PublicAllocator reallocation."""

    market_params: MarketParams
    amount: int

    @property
    def market_id(self) -> str:
        return self.market_params.id


@dataclass(frozen=True)
class ReallocationLogData:
    """Before/after view of one market touched by a reallocation."""

    market_id: str
    market_name: str
    withdraw_max: bool
    supply_max: bool
    to_supply: int
    to_withdraw: int
    previous_utilization: int
    new_utilization: int
    previous_supply_apy: int
    new_supply_apy: int
    previous_borrow_apy: int
    new_borrow_apy: int


@dataclass(frozen=True)
class MarketSummary:
    """Utilization and APYs of a market at one point in time."""

    apys: Apys
    utilization: int


@dataclass(frozen=True)
class Reallocation:
    """A concrete withdraw/supply plan for one vault."""

    withdrawals: Tuple[Withdrawal, ...]
    supply_market_params: MarketParams
    log_data: Tuple[ReallocationLogData, ...]
    amount_reallocated: int
    new_state: MarketSummary
    total_usd: Decimal

    def __post_init__(self):
        withdrawn = sum(w.amount for w in self.withdrawals)
        if withdrawn != self.amount_reallocated:
            raise ValueError(
                f"Withdrawals sum to {withdrawn} but {self.amount_reallocated} is reallocated"
            )


@dataclass(frozen=True)
class ReallocationWarnings:
    """Why a market can only contribute a small share of the needed amount."""

    target_too_close_or_already_crossed: bool
    flow_cap_too_low: bool
    allocation_or_cap_insufficient: bool


@dataclass(frozen=True)
class Link:
    name: str
    url: str


@dataclass(frozen=True)
class UtilizationProgress:
    utilization: int
    utilization_target: int


@dataclass(frozen=True)
class ApyProgress:
    borrow_apy: int
    apy_target: int


@dataclass(frozen=True)
class MarketReallocationData:
    """What one market of a vault could contribute to a reallocation.

    `supply_reallocation` is True when the out of bounds market needs
    supply, so this market would be withdrawn from.
    """

    id: str
    name: str
    link: Link
    supply_reallocation: bool
    max_reallocation_amount: int
    supply_assets: int
    amount_to_reach_cap: Optional[int]
    amount_to_reach_target: Optional[int]
    flow_cap: int
    target: Optional[Union[UtilizationProgress, ApyProgress]]
    warnings: Optional[ReallocationWarnings] = None

