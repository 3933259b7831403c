"""Models for the market and vault monitoring scans."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from reallocator.core.models.market import Asset, MarketChainData
from reallocator.core.models.reallocation import Link
from reallocator.core.models.strategy import Range, Target


@dataclass(frozen=True)
class BoundsBreach:
    """How far a market sits from its target and which side it crossed."""

    target: Target
    range: Range
    distance_to_target: int  # relative, WAD
    upper_bound_crossed: bool


@dataclass(frozen=True)
class OutOfBoundsMarket:
    """A market whose utilization or APY left its strategy range."""

    id: str
    name: str
    link: Link
    loan_asset: Asset
    collateral_asset: Optional[Asset]
    total_supply_usd: Decimal
    utilization: int
    chain_data: MarketChainData
    breach: BoundsBreach
    amount_to_reach_target: Optional[int]

    @property
    def above_range(self) -> bool:
        return self.breach.upper_bound_crossed


@dataclass(frozen=True)
class MarketFlowCaps:
    """Flow caps of one vault market, valued in USD."""

    id: str
    name: str
    max_in_usd: Decimal
    max_out_usd: Decimal
    supply_assets_usd: Decimal
    supply_cap_usd: Optional[Decimal]
    max_in_unbounded: bool
    missing: bool
    idle: bool = False


@dataclass
class VaultFlowCaps:
    """Flow caps of every market of a vault with the derived warnings."""

    address: str
    name: str
    total_assets_usd: Decimal
    markets: List[MarketFlowCaps] = field(default_factory=list)

    @property
    def missing_flow_caps(self) -> bool:
        return any(market.missing for market in self.markets)

    @property
    def all_caps_to_0(self) -> bool:
        return bool(self.markets) and all(market.missing for market in self.markets)
