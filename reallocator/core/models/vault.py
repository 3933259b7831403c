"""Vault data models for MetaMorpho vaults."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional, Tuple

from reallocator.core.models.market import Asset, MarketChainData, MarketParams
from reallocator.core.models.reallocation import (
    MarketReallocationData,
    Reallocation,
    ReallocationData,
)
from reallocator.core.models.strategy import Strategy


@dataclass(frozen=True)
class FlowCaps:
    """PublicAllocator limits on what a single reallocation may move."""

    max_in: int
    max_out: int


@dataclass(frozen=True)
class MarketData:
    """Everything the planner knows about one market."""

    id: str
    name: str
    market_params: MarketParams
    chain_data: MarketChainData
    loan_asset: Asset
    collateral_asset: Optional[Asset] = None
    strategy: Optional[Strategy] = None
    reallocation_data: Optional[ReallocationData] = None

    @property
    def is_idle(self) -> bool:
        return self.strategy is not None and self.strategy.idle_market


@dataclass(frozen=True)
class VaultPosition:
    """A vault's supply in one market. `supply_cap` None means uncapped."""

    market_data: MarketData
    supply_assets: int
    supply_cap: Optional[int] = None

    @property
    def cap_headroom(self) -> Optional[int]:
        """Assets that can still be supplied before hitting the cap."""
        if self.supply_cap is None:
            return None
        return max(self.supply_cap - self.supply_assets, 0)


@dataclass(frozen=True)
class MetaMorphoVault:
    """A MetaMorpho vault seen from the reallocation planner."""

    address: str
    name: str
    underlying_asset: Asset
    positions: Dict[str, VaultPosition]
    flow_caps: Dict[str, FlowCaps]
    total_assets_usd: Decimal = Decimal("0")
    link: Optional[str] = None

    def __post_init__(self):
        missing = [market_id for market_id in self.positions if market_id not in self.flow_caps]
        if missing:
            raise ValueError(f"Missing flow caps for markets: {missing}")

    def usd_value(self, amount: int) -> Decimal:
        return self.underlying_asset.to_usd(amount)


@dataclass(frozen=True)
class VaultReallocationData:
    """Reallocation report for one vault supplying into an out of bounds market."""

    supply_reallocation: bool
    vault: MetaMorphoVault
    market_reallocation_data: Tuple[MarketReallocationData, ...] = field(default_factory=tuple)
    reallocation: Optional[Reallocation] = None
