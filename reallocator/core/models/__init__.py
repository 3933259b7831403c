"""Core data models for the reallocation planner."""

from .market import Apys, Asset, MarketChainData, MarketParams, MarketState
from .strategy import ApyTarget, Range, Strategy, Target, UtilizationTarget
from .reallocation import (
    ApyProgress,
    InteractionData,
    Link,
    MarketReallocationData,
    MarketSummary,
    Reallocation,
    ReallocationData,
    ReallocationLogData,
    ReallocationWarnings,
    UtilizationProgress,
    Withdrawal,
)
from .vault import (
    FlowCaps,
    MarketData,
    MetaMorphoVault,
    VaultPosition,
    VaultReallocationData,
)
from .monitoring import BoundsBreach, MarketFlowCaps, OutOfBoundsMarket, VaultFlowCaps
from .simulation import (
    BorrowSimulation,
    MarketProjection,
    MarketSimulationResult,
    MarketSnapshot,
    MarketTargets,
    ReallocationSummary,
    SeriesPoint,
    SharedLiquidity,
    SharedWithdrawal,
    SimulationReason,
    SimulationResults,
    SimulationSeries,
    TargetMarketSimulation,
)

__all__ = [
    "Apys",
    "Asset",
    "MarketChainData",
    "MarketParams",
    "MarketState",
    "ApyTarget",
    "Range",
    "Strategy",
    "Target",
    "UtilizationTarget",
    "ApyProgress",
    "InteractionData",
    "Link",
    "MarketReallocationData",
    "MarketSummary",
    "Reallocation",
    "ReallocationData",
    "ReallocationLogData",
    "ReallocationWarnings",
    "UtilizationProgress",
    "Withdrawal",
    "FlowCaps",
    "MarketData",
    "MetaMorphoVault",
    "VaultPosition",
    "VaultReallocationData",
    "BoundsBreach",
    "MarketFlowCaps",
    "OutOfBoundsMarket",
    "VaultFlowCaps",
    "BorrowSimulation",
    "MarketProjection",
    "MarketSimulationResult",
    "MarketSnapshot",
    "MarketTargets",
    "ReallocationSummary",
    "SeriesPoint",
    "SharedLiquidity",
    "SharedWithdrawal",
    "SimulationReason",
    "SimulationResults",
    "SimulationSeries",
    "TargetMarketSimulation",
]
