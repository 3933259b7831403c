"""Curated per-market target configuration."""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Range:
    """Inclusive band around a target, WAD scaled."""

    lower_bound: int
    upper_bound: int

    def contains(self, value: int) -> bool:
        return self.lower_bound <= value <= self.upper_bound


@dataclass(frozen=True)
class UtilizationTarget:
    """Keep the market utilization close to `target`."""

    target: int
    range: Optional[Range] = None


@dataclass(frozen=True)
class ApyTarget:
    """Keep the market borrow APY close to `target`."""

    target: int
    range: Optional[Range] = None


Target = Union[UtilizationTarget, ApyTarget]


@dataclass(frozen=True)
class Strategy:
    """Operator-curated strategy for one market.

    `target` is None for markets without a utilization or APY target.
    Blacklisted markets never take part in reallocations; idle markets are
    always fully withdrawable and accept unbounded supply.
    """

    id: str
    target: Optional[Target] = None
    blacklist: bool = False
    idle_market: bool = False

    @property
    def utilization_target(self) -> Optional[int]:
        if isinstance(self.target, UtilizationTarget):
            return self.target.target
        return None

    @property
    def target_borrow_apy(self) -> Optional[int]:
        if isinstance(self.target, ApyTarget):
            return self.target.target
        return None

    @property
    def has_target(self) -> bool:
        """True when a non-zero target is configured."""
        return self.target is not None and self.target.target != 0
