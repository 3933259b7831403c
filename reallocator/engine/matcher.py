"""Greedy matching of a vault's surplus and deficit markets.

Given an out of bounds market and a MetaMorpho vault that supplies into it,
the matcher proposes a PublicAllocator reallocation: either withdraw from as
many surplus markets as needed to fund the market (supply case), or move the
market's excess into the single market that can absorb the most (withdraw
case). Flow caps, supply caps and a minimum USD value per leg are hard limits.
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from config.settings import Settings, get_settings
from reallocator.core.models import (
    Apys,
    ApyProgress,
    ApyTarget,
    Link,
    MarketData,
    MarketReallocationData,
    MarketSummary,
    MetaMorphoVault,
    OutOfBoundsMarket,
    Reallocation,
    ReallocationLogData,
    ReallocationWarnings,
    UtilizationProgress,
    UtilizationTarget,
    VaultReallocationData,
    Withdrawal,
)
from reallocator.protocols.morpho.fixed_point import min_bounded, percent_of
from reallocator.protocols.morpho.irm import (
    compute_new_borrow_apy,
    compute_new_supply_apy,
    compute_utilization,
)
from reallocator.utils.formatting import (
    format_market_link,
    format_token_amount,
    format_usd_amount,
    format_wad,
)

logger = logging.getLogger(__name__)

# Markets contributing less than this share of the needed amount get warnings
WARNING_THRESHOLD_PERCENT = 10


def sort_withdrawals(withdrawals: Iterable[Withdrawal]) -> Tuple[Withdrawal, ...]:
    """Order withdrawals by market id read as a 256-bit integer."""
    return tuple(sorted(withdrawals, key=lambda w: int(w.market_id, 16)))


def _log_entry(
    market_data: MarketData,
    new_total_supply: int,
    to_supply: int = 0,
    to_withdraw: int = 0,
    withdraw_max: bool = False,
    supply_max: bool = False,
) -> ReallocationLogData:
    """Before/after view of a market whose supply moves to `new_total_supply`.

    The rate at target is held constant over the reallocation.
    """
    chain_data = market_data.chain_data
    state = chain_data.market_state
    irm = market_data.market_params.irm
    new_utilization = compute_utilization(state.total_borrow_assets, new_total_supply)

    return ReallocationLogData(
        market_id=market_data.id,
        market_name=market_data.name,
        withdraw_max=withdraw_max,
        supply_max=supply_max,
        to_supply=to_supply,
        to_withdraw=to_withdraw,
        previous_utilization=compute_utilization(
            state.total_borrow_assets, state.total_supply_assets
        ),
        new_utilization=new_utilization,
        previous_supply_apy=chain_data.apys.supply_apy,
        new_supply_apy=compute_new_supply_apy(
            irm, new_utilization, chain_data.rate_at_target, state.fee
        ),
        previous_borrow_apy=chain_data.apys.borrow_apy,
        new_borrow_apy=compute_new_borrow_apy(irm, new_utilization, chain_data.rate_at_target),
    )


def _summary(log: ReallocationLogData) -> MarketSummary:
    return MarketSummary(
        apys=Apys(borrow_apy=log.new_borrow_apy, supply_apy=log.new_supply_apy),
        utilization=log.new_utilization,
    )


class ReallocationMatcher:
    """
    Plans PublicAllocator reallocations for a single vault.

    Candidate markets are visited in lexicographic order of their id so that
    plans do not depend on how the vault positions were collected.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.usd_threshold: Decimal = self.settings.reallocation_usd_threshold

    # ========== PER MARKET AMOUNTS ==========

    def _above_usd_threshold(self, vault: MetaMorphoVault, amount: int) -> bool:
        return vault.usd_value(amount) > self.usd_threshold

    def compute_to_withdraw_reallocate(
        self,
        vault: MetaMorphoVault,
        market_id: str,
        remaining_to_withdraw: Optional[int] = None,
    ) -> Tuple[int, Optional[int]]:
        """
        Assets the vault can take out of one market.

        Bounded by what the strategy wants out, the vault position, the
        remaining need and the flow cap. Legs worth no more than the USD
        threshold contribute nothing.

        Args:
            vault: Vault to reallocate
            market_id: Market to withdraw from
            remaining_to_withdraw: Amount still needed, None when unbounded

        Returns:
            Tuple of (to_withdraw, remaining_to_withdraw after this leg)
        """
        position = vault.positions[market_id]
        reallocation_data = position.market_data.reallocation_data
        if reallocation_data is None:
            return 0, remaining_to_withdraw

        to_withdraw = min_bounded(
            reallocation_data.to_withdraw,
            position.supply_assets,
            remaining_to_withdraw,
            vault.flow_caps[market_id].max_out,
        )
        logger.debug(
            f"Withdraw from {market_id} ({position.market_data.name}): "
            f"borrow APY {format_wad(position.market_data.chain_data.apys.borrow_apy)}, "
            f"to target {format_token_amount(reallocation_data.to_withdraw, vault.underlying_asset)}, "
            f"position {format_token_amount(position.supply_assets, vault.underlying_asset)}, "
            f"max out {format_token_amount(vault.flow_caps[market_id].max_out, vault.underlying_asset)}"
        )

        if to_withdraw > 0 and self._above_usd_threshold(vault, to_withdraw):
            if remaining_to_withdraw is not None:
                remaining_to_withdraw -= to_withdraw
            return to_withdraw, remaining_to_withdraw
        return 0, remaining_to_withdraw

    def compute_to_supply_reallocate(
        self,
        vault: MetaMorphoVault,
        market_id: str,
        remaining_to_supply: Optional[int] = None,
    ) -> Tuple[int, Optional[int]]:
        """
        Assets the vault can put into one market.

        Bounded by what the strategy wants in, the supply cap headroom, the
        remaining need and the flow cap. Legs worth no more than the USD
        threshold contribute nothing.

        Returns:
            Tuple of (to_supply, remaining_to_supply after this leg)
        """
        position = vault.positions[market_id]
        reallocation_data = position.market_data.reallocation_data
        if reallocation_data is None:
            return 0, remaining_to_supply

        to_supply = min_bounded(
            reallocation_data.to_supply,
            position.cap_headroom,
            remaining_to_supply,
            vault.flow_caps[market_id].max_in,
        )
        logger.debug(
            f"Supply into {market_id} ({position.market_data.name}): "
            f"borrow APY {format_wad(position.market_data.chain_data.apys.borrow_apy)}, "
            f"cap headroom {position.cap_headroom}, max in {vault.flow_caps[market_id].max_in}, "
            f"to supply {to_supply}"
        )

        if to_supply > 0 and self._above_usd_threshold(vault, to_supply):
            if remaining_to_supply is not None:
                remaining_to_supply -= to_supply
            return to_supply, remaining_to_supply
        return 0, remaining_to_supply

    def _candidate_ids(
        self,
        vault: MetaMorphoVault,
        excluded_id: str,
        filter_idle_markets: bool,
    ) -> List[str]:
        candidates = []
        for market_id in sorted(vault.positions):
            if market_id == excluded_id:
                continue
            if filter_idle_markets and vault.positions[market_id].market_data.is_idle:
                continue
            candidates.append(market_id)
        return candidates

    @staticmethod
    def _check_market(vault: MetaMorphoVault, market_id: str) -> None:
        if market_id not in vault.positions:
            raise ValueError(f"Market {market_id} is not enabled in vault {vault.address}")

    # ========== REALLOCATIONS ==========

    def seek_for_supply_reallocation(
        self,
        market_id: str,
        vault: MetaMorphoVault,
        filter_idle_markets: bool = False,
    ) -> Optional[Reallocation]:
        """
        Fund `market_id` by withdrawing from the vault's other markets.

        Sources are drained greedily in candidate order until the market's
        need is met or no source is left.

        Args:
            market_id: Market that needs more supply
            vault: Vault supplying into the market
            filter_idle_markets: Leave idle markets out of the sources

        Returns:
            Reallocation plan, or None when nothing can be moved
        """
        self._check_market(vault, market_id)
        logger.info(f"Seeking supply reallocation into {market_id} for vault {vault.name}")

        to_supply, _ = self.compute_to_supply_reallocate(vault, market_id)
        logger.info(
            f"To supply into the reallocation market: "
            f"{format_token_amount(to_supply, vault.underlying_asset)}"
        )
        if to_supply == 0:
            return None

        candidates = self._candidate_ids(vault, market_id, filter_idle_markets)

        total_to_withdraw = 0
        for candidate_id in candidates:
            to_withdraw, _ = self.compute_to_withdraw_reallocate(vault, candidate_id)
            total_to_withdraw += to_withdraw
            if total_to_withdraw >= to_supply:
                break

        to_reallocate = min(to_supply, total_to_withdraw)
        if to_reallocate == 0:
            return None

        withdrawals: List[Withdrawal] = []
        log_data: List[ReallocationLogData] = []
        remaining: Optional[int] = to_reallocate

        for candidate_id in candidates:
            if remaining == 0:
                break
            position = vault.positions[candidate_id]
            reallocation_data = position.market_data.reallocation_data
            if reallocation_data is None or reallocation_data.to_withdraw <= 0:
                continue

            to_withdraw, remaining = self.compute_to_withdraw_reallocate(
                vault, candidate_id, remaining
            )
            if to_withdraw == 0:
                continue

            market_data = position.market_data
            withdrawals.append(Withdrawal(market_params=market_data.market_params, amount=to_withdraw))
            log_data.append(
                _log_entry(
                    market_data,
                    market_data.chain_data.market_state.total_supply_assets - to_withdraw,
                    to_withdraw=to_withdraw,
                    withdraw_max=position.supply_assets == to_withdraw,
                )
            )

        amount_reallocated = sum(w.amount for w in withdrawals)
        if amount_reallocated == 0:
            return None

        supply_market = vault.positions[market_id].market_data
        supply_log = _log_entry(
            supply_market,
            supply_market.chain_data.market_state.total_supply_assets + amount_reallocated,
            to_supply=amount_reallocated,
            supply_max=True,
        )
        log_data.append(supply_log)

        total_usd = vault.usd_value(amount_reallocated)
        logger.info(
            f"Supply reallocation into {market_id} for vault {vault.name}: "
            f"{len(withdrawals)} withdrawals, {format_usd_amount(total_usd)}"
        )

        return Reallocation(
            withdrawals=sort_withdrawals(withdrawals),
            supply_market_params=supply_market.market_params,
            log_data=tuple(log_data),
            amount_reallocated=amount_reallocated,
            new_state=_summary(supply_log),
            total_usd=total_usd,
        )

    def seek_for_withdraw_reallocation(
        self,
        market_id: str,
        vault: MetaMorphoVault,
        filter_idle_markets: bool = False,
    ) -> Optional[Reallocation]:
        """
        Move the excess of `market_id` into the market that can absorb the most.

        Args:
            market_id: Market with too much supply
            vault: Vault supplying into the market
            filter_idle_markets: Leave idle markets out of the destinations

        Returns:
            Reallocation plan, or None when nothing can be moved
        """
        self._check_market(vault, market_id)
        logger.info(f"Seeking withdraw reallocation from {market_id} for vault {vault.name}")

        to_withdraw, _ = self.compute_to_withdraw_reallocate(vault, market_id)
        logger.info(
            f"To withdraw from the reallocation market: "
            f"{format_token_amount(to_withdraw, vault.underlying_asset)}"
        )
        if to_withdraw == 0:
            return None

        best_id: Optional[str] = None
        best_amount = 0
        for candidate_id in self._candidate_ids(vault, market_id, filter_idle_markets):
            to_supply, _ = self.compute_to_supply_reallocate(vault, candidate_id)
            if to_supply > best_amount:
                best_id, best_amount = candidate_id, to_supply

        to_reallocate = min(best_amount, to_withdraw)
        if best_id is None or to_reallocate == 0:
            return None

        withdraw_position = vault.positions[market_id]
        withdraw_market = withdraw_position.market_data
        supply_market = vault.positions[best_id].market_data

        withdraw_log = _log_entry(
            withdraw_market,
            withdraw_market.chain_data.market_state.total_supply_assets - to_reallocate,
            to_withdraw=to_reallocate,
            withdraw_max=withdraw_position.supply_assets == to_reallocate,
        )
        supply_log = _log_entry(
            supply_market,
            supply_market.chain_data.market_state.total_supply_assets + to_reallocate,
            to_supply=to_reallocate,
            supply_max=True,
        )

        total_usd = vault.usd_value(to_reallocate)
        logger.info(
            f"Withdraw reallocation from {market_id} into {best_id} for vault {vault.name}: "
            f"{format_usd_amount(total_usd)}"
        )

        return Reallocation(
            withdrawals=(
                Withdrawal(market_params=withdraw_market.market_params, amount=to_reallocate),
            ),
            supply_market_params=supply_market.market_params,
            log_data=(withdraw_log, supply_log),
            amount_reallocated=to_reallocate,
            new_state=_summary(withdraw_log),
            total_usd=total_usd,
        )

    # ========== REPORTS ==========

    def get_market_reallocation_data(
        self,
        vault: MetaMorphoVault,
        amount_to_reach_target: Optional[int],
        supply_reallocation: bool,
        network_id: int,
    ) -> List[MarketReallocationData]:
        """
        What each market of the vault could contribute to a reallocation.

        Markets whose best contribution is below WARNING_THRESHOLD_PERCENT of
        `amount_to_reach_target` carry warnings explaining what limits them.

        Args:
            vault: Vault to inspect
            amount_to_reach_target: Amount the out of bounds market needs moved,
                None when unbounded
            supply_reallocation: True when the out of bounds market needs supply,
                so the vault markets would be withdrawn from
            network_id: Chain id used for links

        Returns:
            One entry per vault market with reallocation data, in market id order
        """
        threshold = None
        if amount_to_reach_target is not None:
            threshold = percent_of(amount_to_reach_target, WARNING_THRESHOLD_PERCENT)

        market_reallocation_data = []

        for market_id in sorted(vault.positions):
            position = vault.positions[market_id]
            market_data = position.market_data
            reallocation_data = market_data.reallocation_data
            if reallocation_data is None:
                continue

            if supply_reallocation:
                market_amount_to_target = reallocation_data.to_withdraw
                available = min(reallocation_data.to_withdraw, position.supply_assets)
                flow_cap = vault.flow_caps[market_id].max_out
            else:
                market_amount_to_target = reallocation_data.to_supply
                available = min_bounded(reallocation_data.to_supply, position.cap_headroom)
                flow_cap = vault.flow_caps[market_id].max_in

            max_reallocation_amount = min_bounded(available, flow_cap)

            warnings = None
            if threshold is not None and max_reallocation_amount < threshold:
                if supply_reallocation:
                    allocation_insufficient = position.supply_assets < threshold
                else:
                    allocation_insufficient = (
                        position.cap_headroom is not None and position.cap_headroom < threshold
                    )
                warnings = ReallocationWarnings(
                    target_too_close_or_already_crossed=(
                        market_amount_to_target is not None
                        and market_amount_to_target < threshold
                    ),
                    flow_cap_too_low=flow_cap < threshold,
                    allocation_or_cap_insufficient=allocation_insufficient,
                )

            target = market_data.strategy.target if market_data.strategy else None
            if isinstance(target, ApyTarget):
                progress = ApyProgress(
                    borrow_apy=market_data.chain_data.apys.borrow_apy,
                    apy_target=target.target,
                )
            elif isinstance(target, UtilizationTarget):
                progress = UtilizationProgress(
                    utilization=market_data.chain_data.utilization,
                    utilization_target=target.target,
                )
            else:
                progress = None

            market_reallocation_data.append(
                MarketReallocationData(
                    id=market_id,
                    name=market_data.name,
                    link=Link(name=market_data.name, url=format_market_link(market_id, network_id)),
                    supply_reallocation=supply_reallocation,
                    max_reallocation_amount=max_reallocation_amount,
                    supply_assets=position.supply_assets,
                    amount_to_reach_cap=position.cap_headroom,
                    amount_to_reach_target=market_amount_to_target,
                    flow_cap=flow_cap,
                    target=progress,
                    warnings=warnings,
                )
            )

        return market_reallocation_data

    def build_vault_reallocation_data(
        self,
        out_of_bounds_market: OutOfBoundsMarket,
        vaults: Iterable[MetaMorphoVault],
        network_id: int,
        filter_idle_markets: bool = False,
    ) -> List[VaultReallocationData]:
        """
        Reallocation report for every vault supplying into an out of bounds market.

        Returns:
            Vault reports sorted with sort_vault_reallocation_data
        """
        supply_reallocation = out_of_bounds_market.above_range
        seek = (
            self.seek_for_supply_reallocation
            if supply_reallocation
            else self.seek_for_withdraw_reallocation
        )

        reports = []
        for vault in vaults:
            if out_of_bounds_market.id not in vault.positions:
                logger.warning(
                    f"Vault {vault.name} does not supply into {out_of_bounds_market.id}, skipping"
                )
                continue
            reports.append(
                VaultReallocationData(
                    supply_reallocation=supply_reallocation,
                    vault=vault,
                    market_reallocation_data=tuple(
                        self.get_market_reallocation_data(
                            vault,
                            out_of_bounds_market.amount_to_reach_target,
                            supply_reallocation,
                            network_id,
                        )
                    ),
                    reallocation=seek(out_of_bounds_market.id, vault, filter_idle_markets),
                )
            )

        return sort_vault_reallocation_data(reports)


def sort_vault_reallocation_data(
    reports: Iterable[VaultReallocationData],
) -> List[VaultReallocationData]:
    """Vaults with a plan first by plan USD value, then the others by vault TVL."""
    reports = list(reports)
    with_plan = [r for r in reports if r.reallocation is not None]
    without_plan = [r for r in reports if r.reallocation is None]
    with_plan.sort(key=lambda r: r.reallocation.total_usd, reverse=True)
    without_plan.sort(key=lambda r: r.vault.total_assets_usd, reverse=True)
    return with_plan + without_plan


_default_matcher: Optional[ReallocationMatcher] = None


def _matcher() -> ReallocationMatcher:
    global _default_matcher
    if _default_matcher is None:
        _default_matcher = ReallocationMatcher()
    return _default_matcher


def get_market_reallocation_data(
    vault: MetaMorphoVault,
    amount_to_reach_target: Optional[int],
    supply_reallocation: bool,
    network_id: int,
) -> List[MarketReallocationData]:
    return _matcher().get_market_reallocation_data(
        vault, amount_to_reach_target, supply_reallocation, network_id
    )


def seek_for_supply_reallocation(
    market_id: str,
    vault: MetaMorphoVault,
    filter_idle_markets: bool = False,
) -> Optional[Reallocation]:
    return _matcher().seek_for_supply_reallocation(market_id, vault, filter_idle_markets)


def seek_for_withdraw_reallocation(
    market_id: str,
    vault: MetaMorphoVault,
    filter_idle_markets: bool = False,
) -> Optional[Reallocation]:
    return _matcher().seek_for_withdraw_reallocation(market_id, vault, filter_idle_markets)
