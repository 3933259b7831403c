"""Unit tests for the monitoring scans."""

from decimal import Decimal

import pytest

from reallocator.core.constants import MAX_UINT128, WAD
from reallocator.core.models import ApyTarget, FlowCaps, Range, Strategy, UtilizationTarget
from reallocator.engine.monitoring import (
    compute_vault_flow_caps,
    find_markets_without_strategy,
    find_out_of_bounds_markets,
)

USDC = 10**6
K = 1_000 * USDC

UTILIZATION_RANGE = Range(lower_bound=85 * WAD // 100, upper_bound=92 * WAD // 100)


def utilization_strategy(market_id: str, **kwargs) -> Strategy:
    return Strategy(
        id=market_id,
        target=UtilizationTarget(target=9 * WAD // 10, range=UTILIZATION_RANGE),
        **kwargs,
    )


class TestOutOfBoundsMarkets:
    """Tests for find_out_of_bounds_markets."""

    def test_utilization_breaches(self, make_market):
        above = make_market(1, supply=1_000 * K, borrow=950 * K, strategy=utilization_strategy("1"))
        below = make_market(2, supply=1_000 * K, borrow=800 * K, strategy=utilization_strategy("2"))
        inside = make_market(3, supply=1_000 * K, borrow=900 * K, strategy=utilization_strategy("3"))

        result = find_out_of_bounds_markets([above, below, inside], 1)

        assert [m.id for m in result] == [below.id, above.id]
        assert result[0].above_range is False
        assert result[1].above_range is True

    def test_amount_to_reach_target(self, make_market):
        above = make_market(1, supply=1_000 * K, borrow=950 * K, strategy=utilization_strategy("1"))
        below = make_market(2, supply=1_000 * K, borrow=800 * K, strategy=utilization_strategy("2"))

        result = {m.id: m for m in find_out_of_bounds_markets([above, below], 1)}

        assert result[above.id].amount_to_reach_target == 950 * K * WAD // (9 * WAD // 10) - 1_000 * K
        assert result[below.id].amount_to_reach_target == 1_000 * K - 800 * K * WAD // (9 * WAD // 10)

    def test_ignored_markets(self, make_market):
        blacklisted = make_market(
            1, borrow=9_900 * K, strategy=utilization_strategy("1", blacklist=True)
        )
        idle = make_market(2, strategy=utilization_strategy("2", idle_market=True))
        without_range = make_market(
            3, borrow=9_900 * K, strategy=Strategy(id="3", target=UtilizationTarget(target=WAD // 2))
        )
        without_strategy = make_market(4)

        assert find_out_of_bounds_markets([blacklisted, idle, without_range, without_strategy], 1) == []

    def test_apy_breach(self, make_market):
        """Borrow APY of about 4.08% at 90% utilization is checked on both bounds."""
        low_target = Strategy(
            id="1",
            target=ApyTarget(
                target=2 * WAD // 100,
                range=Range(lower_bound=WAD // 100, upper_bound=3 * WAD // 100),
            ),
        )
        high_target = Strategy(
            id="2",
            target=ApyTarget(
                target=8 * WAD // 100,
                range=Range(lower_bound=7 * WAD // 100, upper_bound=9 * WAD // 100),
            ),
        )
        markets = [
            make_market(1, supply=1_000 * K, borrow=900 * K, strategy=low_target),
            make_market(2, supply=1_000 * K, borrow=900 * K, strategy=high_target),
        ]

        result = {m.id: m for m in find_out_of_bounds_markets(markets, 1)}

        assert result[markets[0].id].above_range is True
        assert result[markets[0].id].amount_to_reach_target > 0
        assert result[markets[1].id].above_range is False
        assert result[markets[1].id].amount_to_reach_target > 0

    def test_report_fields(self, make_market):
        market = make_market(1, supply=1_000 * K, borrow=950 * K, strategy=utilization_strategy("1"))
        result = find_out_of_bounds_markets([market], 8453)[0]

        assert result.total_supply_usd == Decimal(1_000_000)
        assert result.utilization == 95 * WAD // 100
        assert result.link.url.endswith("&network=base")


class TestMarketsWithoutStrategy:
    """Tests for find_markets_without_strategy."""

    def test_zero_targets(self):
        strategies = [
            Strategy(id="1", target=UtilizationTarget(target=0)),
            Strategy(id="2", target=ApyTarget(target=0)),
            Strategy(id="3", target=UtilizationTarget(target=0), blacklist=True),
            Strategy(id="4", target=ApyTarget(target=0), idle_market=True),
            Strategy(id="5", target=UtilizationTarget(target=WAD // 2)),
            Strategy(id="6"),
        ]
        assert [s.id for s in find_markets_without_strategy(strategies)] == ["1", "2"]


class TestVaultFlowCaps:
    """Tests for compute_vault_flow_caps."""

    def test_missing_flow_caps(self, settings, make_market, make_vault):
        vault = make_vault(
            (make_market(1), 100 * K, 200 * K, FlowCaps(max_in=MAX_UINT128, max_out=100 * K)),
            (make_market(2), 100 * K, None, FlowCaps(max_in=40 * K, max_out=100 * K)),
        )
        result = compute_vault_flow_caps(vault, settings)

        assert [m.missing for m in result.markets] == [False, True]
        assert result.markets[0].max_in_unbounded is True
        assert result.markets[0].supply_cap_usd == Decimal(200_000)
        assert result.markets[1].supply_cap_usd is None
        assert result.markets[1].max_in_usd == Decimal(40_000)
        assert result.missing_flow_caps is True
        assert result.all_caps_to_0 is False

    def test_all_caps_to_zero(self, settings, make_market, make_vault):
        vault = make_vault(
            (make_market(1), 100 * K, None, FlowCaps(max_in=0, max_out=0)),
            (make_market(2, idle=True), 100 * K, None, FlowCaps(max_in=0, max_out=0)),
        )
        result = compute_vault_flow_caps(vault, settings)

        assert result.all_caps_to_0 is True
        assert result.markets[1].idle is True

    def test_threshold_from_settings(self, settings, make_market, make_vault):
        vault = make_vault((make_market(1), 100 * K, None, FlowCaps(max_in=40 * K, max_out=40 * K)))
        lenient = settings.model_copy(update={"usd_flowcap_threshold": Decimal(1_000)})

        assert compute_vault_flow_caps(vault, settings).missing_flow_caps is True
        assert compute_vault_flow_caps(vault, lenient).missing_flow_caps is False


@pytest.mark.parametrize("network_id", [1, 8453])
def test_links_follow_network(make_market, network_id):
    market = make_market(1, supply=1_000 * K, borrow=950 * K, strategy=utilization_strategy("1"))
    result = find_out_of_bounds_markets([market], network_id)[0]
    assert f"id={market.id}" in result.link.url
