"""Unit tests for MorphoParser."""

from decimal import Decimal

import pytest

from reallocator.core.constants import MAX_UINT184, WAD, ZERO_ADDRESS
from reallocator.core.models import ApyTarget, Strategy, UtilizationTarget
from reallocator.data.parser import MorphoParser
from reallocator.errors import DataSourceError

MARKET_KEY = "0xb323495f7e4148be5643a4ea4a8221eef163e4bccfdedc2a6f4696baacbc86cc"
IDLE_KEY = "0x54efdee08e272e929034a8f26f7ca34b1ebe364b275391169b28c6d7db24dbc8"
BLACKLISTED_KEY = "0x" + "ab" * 32


def market_payload(unique_key: str = MARKET_KEY, collateral: bool = True) -> dict:
    """Market as returned by the Morpho API."""
    payload = {
        "uniqueKey": unique_key,
        "lltv": "860000000000000000",
        "oracleAddress": "0x48f7e36eb6b826b2df4b2e630b62cd25e89e40e2",
        "irmAddress": "0x870ac11d48b15db9a138cf899d20f13f79ba00bc",
        "loanAsset": {
            "address": "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
            "symbol": "USDC",
            "decimals": 6,
            "priceUsd": 1.0,
        },
        "state": {
            "supplyAssets": "1000000000000",
            "borrowAssets": "900000000000",
            "supplyShares": "1000000000000000000",
            "borrowShares": "900000000000000000",
            "fee": 0.1,
            "timestamp": 1700000000,
            "rateAtTarget": "1268391679",
        },
    }
    if collateral:
        payload["collateralAsset"] = {
            "address": "0x7f39c581f595b53c5cb19bd0b3f8da6c935e2ca0",
            "symbol": "wstETH",
            "decimals": 18,
            "priceUsd": 3500.0,
        }
    return payload


@pytest.fixture
def parser():
    return MorphoParser()


class TestPrimitives:
    """Tests for value parsing."""

    def test_parse_int_from_string(self, parser):
        assert parser.parse_int("1000000000000000000000") == 10**21

    def test_parse_int_none(self, parser):
        assert parser.parse_int(None) == 0

    def test_parse_wad(self, parser):
        assert parser.parse_wad(0.1) == WAD // 10
        assert parser.parse_wad("0.05") == 5 * WAD // 100

    def test_invalid_number(self, parser):
        with pytest.raises(DataSourceError):
            parser.parse_int("not a number")


class TestStrategies:
    """Tests for strategy parsing."""

    def test_utilization_strategy(self, parser):
        strategy = parser.parse_strategy(
            {
                "id": MARKET_KEY,
                "utilizationTarget": "900000000000000000",
                "utilizationRange": {
                    "lowerBound": "850000000000000000",
                    "upperBound": "920000000000000000",
                },
            }
        )

        assert isinstance(strategy.target, UtilizationTarget)
        assert strategy.utilization_target == 9 * WAD // 10
        assert strategy.target.range.upper_bound == 92 * WAD // 100
        assert strategy.blacklist is False

    def test_apy_strategy(self, parser):
        strategy = parser.parse_strategy(
            {"id": MARKET_KEY, "targetBorrowApy": "40000000000000000", "apyRange": None}
        )

        assert isinstance(strategy.target, ApyTarget)
        assert strategy.target_borrow_apy == 4 * WAD // 100
        assert strategy.target.range is None

    def test_flags(self, parser):
        strategy = parser.parse_strategy({"id": IDLE_KEY, "idleMarket": True, "blacklist": False})

        assert strategy.target is None
        assert strategy.idle_market is True

    def test_malformed_strategy_skipped(self, parser):
        strategies = parser.parse_strategies(
            [
                {"id": MARKET_KEY, "utilizationTarget": "oops"},
                {"id": IDLE_KEY, "idleMarket": True},
            ]
        )
        assert [s.id for s in strategies] == [IDLE_KEY]


class TestMarkets:
    """Tests for market parsing."""

    def test_market_params(self, parser):
        params = parser.parse_market_params(market_payload())

        assert params.lltv == 86 * WAD // 100
        assert params.collateral_token == "0x7f39c581f595b53c5cb19bd0b3f8da6c935e2ca0"

    def test_idle_market_params(self, parser):
        params = parser.parse_market_params(market_payload(IDLE_KEY, collateral=False))
        assert params.collateral_token == ZERO_ADDRESS
        assert params.is_idle

    def test_market_state(self, parser):
        state = parser.parse_market_state(market_payload()["state"])

        assert state.total_supply_assets == 10**12
        assert state.total_borrow_assets == 9 * 10**11
        assert state.fee == WAD // 10
        assert state.last_update == 1_700_000_000

    def test_market_data(self, parser):
        strategy = Strategy(id=MARKET_KEY, target=UtilizationTarget(target=WAD // 2))
        market = parser.parse_market_data(market_payload(), strategy)

        assert market.id == MARKET_KEY
        assert market.name == "wstETH/USDC (86.00%)"
        assert market.chain_data.utilization == 9 * WAD // 10
        assert market.chain_data.rate_at_target == 1268391679
        assert market.reallocation_data.to_supply > 0

    def test_market_data_accrues(self, parser):
        market = parser.parse_market_data(market_payload(), timestamp=1_700_003_600)
        assert market.chain_data.market_state.total_borrow_assets > 9 * 10**11
        assert market.reallocation_data is None

    def test_idle_market_name(self, parser):
        market = parser.parse_market_data(market_payload(IDLE_KEY, collateral=False))
        assert market.name == "USDC idle market"
        assert market.collateral_asset is None

    def test_market_without_state(self, parser):
        payload = market_payload()
        payload["state"] = None
        with pytest.raises(DataSourceError):
            parser.parse_market_data(payload)

    def test_snapshot(self, parser):
        snapshot = parser.parse_market_snapshot(market_payload())

        assert snapshot.market_id == MARKET_KEY
        assert snapshot.loan_asset.decimals == 6
        assert snapshot.collateral_asset.price_usd == Decimal("3500.0")
        assert snapshot.market_state.liquidity == 10**11

    def test_missing_snapshot(self, parser):
        with pytest.raises(DataSourceError):
            parser.parse_market_snapshot(None)


class TestSharedLiquidity:
    """Tests for shared liquidity parsing."""

    def test_shared_liquidity(self, parser):
        payload = market_payload()
        payload["publicAllocatorSharedLiquidity"] = [
            {
                "assets": "30000000000",
                "vault": {"address": "0xvault1", "name": "Gauntlet USDC Prime"},
                "allocationMarket": market_payload(IDLE_KEY, collateral=False),
            },
            {
                "assets": "40000000000",
                "vault": {"address": "0xvault2", "name": "Steakhouse USDC"},
                "allocationMarket": market_payload(),
            },
        ]

        shared = parser.parse_shared_liquidity(payload)

        assert [s.vault_address for s in shared] == ["0xvault1", "0xvault2"]
        assert shared[0].market_id == IDLE_KEY
        assert shared[0].assets == 3 * 10**10
        assert shared[1].rate_at_target == 1268391679
        assert shared[1].market_state.total_supply_assets == 10**12

    def test_no_shared_liquidity(self, parser):
        assert parser.parse_shared_liquidity(market_payload()) == []
        assert parser.parse_shared_liquidity(None) == []


class TestMarketTargets:
    """Tests for PublicAllocator targets parsing."""

    def test_targets(self, parser):
        targets = parser.parse_market_targets(
            {
                "markets": {
                    "items": [
                        {
                            "uniqueKey": MARKET_KEY,
                            "targetBorrowUtilization": "920000000000000000",
                            "targetWithdrawUtilization": "950000000000000000",
                        },
                        {
                            "uniqueKey": IDLE_KEY,
                            "targetBorrowUtilization": None,
                            "targetWithdrawUtilization": None,
                        },
                    ]
                },
                "vaults": {"items": [{"address": "0xvault1"}]},
            }
        )

        assert targets.supply_target_utilization == {MARKET_KEY: 92 * WAD // 100}
        assert targets.max_withdrawal_utilization == {MARKET_KEY: 95 * WAD // 100}
        assert targets.reallocatable_vaults == ("0xvault1",)

    def test_empty(self, parser):
        targets = parser.parse_market_targets({})
        assert targets.supply_target_utilization == {}
        assert targets.reallocatable_vaults == ()


class TestVaults:
    """Tests for vault parsing."""

    @pytest.fixture
    def vault_payload(self):
        return {
            "address": "0xbeef01735c132ada46aa9aa4c54623caa92a64cb",
            "name": "Steakhouse USDC",
            "asset": {
                "address": "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
                "symbol": "USDC",
                "decimals": 6,
                "priceUsd": 1.0,
            },
            "state": {
                "totalAssetsUsd": 1_500_000.5,
                "allocation": [
                    {
                        "supplyAssets": "100000000000",
                        "supplyCap": str(MAX_UINT184),
                        "market": market_payload(),
                    },
                    {
                        "supplyAssets": "50000000000",
                        "supplyCap": "80000000000",
                        "market": market_payload(IDLE_KEY, collateral=False),
                    },
                    {
                        "supplyAssets": "1",
                        "supplyCap": "1",
                        "market": market_payload(BLACKLISTED_KEY),
                    },
                ],
            },
            "publicAllocatorConfig": {
                "flowCaps": [
                    {"maxIn": "1000", "maxOut": "2000", "market": {"uniqueKey": MARKET_KEY}},
                ]
            },
        }

    @pytest.fixture
    def strategies(self):
        return {
            MARKET_KEY: Strategy(id=MARKET_KEY, target=UtilizationTarget(target=9 * WAD // 10)),
            IDLE_KEY: Strategy(id=IDLE_KEY, idle_market=True),
            BLACKLISTED_KEY: Strategy(id=BLACKLISTED_KEY, blacklist=True),
        }

    def test_vault(self, parser, vault_payload, strategies):
        vault = parser.parse_vault(vault_payload, strategies, 1)

        assert set(vault.positions) == {MARKET_KEY, IDLE_KEY}
        assert vault.positions[MARKET_KEY].supply_cap is None
        assert vault.positions[IDLE_KEY].supply_cap == 8 * 10**10
        assert vault.positions[IDLE_KEY].market_data.is_idle
        assert vault.flow_caps[MARKET_KEY].max_out == 2000
        assert vault.flow_caps[IDLE_KEY].max_in == 0
        assert vault.total_assets_usd == Decimal("1500000.5")
        assert vault.link.endswith("&network=ethereum")

    def test_market_without_strategy_skipped(self, parser, vault_payload, strategies):
        del strategies[IDLE_KEY]
        vault = parser.parse_vault(vault_payload, strategies, 1)
        assert set(vault.positions) == {MARKET_KEY}

    def test_vault_without_asset(self, parser, vault_payload, strategies):
        vault_payload["asset"] = None
        with pytest.raises(DataSourceError):
            parser.parse_vault(vault_payload, strategies, 1)
