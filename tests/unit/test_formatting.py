"""Unit tests for formatting helpers."""

from decimal import Decimal

import pytest

from reallocator.core.constants import WAD
from reallocator.utils.formatting import (
    format_market_link,
    format_token_amount,
    format_usd_amount,
    format_vault_link,
    format_wad,
    get_market_name,
    get_network_id,
    get_network_name,
)


class TestFormatWad:
    """Tests for format_wad."""

    def test_percent(self):
        assert format_wad(86 * 10**16) == "86.00%"

    def test_precision(self):
        assert format_wad(WAD // 3, precision=1) == "33.3%"


class TestFormatAmounts:
    """Tests for USD and token amounts."""

    @pytest.mark.parametrize(
        "amount,expected",
        [
            (0, "$0"),
            (Decimal("0.001"), "<$0.01"),
            (950, "$950.00"),
            (1_500, "$1.50K"),
            (3_400_000, "$3.40M"),
            (Decimal("2500000000"), "$2.50B"),
        ],
    )
    def test_usd(self, amount, expected):
        assert format_usd_amount(amount) == expected

    def test_token(self, usdc):
        assert format_token_amount(1_500_000 * 10**6, usdc) == "1.50M USDC"


class TestNames:
    """Tests for market names and networks."""

    def test_market_name(self):
        assert get_market_name("USDC", "WETH", 86 * 10**16) == "WETH/USDC (86.00%)"

    def test_idle_market_name(self):
        assert get_market_name("USDC", None, 0) == "USDC idle market"

    def test_networks(self):
        assert get_network_id("base") == 8453
        assert get_network_name(1) == "ethereum"

    def test_invalid_network(self):
        with pytest.raises(ValueError):
            get_network_id("solana")
        with pytest.raises(ValueError):
            get_network_name(56)


class TestLinks:
    """Tests for Morpho app links."""

    def test_market_link(self):
        assert format_market_link("0xabc", 8453) == "https://app.morpho.org/market?id=0xabc&network=base"

    def test_vault_link(self):
        assert format_vault_link("0xdef", 1) == "https://app.morpho.org/vault?vault=0xdef&network=ethereum"
