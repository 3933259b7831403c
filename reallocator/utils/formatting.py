"""Formatting helpers for market names, amounts and Morpho app links."""

from decimal import Decimal
from typing import Optional, Union

from reallocator.core.constants import CHAIN_ID_TO_NETWORK, NETWORK_TO_CHAIN_ID
from reallocator.core.models import Asset

MORPHO_APP_URL = "https://app.morpho.org"

_MAGNITUDES = (
    (Decimal("1e3"), ""),
    (Decimal("1e6"), "K"),
    (Decimal("1e9"), "M"),
    (Decimal("1e12"), "B"),
)


def format_wad(wad: int, precision: int = 2) -> str:
    """Format a WAD fraction as a percentage, e.g. 0.86e18 -> '86.00%'."""
    return f"{Decimal(wad) / Decimal(10**16):.{precision}f}%"


def _compact(value: Decimal, precision: int) -> str:
    divisor = Decimal(1)
    for bound, suffix in _MAGNITUDES:
        if value < bound:
            return f"{value / divisor:.{precision}f}{suffix}"
        divisor = bound
    return f"{value / divisor:.{precision}f}T"


def format_usd_amount(amount: Union[Decimal, float, int], precision: int = 2) -> str:
    """Compact USD amount: '$0', '<$0.01', '$950.00', '$1.20K', '$3.40M'."""
    value = Decimal(str(amount))
    if value == 0:
        return "$0"
    if round(value, precision) == 0:
        return "<$0.01"
    return f"${_compact(value, precision)}"


def format_token_amount(amount: int, asset: Asset, precision: int = 2) -> str:
    """Compact token amount with its symbol, e.g. '1.50M USDC'."""
    return f"{_compact(asset.to_units(amount), precision)} {asset.symbol}"


def get_market_name(loan_symbol: str, collateral_symbol: Optional[str], lltv: int) -> str:
    """Market display name, 'WETH/USDC (86.00%)' or 'USDC idle market'."""
    if not collateral_symbol:
        return f"{loan_symbol} idle market"
    return f"{collateral_symbol}/{loan_symbol} ({format_wad(lltv)})"


def get_network_id(network: str) -> int:
    try:
        return NETWORK_TO_CHAIN_ID[network]
    except KeyError:
        raise ValueError(f"Invalid network: {network}") from None


def get_network_name(network_id: int) -> str:
    try:
        return CHAIN_ID_TO_NETWORK[network_id]
    except KeyError:
        raise ValueError(f"Invalid chainId: {network_id}") from None


def format_market_link(market_id: str, network_id: int) -> str:
    return f"{MORPHO_APP_URL}/market?id={market_id}&network={get_network_name(network_id)}"


def format_vault_link(address: str, network_id: int) -> str:
    return f"{MORPHO_APP_URL}/vault?vault={address}&network={get_network_name(network_id)}"
