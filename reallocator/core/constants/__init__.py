"""Core constants module.

Re-exports all constants for convenience.
"""

from reallocator.core.constants.generic import (
    SECONDS_PER_YEAR,
    WAD,
    RAY,
    MAX_UINT128,
    MAX_UINT184,
    MAX_UINT256,
    ZERO_ADDRESS,
)

from reallocator.core.constants.chains import (
    ETHEREUM_MAINNET_CHAIN_ID,
    POLYGON_CHAIN_ID,
    UNICHAIN_CHAIN_ID,
    BASE_CHAIN_ID,
    ARBITRUM_ONE_CHAIN_ID,
    KATANA_CHAIN_ID,
    NETWORK_TO_CHAIN_ID,
    CHAIN_ID_TO_NETWORK,
)

__all__ = [
    # Generic
    "SECONDS_PER_YEAR",
    "WAD",
    "RAY",
    "MAX_UINT128",
    "MAX_UINT184",
    "MAX_UINT256",
    "ZERO_ADDRESS",
    # Chains
    "ETHEREUM_MAINNET_CHAIN_ID",
    "POLYGON_CHAIN_ID",
    "UNICHAIN_CHAIN_ID",
    "BASE_CHAIN_ID",
    "ARBITRUM_ONE_CHAIN_ID",
    "KATANA_CHAIN_ID",
    "NETWORK_TO_CHAIN_ID",
    "CHAIN_ID_TO_NETWORK",
]
