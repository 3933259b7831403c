"""Generic fixed-point and time constants.

These constants are protocol-agnostic and mirror the on-chain integer domain.
"""

# Time constants
SECONDS_PER_YEAR = 365 * 24 * 3600  # 31,536,000

# Precision constants
WAD = 10**18  # Standard 18 decimal precision
RAY = 10**27  # 27 decimal precision

# Integer bounds of the EVM types used as "no limit" markers on-chain
MAX_UINT128 = 2**128 - 1
MAX_UINT184 = 2**184 - 1
MAX_UINT256 = 2**256 - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
