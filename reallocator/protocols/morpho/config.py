"""Morpho Blue protocol-specific configuration and constants."""

from reallocator.core.constants.generic import SECONDS_PER_YEAR, WAD

# AdaptiveCurveIRM parameters, WAD scaled
# Reference: https://docs.morpho.org/morpho/concepts/irm
TARGET_UTILIZATION = 9 * WAD // 10
CURVE_STEEPNESS = 4 * WAD
# Per second
ADJUSTMENT_SPEED = 50 * WAD // SECONDS_PER_YEAR
# Rates at target are per second
INITIAL_RATE_AT_TARGET = 4 * WAD // 100 // SECONDS_PER_YEAR
MIN_RATE_AT_TARGET = WAD // 1000 // SECONDS_PER_YEAR
MAX_RATE_AT_TARGET = 2 * WAD // SECONDS_PER_YEAR

# GraphQL API rate limits
MORPHO_API_RATE_LIMIT = 5000  # requests per 5 minutes
MORPHO_API_RATE_WINDOW = 300  # seconds

MORPHO_BLUE_ADDRESS = "0xBBBBBbbBBb9cC5e90e3b3Af64bdAF62C37EEFFCb"

PUBLIC_ALLOCATOR_ADDRESSES = {
    1: "0xfd32fA2ca22c76dD6E550706Ad913FC6CE91c75D",
    8453: "0xA090dD1a701408Df1d4d0B85b716c87565f90467",
}
