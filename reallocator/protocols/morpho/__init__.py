"""Morpho protocol-specific implementations.

Configuration: reallocator.protocols.morpho.config
Fixed-point math: reallocator.protocols.morpho.fixed_point
IRM Model: reallocator.protocols.morpho.irm
GraphQL Queries: reallocator.protocols.morpho.queries
"""

from .config import (
    ADJUSTMENT_SPEED,
    CURVE_STEEPNESS,
    INITIAL_RATE_AT_TARGET,
    MAX_RATE_AT_TARGET,
    MIN_RATE_AT_TARGET,
    MORPHO_API_RATE_LIMIT,
    MORPHO_API_RATE_WINDOW,
    MORPHO_BLUE_ADDRESS,
    PUBLIC_ALLOCATOR_ADDRESSES,
    TARGET_UTILIZATION,
)

__all__ = [
    "ADJUSTMENT_SPEED",
    "CURVE_STEEPNESS",
    "INITIAL_RATE_AT_TARGET",
    "MAX_RATE_AT_TARGET",
    "MIN_RATE_AT_TARGET",
    "MORPHO_API_RATE_LIMIT",
    "MORPHO_API_RATE_WINDOW",
    "MORPHO_BLUE_ADDRESS",
    "PUBLIC_ALLOCATOR_ADDRESSES",
    "TARGET_UTILIZATION",
]
