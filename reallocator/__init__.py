"""Liquidity reallocation planner for Morpho Blue MetaMorpho vaults."""

__version__ = "0.1.0"
