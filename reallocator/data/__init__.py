"""Data layer: Morpho GraphQL API, strategy targets API and their parser."""

from .parser import MorphoParser
from .sources.morpho_api import MorphoAPIClient
from .sources.targets_api import StrategyClient

__all__ = [
    "MorphoParser",
    "MorphoAPIClient",
    "StrategyClient",
]
