"""Protocol-specific implementations.

Currently supported:
- Morpho Blue (reallocator.protocols.morpho)
"""

# Import specific modules as needed:
#   from reallocator.protocols.morpho.irm import compute_borrow_rate
#   from reallocator.protocols.morpho.queries import MorphoQueries
