"""Tools package for contract data utilities."""

from tools.seed_contracts import demo_contracts, seed_if_empty

__all__ = [
    "demo_contracts",
    "seed_if_empty",
]
