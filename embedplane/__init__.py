"""Public package interface for the embedding plane editor."""

from .neighbors import NeighborRanker, NeighborRow
from .pack import PackError
from .pca import PCABasis, compute_pca2d
from .session import Item, Session
from .solver import solve_target_cosine

__all__ = [
    "Item",
    "NeighborRanker",
    "NeighborRow",
    "PackError",
    "PCABasis",
    "Session",
    "compute_pca2d",
    "solve_target_cosine",
]
