# embedplane/projection.py
"""Forward (D -> 2) and inverse (2 -> D) mapping through a PCA basis."""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .vecmath import mul_add, vec_sub, zeros


def project_point(vec: np.ndarray, mean: np.ndarray, W1: np.ndarray, W2: np.ndarray) -> np.ndarray:
    centered = vec_sub(vec, mean)
    return np.array([float(centered @ W1), float(centered @ W2)])


def reconstruct(
    mean: np.ndarray,
    W1: np.ndarray,
    W2: np.ndarray,
    x: float,
    y: float,
    residual: np.ndarray,
) -> np.ndarray:
    """mean + x*W1 + y*W2 + residual."""
    v = np.array(mean, dtype=np.float64)
    mul_add(v, W1, x)
    mul_add(v, W2, y)
    v += residual
    return v


def residual_for(
    vec: np.ndarray,
    mean: Optional[np.ndarray],
    W1: Optional[np.ndarray],
    W2: Optional[np.ndarray],
    point: Optional[Sequence[float]],
) -> np.ndarray:
    """
    The part of ``vec`` that the 2D point does not account for.

    Captured once per drag gesture: a drag moves the vector inside the
    plane through ``mean`` spanned by W1/W2 and carries this residual along.
    """
    if mean is None or W1 is None or W2 is None or len(mean) == 0:
        return zeros(len(vec))
    x, y = point if point is not None else (0.0, 0.0)
    approx = reconstruct(mean, W1, W2, x, y, zeros(len(vec)))
    return vec_sub(vec, approx)
