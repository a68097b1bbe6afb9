# embedplane/solver.py
"""
Cosine-target solver.

Rotates the focal vector inside the plane it shares with a reference
vector until cos(focal, other) equals the requested target:

    w  = unit(f - (f.o) o)
    f' = t o + sqrt(1 - t^2) w

f' is unit length and has cosine exactly t with o.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .config import Config

logger = logging.getLogger(__name__)


def clamp_target(target: float) -> float:
    limit = Config.solver.MAX_ABS_COSINE
    return max(-limit, min(limit, float(target)))


def _unit(v: np.ndarray) -> np.ndarray:
    return v / np.sqrt(max(1e-18, float(v @ v)))


def solve_target_cosine(focal: np.ndarray, other: np.ndarray, target: float) -> Optional[np.ndarray]:
    """
    Return the new focal vector, or None when no rotation plane exists.

    ``other`` is read, never modified.
    """
    t = clamp_target(target)
    eps = Config.solver.DEGENERATE_EPS

    f = _unit(np.asarray(focal, dtype=np.float64))
    o = _unit(np.asarray(other, dtype=np.float64))

    w = f - float(f @ o) * o
    wn = float(np.linalg.norm(w))

    if wn < eps:
        # Parallel or antiparallel: borrow e0 as the rotation direction.
        w = np.zeros_like(o)
        w[0] = 1.0
        w -= float(w @ o) * o
        wn = float(np.linalg.norm(w))
        if wn < eps:
            logger.debug("No rotation plane for target cosine %.4f", t)
            return None
    w /= wn

    out = t * o + np.sqrt(max(0.0, 1.0 - t * t)) * w
    return _unit(out)
