# embedplane/pca.py
"""
Two-component PCA by deflationary power iteration.

The basis is built to stay put while a user edits the point cloud:
- power iteration is seeded from the previous axes, so a recompute
  continues from where the last one converged;
- each axis is sign-stabilized (largest-magnitude coordinate >= 0);
- a rank-deficient second axis (2 items, collinear data) is replaced by a
  deterministic Gram-Schmidt construction, so there is always a full 2D plane.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import Config
from .projection import project_point
from .vecmath import normalize_in_place

logger = logging.getLogger(__name__)

Axes = Tuple[np.ndarray, np.ndarray]


@dataclass
class PCABasis:
    mean: np.ndarray
    W: Optional[Axes]
    lambdas: Tuple[float, float] = (0.0, 0.0)
    pts2: List[np.ndarray] = field(default_factory=list)
    version: int = -1  # Session version the basis was computed from

    @classmethod
    def empty(cls) -> "PCABasis":
        return cls(mean=np.zeros(0), W=None, lambdas=(0.0, 0.0), pts2=[], version=-1)

    @property
    def is_empty(self) -> bool:
        return self.W is None or self.mean.size == 0

    def project(self, vec: np.ndarray) -> np.ndarray:
        """Project a D-vector into this basis without touching pts2."""
        return project_point(vec, self.mean, self.W[0], self.W[1])


def mean_vector(X: np.ndarray, dim: int) -> np.ndarray:
    if X.shape[0] == 0:
        return np.zeros(dim)
    return X.sum(axis=0) / max(1, X.shape[0])


def cov_matrix(Xc: np.ndarray) -> np.ndarray:
    """Sample covariance of already-centered rows, divided by max(1, n-1)."""
    n = Xc.shape[0]
    if n == 0:
        return np.zeros((Xc.shape[1], Xc.shape[1]))
    return (Xc.T @ Xc) / max(1, n - 1)


def enforce_stable_sign(v: np.ndarray) -> np.ndarray:
    if v.size == 0:
        return v
    idx = int(np.argmax(np.abs(v)))
    if v[idx] < 0:
        v *= -1.0
    return v


def deterministic_init(d: int, prev: Optional[np.ndarray]) -> np.ndarray:
    if prev is not None and len(prev) == d:
        return np.array(prev, dtype=np.float64)
    v = np.zeros(d)
    v[0] = 1.0
    return v


def _escape_null_space(C: np.ndarray, v: np.ndarray, eps: float) -> np.ndarray:
    # A seed in C's null space would iterate to the zero vector.
    if np.linalg.norm(C @ v) >= eps:
        return v
    d = C.shape[0]
    for k in range(d):
        if np.linalg.norm(C[:, k]) >= eps:
            e = np.zeros(d)
            e[k] = 1.0
            return e
    return v


def power_iteration(
    C: np.ndarray,
    iters: Optional[int] = None,
    init_vec: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, float]:
    """Dominant eigenpair of a symmetric matrix. Returns (v, lambda)."""
    d = C.shape[0]
    if d == 0:
        return np.zeros(0), 0.0
    iters = Config.pca.POWER_ITERS if iters is None else iters

    v = deterministic_init(d, init_vec)
    normalize_in_place(v)
    v = _escape_null_space(C, v, Config.pca.DEGENERATE_EPS)

    for _ in range(iters):
        Cv = C @ v
        normalize_in_place(Cv)
        v = Cv

    # The floored norm leaves tiny spectra short of unit length.
    n = np.linalg.norm(v)
    if n >= Config.pca.DEGENERATE_EPS:
        v = v / n
    lam = float(v @ (C @ v))
    return v, lam


def _first_axis(C: np.ndarray, prev: Optional[np.ndarray]) -> Tuple[np.ndarray, float]:
    v1, lam1 = power_iteration(C, init_vec=prev)
    if np.linalg.norm(v1) < Config.pca.DEGENERATE_EPS:
        # Zero covariance: every item sits on the mean.
        v1 = np.zeros(C.shape[0])
        v1[0] = 1.0
        lam1 = 0.0
    return v1, lam1


def repair_second_axis(v1: np.ndarray) -> np.ndarray:
    """
    Deterministic replacement for a collapsed second axis.

    Starts from the coordinate where v1 is smallest in magnitude and walks
    the coordinates cyclically until Gram-Schmidt leaves something usable.
    """
    d = v1.size
    start = int(np.argmin(np.abs(v1)))
    for step in range(d):
        e = np.zeros(d)
        e[(start + step) % d] = 1.0
        e -= (e @ v1) * v1
        if np.linalg.norm(e) >= Config.pca.DEGENERATE_EPS:
            return normalize_in_place(e)
    raise ValueError(f"cannot build a second axis in {d} dimension(s)")


def compute_pca2d(
    vectors: Sequence[np.ndarray],
    dim: int,
    prev_W: Optional[Axes] = None,
) -> PCABasis:
    X = np.asarray(vectors, dtype=np.float64).reshape(len(vectors), dim)
    n = X.shape[0]
    mu = mean_vector(X, dim)
    Xc = X - mu
    C = cov_matrix(Xc)
    eps = Config.pca.DEGENERATE_EPS

    v1, lam1 = _first_axis(C, prev_W[0] if prev_W is not None else None)

    C2 = C - lam1 * np.outer(v1, v1)
    v2, lam2 = power_iteration(C2, init_vec=prev_W[1] if prev_W is not None else None)
    v2 = v2 - (v2 @ v1) * v1

    if n < Config.pca.MIN_ITEMS_FOR_SECOND_AXIS or np.linalg.norm(v2) < eps or lam2 < eps:
        logger.debug(
            "Second axis degenerate (n=%d, |v2|=%.3g, lambda2=%.3g), repairing",
            n, float(np.linalg.norm(v2)), lam2,
        )
        v2 = repair_second_axis(v1)
        lam2 = float(v2 @ (C @ v2))
    else:
        normalize_in_place(v2)

    enforce_stable_sign(v1)
    enforce_stable_sign(v2)

    pts2 = [np.array([float(x @ v1), float(x @ v2)]) for x in Xc]
    return PCABasis(mean=mu, W=(v1, v2), lambdas=(lam1, lam2), pts2=pts2)
