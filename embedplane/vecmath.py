# embedplane/vecmath.py
"""Small vector helpers shared by the projection, ranking and solver code.

Everything here is pure except ``normalize_in_place`` and ``mul_add``,
which write into their first argument.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

import numpy as np

from .config import Config

_SPLIT_RE = re.compile(r"[,\s]+")


def zeros(n: int) -> np.ndarray:
    return np.zeros(n, dtype=np.float64)


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.dot(a, b))


def norm(a: np.ndarray) -> float:
    """Euclidean norm, floored at sqrt(1e-18) so callers can divide by it."""
    return float(np.sqrt(max(1e-18, float(np.dot(a, a)))))


def normalize_in_place(v: np.ndarray) -> np.ndarray:
    v /= norm(v)
    return v


def is_near_zero(v: np.ndarray) -> bool:
    return float(np.linalg.norm(v)) < Config.core.NEAR_ZERO_NORM


def normalize_unless_zero(v: np.ndarray) -> np.ndarray:
    """Apply the edit rule: unit length, unless the vector has collapsed."""
    if not is_near_zero(v):
        normalize_in_place(v)
    return v


def cosine(a: np.ndarray, b: np.ndarray) -> float:
    return dot(a, b) / (norm(a) * norm(b))


def vec_sub(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)


def mul_add(out: np.ndarray, v: np.ndarray, k: float) -> np.ndarray:
    out += v * k
    return out


def coerce_dim(values: Iterable[float], dim: int) -> np.ndarray:
    """Truncate or zero-pad to ``dim`` components."""
    v = zeros(dim)
    src = np.asarray(list(values), dtype=np.float64)[:dim]
    v[: len(src)] = src
    return v


def parse_vector(text: str, dim: int) -> Optional[np.ndarray]:
    """
    Parse comma/whitespace separated numbers into a ``dim``-length vector.

    Returns None when any token is not a finite number. Short input is
    zero-padded, long input truncated.
    """
    values = []
    for tok in _SPLIT_RE.split(text):
        tok = tok.strip()
        if not tok:
            continue
        try:
            x = float(tok)
        except ValueError:
            return None
        if not np.isfinite(x):
            return None
        values.append(x)
    return coerce_dim(values, dim)


def format_vector(v: np.ndarray, decimals: int = 3) -> str:
    return ", ".join(f"{round(float(x), decimals):g}" for x in v)
