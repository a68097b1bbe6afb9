# embedplane/neighbors.py
"""
Neighbor similarity bar.

The ranking is computed once per focal item and then frozen: later edits
rescore the rows but never reorder them, so the list does not jostle while
the user is tweaking a vector. New items are appended at the end.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np

from .config import Config
from .vecmath import cosine

logger = logging.getLogger(__name__)


@dataclass
class NeighborRow:
    id: str
    text: str
    score: float
    delta: float
    direction: str  # "up" | "down" | "same"
    bar: float      # score mapped onto [0, 1]
    dragging: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "score": round(self.score, 3),
            "delta": round(self.delta, 4),
            "direction": self.direction,
            "bar": round(self.bar, 3),
            "dragging": self.dragging,
        }


def cosine_to_bar_fraction(score: float) -> float:
    return max(0.0, min(1.0, (score + 1.0) / 2.0))


def bar_fraction_to_cosine(fraction: float) -> float:
    return max(0.0, min(1.0, fraction)) * 2.0 - 1.0


def direction_for(delta: float, threshold: Optional[float] = None) -> str:
    threshold = Config.neighbors.DELTA_THRESHOLD if threshold is None else threshold
    if delta > threshold:
        return "up"
    if delta < -threshold:
        return "down"
    return "same"


def rank_by_similarity(focal_vec: np.ndarray, others: Sequence[Any]) -> List[str]:
    """Ids of ``others`` by descending cosine to ``focal_vec`` (inner product over unit vectors)."""
    if not others:
        return []
    mat = np.stack([o.vector for o in others]).astype("float32")
    mat /= np.linalg.norm(mat, axis=1, keepdims=True) + 1e-12
    query = focal_vec.astype("float32").reshape(1, -1)
    query /= np.linalg.norm(query) + 1e-12

    index = faiss.IndexFlatIP(mat.shape[1])
    index.add(mat)
    _, I = index.search(query, len(others))
    return [others[i].id for i in I[0] if i >= 0]


@dataclass
class NeighborRanker:
    frozen_order: List[str] = field(default_factory=list)
    frozen_for_id: Optional[str] = None
    last_scores: Dict[str, float] = field(default_factory=dict)

    def reset(self):
        self.frozen_order = []
        self.frozen_for_id = None
        self.last_scores.clear()

    def freeze(self, focal: Optional[Any], items: Sequence[Any]):
        if focal is None:
            self.reset()
            return
        if self.frozen_for_id == focal.id and self.frozen_order:
            return

        others = [x for x in items if x.id != focal.id]
        self.frozen_order = rank_by_similarity(focal.vector, others)
        self.frozen_for_id = focal.id
        self.last_scores.clear()
        logger.debug("Froze %d neighbors for %s", len(self.frozen_order), focal.id)

    def append(self, new_id: str, focal_id: Optional[str]):
        if focal_id is None or self.frozen_for_id != focal_id:
            return
        if new_id and new_id != focal_id and new_id not in self.frozen_order:
            self.frozen_order.append(new_id)

    def refresh(
        self,
        focal: Optional[Any],
        items: Sequence[Any],
        limit: Optional[int] = None,
        dragging_id: Optional[str] = None,
    ) -> List[NeighborRow]:
        if focal is None:
            return []

        by_id = {x.id: x for x in items}
        self.frozen_order = [i for i in self.frozen_order if i in by_id and i != focal.id]

        shown = self.frozen_order if limit is None else self.frozen_order[:limit]
        rows = []
        for nid in shown:
            other = by_id[nid]
            score = cosine(focal.vector, other.vector)
            prev = self.last_scores.get(nid)
            delta = 0.0 if prev is None else score - prev
            self.last_scores[nid] = score
            rows.append(NeighborRow(
                id=nid,
                text=other.text,
                score=score,
                delta=delta,
                direction=direction_for(delta),
                bar=cosine_to_bar_fraction(score),
                dragging=(nid == dragging_id),
            ))
        return rows
