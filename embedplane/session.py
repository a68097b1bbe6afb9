# embedplane/session.py
"""
Session: the single owner of items, selection, PCA basis and drag state.

Every host interaction maps to one command here. A command finishes its
vector mutation before it touches the basis or the neighbor ranking, and
does at most one PCA recompute.

Basis policy:
- ``ensure_basis`` recomputes when the data changed, unless the basis is
  locked (a drag, a cosine-target edit or an append placed points by hand).
- ``request_recompute`` always recomputes and clears the lock.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import Config, clamp_dim
from .neighbors import NeighborRanker, NeighborRow
from .pack import build_pack, read_pack_file, validate_pack
from .pca import PCABasis, compute_pca2d
from .projection import reconstruct, residual_for
from .solver import solve_target_cosine
from .vecmath import coerce_dim, normalize_in_place, normalize_unless_zero, parse_vector

logger = logging.getLogger(__name__)

DEMO_SEED = [
    ("block open", "phrase", "{"),
    ("block close", "phrase", "}"),
    ("repeat", "word", "for"),
    ("times", "word", ""),
    ("print", "word", "console.log"),
    ("set", "word", "="),
    ("to", "word", ""),
    ("counter", "word", "identifier"),
    ("if", "word", "if"),
    ("else", "word", "else"),
    ("(", "token", "("),
    (")", "token", ")"),
]


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Item:
    id: str
    text: str
    type: str
    token: str
    vector: np.ndarray
    source: str = ""  # Pack or file the item was imported from

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type,
            "token": self.token,
            "vector": [float(x) for x in self.vector],
        }


@dataclass
class DragState:
    item_id: str
    index: int
    residual: np.ndarray
    vector_before: np.ndarray
    point_before: Optional[np.ndarray]
    locked_before: bool
    version_before: int
    moved: bool = False
    steps: int = 0


class Session:
    """In-memory workspace of labeled vectors and their live 2D projection."""

    def __init__(self, dim: Optional[int] = None, seed: Optional[int] = None):
        self.dim = clamp_dim(Config.core.VECTOR_DIM if dim is None else dim)
        self.items: List[Item] = []
        self.selected_id: Optional[str] = None
        self.basis = PCABasis.empty()
        self.pca_locked = False
        self.neighbors = NeighborRanker()
        self.drag: Optional[DragState] = None
        self.version = 0
        self.rng = np.random.default_rng(Config.core.SEED if seed is None else seed)

    # --- Lookup ---
    def get(self, item_id: Optional[str]) -> Optional[Item]:
        if item_id is None:
            return None
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    def index_of(self, item_id: str) -> int:
        for i, it in enumerate(self.items):
            if it.id == item_id:
                return i
        return -1

    @property
    def selected(self) -> Optional[Item]:
        return self.get(self.selected_id)

    def search(self, query: str) -> List[Item]:
        q = query.strip().lower()
        if not q:
            return list(self.items)
        return [it for it in self.items if q in it.text.lower() or q in (it.token or "").lower()]

    def _touch(self):
        self.version += 1

    def _random_vector(self) -> np.ndarray:
        return normalize_in_place(self.rng.uniform(-1.0, 1.0, self.dim))

    # --- PCA basis ---
    def ensure_basis(self) -> PCABasis:
        if len(self.items) < 2:
            self.basis = PCABasis.empty()
            return self.basis
        if self.drag is not None and not self.basis.is_empty:
            # The drag residual was captured against this basis.
            return self.basis
        if self.pca_locked and not self.basis.is_empty:
            logger.debug("PCA locked, reusing basis from version %d", self.basis.version)
            return self.basis
        if self.basis.is_empty or self.basis.version != self.version:
            self._recompute()
        return self.basis

    def request_recompute(self) -> PCABasis:
        if len(self.items) < 2:
            self.basis = PCABasis.empty()
        else:
            self._recompute()
        self.pca_locked = False
        return self.basis

    def _recompute(self):
        prev = None if self.basis.is_empty else self.basis.W
        self.basis = compute_pca2d([it.vector for it in self.items], self.dim, prev)
        self.basis.version = self.version
        logger.debug(
            "PCA recomputed over %d items (lambda=%.4g, %.4g)",
            len(self.items), *self.basis.lambdas,
        )

    def _place_appended(self, added: Sequence[Item]):
        """Project new trailing items into the current basis, or recompute if there is none."""
        if not self.basis.is_empty:
            self.pca_locked = True
            for it in added:
                self.basis.pts2.append(self.basis.project(it.vector))
        else:
            self.request_recompute()

    def _patch_point(self, index: int):
        if index < 0 or self.basis.is_empty or index >= len(self.basis.pts2):
            return
        self.basis.pts2[index] = self.basis.project(self.items[index].vector)

    def points(self) -> List[Tuple[Item, float, float]]:
        basis = self.ensure_basis()
        if basis.is_empty:
            return []
        return [(it, float(p[0]), float(p[1])) for it, p in zip(self.items, basis.pts2)]

    # --- Item CRUD ---
    def add_item(
        self,
        text: str,
        type: str = "word",
        token: str = "",
        vector: Optional[Iterable[float]] = None,
    ) -> Optional[Item]:
        text = text.strip()
        if not text:
            return None

        prev_selected = self.selected_id
        if vector is None:
            vec = self._random_vector()
        else:
            vec = normalize_unless_zero(coerce_dim(vector, self.dim))
        item = Item(id=new_id(), text=text, type=type, token=(token or "").strip(), vector=vec)

        # Appended so existing pts2 indices stay aligned.
        self.items.append(item)
        self._touch()

        if prev_selected is None:
            self.select(item.id)
        else:
            self.neighbors.append(item.id, prev_selected)

        self._place_appended([item])
        return item

    def update_item(
        self,
        item_id: str,
        text: Optional[str] = None,
        type: Optional[str] = None,
        token: Optional[str] = None,
    ) -> bool:
        it = self.get(item_id)
        if it is None:
            return False
        if text is not None and text.strip():
            it.text = text.strip()
        if type is not None:
            it.type = type
        if token is not None:
            it.token = token.strip()
        return True

    def delete_item(self, item_id: str) -> bool:
        if self.get(item_id) is None:
            return False
        if self.drag is not None and self.drag.item_id == item_id:
            self.drag = None
        self.items = [x for x in self.items if x.id != item_id]
        if self.selected_id == item_id:
            self.select(None)
        self._touch()
        self.request_recompute()
        return True

    def select(self, item_id: Optional[str]) -> Optional[Item]:
        if item_id is not None and self.get(item_id) is None:
            return None
        self.selected_id = item_id
        self.neighbors.freeze(self.selected, self.items)
        return self.selected

    def clear(self):
        self.items = []
        self.selected_id = None
        self.basis = PCABasis.empty()
        self.pca_locked = False
        self.neighbors.reset()
        self.drag = None
        self._touch()

    def seed_demo(self) -> List[Item]:
        added = []
        for text, typ, token in DEMO_SEED:
            it = Item(id=new_id(), text=text, type=typ, token=token, vector=self._random_vector())
            self.items.append(it)
            added.append(it)
        self._touch()
        self.select(self.items[0].id if self.items else None)
        self.request_recompute()
        return added

    # --- Vector edits ---
    def set_vector(self, item_id: str, values: Iterable[float]) -> bool:
        it = self.get(item_id)
        if it is None:
            return False
        it.vector = normalize_unless_zero(coerce_dim(values, self.dim))
        self._touch()
        self.request_recompute()
        return True

    def set_vector_text(self, item_id: str, text: str) -> bool:
        if self.get(item_id) is None:
            return False
        v = parse_vector(text, self.dim)
        if v is None:
            raise ValueError("Vector parse error: every component must be a finite number")
        return self.set_vector(item_id, v)

    def randomize(self, item_id: str) -> bool:
        it = self.get(item_id)
        if it is None:
            return False
        it.vector = self._random_vector()
        self._touch()
        self.request_recompute()
        return True

    def normalize(self, item_id: str) -> bool:
        it = self.get(item_id)
        if it is None:
            return False
        normalize_unless_zero(it.vector)
        self._touch()
        self.request_recompute()
        return True

    def center_all(self):
        if not self.items:
            return
        mu = np.mean(np.stack([it.vector for it in self.items]), axis=0)
        for it in self.items:
            it.vector = normalize_unless_zero(it.vector - mu)
        self._touch()
        self.request_recompute()

    def resize(self, dim: int) -> int:
        self.dim = clamp_dim(dim)
        for it in self.items:
            it.vector = normalize_unless_zero(coerce_dim(it.vector, self.dim))
        self.drag = None
        self._touch()
        logger.info("Resized session to %d dimensions (%d items)", self.dim, len(self.items))
        self.request_recompute()
        return self.dim

    # --- Drag gesture ---
    def drag_start(self, item_id: str) -> bool:
        if not self.pca_locked or self.basis.is_empty:
            self.ensure_basis()
        idx = self.index_of(item_id)
        if idx < 0:
            return False
        self.select(item_id)

        it = self.items[idx]
        basis = self.basis
        point = basis.pts2[idx] if idx < len(basis.pts2) else None
        W1, W2 = basis.W if basis.W is not None else (None, None)
        self.drag = DragState(
            item_id=item_id,
            index=idx,
            residual=residual_for(it.vector, basis.mean, W1, W2, point),
            vector_before=it.vector.copy(),
            point_before=None if point is None else point.copy(),
            locked_before=self.pca_locked,
            version_before=self.version,
        )
        return True

    def drag_step(self, x: float, y: float) -> Optional[Item]:
        d = self.drag
        if d is None or self.basis.is_empty:
            return None
        it = self.get(d.item_id)
        if it is None or d.index >= len(self.items) or self.items[d.index] is not it:
            return None

        W1, W2 = self.basis.W
        it.vector = normalize_unless_zero(reconstruct(self.basis.mean, W1, W2, x, y, d.residual))
        if d.index < len(self.basis.pts2):
            self.basis.pts2[d.index] = np.array([float(x), float(y)])
        d.moved = True
        d.steps += 1
        self._touch()
        logger.debug("Drag %s -> (%.4f, %.4f)", it.id, x, y)
        return it

    def drag_end(self) -> bool:
        d = self.drag
        self.drag = None
        if d is None:
            return False
        if d.moved:
            self.pca_locked = True
        else:
            self.pca_locked = d.locked_before
        return d.moved

    def drag_cancel(self):
        d = self.drag
        self.drag = None
        if d is None:
            return
        it = self.get(d.item_id)
        if it is not None and d.moved:
            it.vector = d.vector_before
            if d.point_before is not None and d.index < len(self.basis.pts2):
                self.basis.pts2[d.index] = d.point_before
            if self.version == d.version_before + d.steps:
                self.version = d.version_before
            else:
                self._touch()
        self.pca_locked = d.locked_before

    # --- Similarity ---
    def set_target_cosine(self, other_id: str, target: float) -> Optional[Item]:
        sel = self.selected
        other = self.get(other_id)
        if sel is None or other is None or other is sel:
            return None

        new_vec = solve_target_cosine(sel.vector, other.vector, target)
        if new_vec is None:
            return None
        sel.vector = new_vec
        self._touch()

        self.pca_locked = True
        self._patch_point(self.index_of(sel.id))
        return sel

    def refresh_neighbors(
        self,
        limit: Optional[int] = None,
        dragging_id: Optional[str] = None,
    ) -> List[NeighborRow]:
        sel = self.selected
        if sel is None:
            self.neighbors.reset()
            return []
        self.neighbors.freeze(sel, self.items)
        limit = Config.neighbors.LIMIT if limit is None else limit
        return self.neighbors.refresh(sel, self.items, limit=limit, dragging_id=dragging_id)

    # --- Import / export ---
    def export_pack(self) -> Dict[str, Any]:
        return build_pack(self.dim, self.items)

    def merge_pack(self, pack: Any, source: str = "") -> int:
        parsed = validate_pack(pack)

        if not self.items:
            self.dim = clamp_dim(parsed.metadata.dim)
        taken = {it.id for it in self.items}

        added = []
        for entry in parsed.items:
            if entry.id and entry.id not in taken:
                item_id = entry.id
            else:
                item_id = new_id()
                while item_id in taken:
                    item_id = new_id()
            taken.add(item_id)

            if entry.vector is None:
                logger.warning("Pack item %r has no vector, using zeros", entry.text)
                vec = np.zeros(self.dim)
            else:
                vec = coerce_dim(entry.vector, self.dim)
            added.append(Item(
                id=item_id,
                text=entry.text,
                type=entry.type,
                token=entry.token,
                vector=normalize_unless_zero(vec),
                source=source,
            ))

        self.items.extend(added)
        self._touch()
        for it in added:
            self.neighbors.append(it.id, self.selected_id)
        self._place_appended(added)
        logger.info("Merged %d items%s", len(added), f" from {source}" if source else "")
        return len(added)

    def import_pack(self, pack: Any, source: str = "") -> int:
        added = self.merge_pack(pack, source)
        if self.selected_id is None and self.items:
            self.select(self.items[0].id)
        return added

    def import_files(self, paths: Iterable[Union[str, Path]]) -> Tuple[int, Dict[str, str]]:
        """Merge several pack files. Returns (merged count, {path: error})."""
        total = 0
        errors: Dict[str, str] = {}
        for path in paths:
            path = Path(path)
            try:
                total += self.merge_pack(read_pack_file(path), source=path.name)
            except (OSError, ValueError) as e:
                logger.warning("Failed to import %s: %s", path, e)
                errors[str(path)] = str(e)
        if self.selected_id is None and self.items:
            self.select(self.items[0].id)
        return total, errors
