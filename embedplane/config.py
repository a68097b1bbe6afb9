import json
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Iterator, Tuple


def _env(name: str, default: str) -> str:
    return os.getenv(f"EMBEDPLANE_{name}", default)


@dataclass
class CoreConfig:
    VECTOR_DIM: int = int(_env("VECTOR_DIM", "8"))
    MIN_DIM: int = 2
    MAX_DIM: int = 256
    NEAR_ZERO_NORM: float = 1e-12  # Edits below this norm are left unnormalized
    SEED: int = int(_env("SEED", "13"))
    DEBUG: bool = _env("DEBUG", "0") == "1"


@dataclass
class PCAConfig:
    POWER_ITERS: int = int(_env("POWER_ITERS", "80"))
    DEGENERATE_EPS: float = 1e-10
    MIN_ITEMS_FOR_SECOND_AXIS: int = 3


@dataclass
class NeighborConfig:
    LIMIT: int = int(_env("LIMIT", "12"))
    DELTA_THRESHOLD: float = 0.002  # Below this a rescore counts as unchanged


@dataclass
class SolverConfig:
    MAX_ABS_COSINE: float = 0.999999
    DEGENERATE_EPS: float = 1e-10


@dataclass
class PackConfig:
    VERSION: int = 1
    METHOD: str = "manual-gui"


def _coerce(current: Any, value: Any) -> Any:
    """Cast an incoming value to the type of the field it replaces."""
    if isinstance(current, bool):
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


class Config:
    """Process-wide settings, one dataclass per concern."""
    core = CoreConfig()
    pca = PCAConfig()
    neighbors = NeighborConfig()
    solver = SolverConfig()
    pack = PackConfig()

    _SECTIONS = ("core", "pca", "neighbors", "solver", "pack")

    @classmethod
    def _fields(cls) -> Iterator[Tuple[str, Any, str]]:
        for name in cls._SECTIONS:
            section = getattr(cls, name)
            for f in fields(section):
                yield name, section, f.name

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Flat ``{"section.FIELD": value}`` snapshot of every setting."""
        return {f"{name}.{field}": getattr(section, field) for name, section, field in cls._fields()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], apply_env_overrides: bool = True):
        """
        Apply a flat ``section.FIELD`` mapping. Unknown keys are ignored.
        With apply_env_overrides, a field set through EMBEDPLANE_<FIELD> keeps its value.
        """
        known = {f"{name}.{field}": (section, field) for name, section, field in cls._fields()}
        for key, value in data.items():
            target = known.get(key)
            if target is None:
                continue
            section, field = target
            if apply_env_overrides and f"EMBEDPLANE_{field}" in os.environ:
                continue
            setattr(section, field, _coerce(getattr(section, field), value))

    @classmethod
    def load_file(cls, path: str) -> Dict[str, Tuple[Any, Any]]:
        """Apply a JSON settings file and return what it changed as {key: (new, old)}."""
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must hold a JSON object")
        before = cls.to_dict()
        cls.from_dict(data)
        return cls.diff(before)

    @classmethod
    def diff(cls, other_dict: Dict[str, Any]) -> Dict[str, Tuple[Any, Any]]:
        """Keys whose current value differs from ``other_dict``, as {key: (current, other)}."""
        current = cls.to_dict()
        return {
            key: (current.get(key), other_dict.get(key))
            for key in sorted(current.keys() | other_dict.keys())
            if current.get(key) != other_dict.get(key)
        }


def clamp_dim(dim: int) -> int:
    return max(Config.core.MIN_DIM, min(Config.core.MAX_DIM, int(dim)))
