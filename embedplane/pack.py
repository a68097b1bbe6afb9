# embedplane/pack.py
"""
Pack exchange format.

    {
      "metadata": {"version": 1, "createdAt": "...", "dim": 8, "method": "manual-gui"},
      "items": [{"id": "...", "text": "...", "type": "word", "token": "", "vector": [...]}]
    }

``items`` and a finite ``metadata.dim`` are required. Validation runs
before anything touches a session, so a rejected pack mutates nothing.
"""
from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import Config

logger = logging.getLogger(__name__)


class PackError(ValueError):
    """A pack that cannot be merged."""


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


class PackMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version: Any = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    dim: float
    method: Optional[str] = None

    @field_validator("dim", mode="before")
    @classmethod
    def _finite_dim(cls, v):
        if not _is_number(v) or not math.isfinite(v):
            raise ValueError("metadata.dim must be a finite number")
        return v

    @field_validator("created_at", "method", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None else str(v)


class PackItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    text: str = ""
    type: str = "word"
    token: str = ""
    vector: Optional[List[float]] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v):
        return str(v) if v not in (None, "") else None

    @field_validator("text", "token", mode="before")
    @classmethod
    def _text(cls, v):
        return str(v) if v else ""

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v):
        return str(v) if v else "word"

    @field_validator("vector", mode="before")
    @classmethod
    def _vector(cls, v):
        if v is None:
            return None
        if not isinstance(v, (list, tuple)):
            raise ValueError("vector must be a list of numbers")
        for x in v:
            if not _is_number(x) or not math.isfinite(x):
                raise ValueError(f"vector component {x!r} is not a finite number")
        return list(v)


class Pack(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metadata: PackMetadata
    items: List[PackItem]


def validate_pack(pack: Any) -> Pack:
    if not isinstance(pack, dict) or not isinstance(pack.get("items"), list):
        raise PackError("Bad pack: items missing")
    meta = pack.get("metadata")
    if not isinstance(meta, dict) or not _is_number(meta.get("dim")) or not math.isfinite(meta["dim"]):
        raise PackError("Bad pack: metadata.dim missing")
    try:
        return Pack.model_validate(pack)
    except ValidationError as e:
        err = e.errors()[0]
        where = ".".join(str(p) for p in err.get("loc", ()))
        raise PackError(f"Bad pack: {where}: {err.get('msg')}") from e


def build_pack(dim: int, items: Sequence[Any]) -> Dict[str, Any]:
    return {
        "metadata": {
            "version": Config.pack.VERSION,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "dim": dim,
            "method": Config.pack.METHOD,
        },
        "items": [it.to_dict() for it in items],
    }


def dumps(pack: Dict[str, Any]) -> str:
    return json.dumps(pack, indent=2)


def loads(text: str) -> Dict[str, Any]:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise PackError(f"Invalid JSON: {e}") from e


def read_pack_file(path: Union[str, Path]) -> Dict[str, Any]:
    path_obj = Path(path)
    if not path_obj.exists():
        raise FileNotFoundError(f"Pack file not found: {path}")
    return loads(path_obj.read_text(encoding="utf-8"))


def write_pack_file(path: Union[str, Path], pack: Dict[str, Any]) -> Path:
    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    path_obj.write_text(dumps(pack), encoding="utf-8")
    logger.info("Wrote %d items to %s", len(pack.get("items", [])), path_obj)
    return path_obj
