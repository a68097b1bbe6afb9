# tests/test_pack.py
import json
import logging

import numpy as np
import pytest

from embedplane.pack import (
    PackError,
    dumps,
    loads,
    read_pack_file,
    validate_pack,
    write_pack_file,
)
from embedplane.session import Session


def make_pack(dim=4, items=None):
    if items is None:
        items = [
            {"id": "p1", "text": "alpha", "type": "word", "token": "a", "vector": [3, 4, 0, 0]},
            {"id": "p2", "text": "beta", "type": "phrase", "token": "", "vector": [0, 0, 1, 0]},
            {"text": "gamma", "vector": [1, 1, 1, 1]},
        ]
    return {
        "metadata": {"version": 1, "createdAt": "2024-01-01T00:00:00Z", "dim": dim, "method": "manual-gui"},
        "items": items,
    }


class TestMerge:
    def test_empty_session_adopts_pack_dim(self):
        s = Session(dim=8)
        assert s.merge_pack(make_pack(dim=4)) == 3
        assert s.dim == 4
        assert all(len(it.vector) == 4 for it in s.items)
        assert np.allclose(s.items[0].vector, [0.6, 0.8, 0.0, 0.0])

    def test_non_empty_session_pads_to_its_dim(self):
        s = Session(dim=8)
        s.add_item("existing")
        s.merge_pack(make_pack(dim=4))
        assert s.dim == 8
        assert all(len(it.vector) == 8 for it in s.items)
        assert np.allclose(s.get("p1").vector, [0.6, 0.8, 0, 0, 0, 0, 0, 0])

    def test_same_pack_twice_truncates_or_pads(self):
        s = Session(dim=8)
        s.merge_pack(make_pack(dim=4))
        s.resize(8)
        s.merge_pack(make_pack(dim=4))
        assert len(s.items) == 6
        assert all(len(it.vector) == 8 for it in s.items)

        small = Session(dim=2)
        small.add_item("x")
        small.merge_pack(make_pack(dim=4))
        assert np.allclose(small.get("p1").vector, [0.6, 0.8])

    def test_pack_dim_is_clamped(self):
        s = Session()
        s.merge_pack(make_pack(dim=1000, items=[{"text": "a", "vector": [1, 2, 3]}]))
        assert s.dim == 256
        s2 = Session()
        s2.merge_pack(make_pack(dim=1, items=[{"text": "a", "vector": [1, 2, 3]}]))
        assert s2.dim == 2

    def test_ids_reused_only_when_free(self):
        s = Session()
        s.merge_pack(make_pack())
        s.merge_pack(make_pack())
        ids = [it.id for it in s.items]
        assert ids[:2] == ["p1", "p2"]
        assert len(set(ids)) == 6
        assert "p1" not in ids[3:]

    def test_missing_vector_becomes_zeros(self, caplog):
        s = Session()
        with caplog.at_level(logging.WARNING, logger="embedplane.session"):
            s.merge_pack(make_pack(items=[{"text": "novec"}, {"text": "v", "vector": [1, 0, 0, 0]}]))
        assert np.array_equal(s.items[0].vector, np.zeros(4))
        assert "no vector" in caplog.text

    def test_defaults_for_optional_fields(self):
        s = Session()
        s.merge_pack(make_pack(items=[{"vector": [1, 0, 0, 0], "text": None, "type": ""}]), source="pack.json")
        it = s.items[0]
        assert (it.text, it.type, it.token, it.source) == ("", "word", "", "pack.json")

    def test_existing_basis_is_kept_and_locked(self):
        s = Session(dim=4, seed=5)
        for name in ("a", "b", "c"):
            s.add_item(name)
        s.request_recompute()
        W = s.basis.W
        old = [p.copy() for p in s.basis.pts2]

        s.merge_pack(make_pack())
        assert s.pca_locked
        assert s.basis.W is W
        assert len(s.basis.pts2) == 6
        assert np.allclose(s.basis.pts2[:3], old)
        assert np.allclose(s.basis.pts2[3], s.basis.project(s.get("p1").vector))

    def test_without_basis_recomputes(self):
        s = Session()
        s.merge_pack(make_pack())
        assert not s.basis.is_empty
        assert len(s.basis.pts2) == 3
        assert s.pca_locked is False

    def test_import_selects_first_item(self):
        s = Session()
        s.import_pack(make_pack())
        assert s.selected_id == "p1"
        assert [r.id for r in s.refresh_neighbors()] != []


class TestValidation:
    @pytest.mark.parametrize("pack", [
        {"metadata": {"dim": 4}},
        {"metadata": {"dim": 4}, "items": "nope"},
        [],
    ])
    def test_items_required(self, pack):
        with pytest.raises(PackError, match="items"):
            validate_pack(pack)

    @pytest.mark.parametrize("meta", [None, {}, {"dim": "4"}, {"dim": True}, {"dim": float("nan")}, {"dim": float("inf")}])
    def test_finite_dim_required(self, meta):
        pack = {"items": []}
        if meta is not None:
            pack["metadata"] = meta
        with pytest.raises(PackError, match="dim"):
            validate_pack(pack)

    @pytest.mark.parametrize("vector", [[1, "x", 0], [1, float("nan")], "1 2 3", [None]])
    def test_bad_vectors_mutate_nothing(self, vector):
        s = Session(dim=3)
        s.add_item("keep")
        pack = make_pack(dim=4, items=[{"text": "ok", "vector": [1, 0]}, {"text": "bad", "vector": vector}])
        with pytest.raises(PackError):
            s.merge_pack(pack)
        assert [it.text for it in s.items] == ["keep"]
        assert s.dim == 3

    def test_invalid_json(self):
        with pytest.raises(PackError, match="Invalid JSON"):
            loads("{not json")


class TestExport:
    def test_export_shape(self, demo_session):
        pack = demo_session.export_pack()
        meta = pack["metadata"]
        assert meta["version"] == 1
        assert meta["dim"] == 8
        assert meta["method"] == "manual-gui"
        assert "createdAt" in meta
        assert len(pack["items"]) == 12
        first = pack["items"][0]
        assert set(first) == {"id", "text", "type", "token", "vector"}
        assert len(first["vector"]) == 8

    def test_export_then_import_keeps_items(self, demo_session):
        text = dumps(demo_session.export_pack())
        s = Session()
        s.import_pack(loads(text))
        assert [it.id for it in s.items] == [it.id for it in demo_session.items]
        for a, b in zip(s.items, demo_session.items):
            assert np.allclose(a.vector, b.vector)


class TestFiles:
    def test_write_and_read(self, tmp_path, demo_session):
        path = write_pack_file(tmp_path / "out" / "pack.json", demo_session.export_pack())
        assert path.exists()
        assert json.loads(path.read_text())["metadata"]["dim"] == 8
        assert len(read_pack_file(path)["items"]) == 12

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_pack_file(tmp_path / "nope.json")

    def test_import_files_collects_failures(self, tmp_path):
        good = write_pack_file(tmp_path / "good.json", make_pack())
        bad = tmp_path / "bad.json"
        bad.write_text("{oops", encoding="utf-8")

        s = Session()
        total, errors = s.import_files([good, bad, tmp_path / "missing.json"])
        assert total == 3
        assert set(errors) == {str(bad), str(tmp_path / "missing.json")}
        assert s.items[0].source == "good.json"
        assert s.selected_id == "p1"
