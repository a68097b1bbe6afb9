# tests/test_cli.py
import json

import pytest

from embedplane.cli import main
from embedplane.pack import read_pack_file
from embedplane.vecmath import cosine


@pytest.fixture
def pack_path(tmp_path, capsys):
    path = tmp_path / "demo.json"
    main(["seed", "--dim", "6", "--seed", "4", "-o", str(path)])
    return path


def test_seed_writes_pack(pack_path, capsys):
    assert "Saved 12 items" in capsys.readouterr().out
    pack = read_pack_file(pack_path)
    assert pack["metadata"]["dim"] == 6
    assert len(pack["items"]) == 12


def test_seed_to_stdout(capsys):
    main(["seed", "--dim", "3"])
    pack = json.loads(capsys.readouterr().out)
    assert all(len(it["vector"]) == 3 for it in pack["items"])


def test_project_prints_every_item(pack_path, capsys):
    capsys.readouterr()
    main(["project", str(pack_path)])
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].startswith("lambda1=")
    assert len(lines) == 13


def test_neighbors_limit(pack_path, capsys):
    first = read_pack_file(pack_path)["items"][0]["id"]
    capsys.readouterr()
    main(["neighbors", str(pack_path), "--item", first, "--limit", "4"])
    rows = capsys.readouterr().out.strip().splitlines()
    assert len(rows) == 4
    scores = [float(r.split("\t")[0]) for r in rows]
    assert scores == sorted(scores, reverse=True)


def test_target_updates_only_the_edited_item(pack_path, tmp_path):
    items = read_pack_file(pack_path)["items"]
    item, other = items[0]["id"], items[3]["id"]
    out = tmp_path / "edited.json"
    main(["target", str(pack_path), "--item", item, "--other", other, "--cos", "0.25", "-o", str(out)])

    edited = {it["id"]: it["vector"] for it in read_pack_file(out)["items"]}
    assert cosine(edited[item], edited[other]) == pytest.approx(0.25, abs=1e-6)
    assert edited[other] == pytest.approx(items[3]["vector"])


def test_unknown_item_exits_with_error(pack_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["neighbors", str(pack_path), "--item", "nope"])
    assert exc.value.code == 1
    assert "Unknown item" in capsys.readouterr().err


def test_missing_pack_exits_with_error(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["project", str(tmp_path / "missing.json")])
    assert exc.value.code == 1
    assert "not found" in capsys.readouterr().err


def test_config_file_sets_neighbor_limit(pack_path, tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("EMBEDPLANE_LIMIT", raising=False)
    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"neighbors.LIMIT": 2}))
    first = read_pack_file(pack_path)["items"][0]["id"]
    capsys.readouterr()
    main(["--config", str(settings), "neighbors", str(pack_path), "--item", first])
    assert len(capsys.readouterr().out.strip().splitlines()) == 2


def test_bad_config_file_exits_with_error(pack_path, tmp_path, capsys):
    settings = tmp_path / "settings.json"
    settings.write_text("{broken")
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(settings), "project", str(pack_path)])
    assert exc.value.code == 1
    assert capsys.readouterr().err.startswith("error:")
