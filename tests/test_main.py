import json
from pathlib import Path

from csg_bsp.main import _apply_overrides, main, parse_args


def test_overrides_map_cli_flags_to_config_keys():
    args = parse_args(["build", "primitive:box", "--candidates", "9", "--max-triangles-in-leaves", "4", "--strict"])
    config = _apply_overrides({"candidate_count": 5, "precision": 1e-6}, args)
    assert config == {"candidate_count": 9, "precision": 1e-6, "max_triangles_in_leaves": 4, "on_degenerate": "raise"}


def test_build_primitive_writes_outputs(tmp_path, capsys):
    code = main(["build", "primitive:two_boxes", "--out-dir", str(tmp_path), "--seed", "5", "--print-tree"])
    assert code == 0

    out = capsys.readouterr().out
    assert "[ok] BSP tree created in:" in out
    assert "|-> " in out

    glb = tmp_path / "two_boxes_bsp.glb"
    summary = tmp_path / "two_boxes_summary.txt"
    assert glb.read_bytes()[:4] == b"glTF"
    text = summary.read_text(encoding="utf-8")
    assert text.startswith("BSP Tree - Summary")
    assert "box_a:" in text and "box_b:" in text
    assert "Tree dump" in text


def test_build_with_custom_config(tmp_path, capsys):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"max_triangles_in_leaves": 100, "candidate_count": 3, "precision": 1e-5}))
    code = main(["build", "primitive:icosphere", "--config", str(config_path), "--out-dir", str(tmp_path)])
    assert code == 0
    out = capsys.readouterr().out
    assert "[ok] depth=" in out
    assert "triangles=320->320" in out
    assert (tmp_path / "icosphere_summary.txt").exists()


def test_out_dir_defaults_to_working_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    args = parse_args(["build", "primitive:box"])
    assert Path(args.out_dir) == tmp_path.resolve() / "out"
