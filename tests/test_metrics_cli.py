from __future__ import annotations

import json
import os
import sys

import numpy as np
import pytest
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import grid_ccl
import metrics as M
from grid_model import OutOfBoundsError
from plot_grid import colorize, label_color, label_hue, make_pngs, render_labels


LABELS = np.array([
    [1, 1, 0, 3],
    [0, 1, 0, 3],
    [5, 0, 0, 3],
], dtype=np.uint32)


def test_label_ids_and_cell_counts():
    ids = M.label_ids(LABELS)
    assert ids.tolist() == [1, 3, 5]
    assert M.num_cells(LABELS, ids).tolist() == [3, 3, 1]
    assert M.num_cells(np.zeros((2, 2), dtype=np.uint32)).size == 0


def test_bboxes_are_half_open():
    bb = M.compute_bboxes(LABELS)
    assert bb.tolist() == [
        [0, 2, 0, 2],
        [3, 4, 0, 3],
        [0, 1, 2, 3],
    ]
    assert M.compute_bboxes(np.zeros((3, 3), dtype=np.uint32)).shape == (0, 4)


def test_label_color_is_deterministic():
    assert label_hue(1) == 100
    assert label_hue(4) == 40
    assert label_color(0) == (1.0, 1.0, 1.0)
    assert label_color(7) == label_color(7)
    assert label_color(1) != label_color(2)
    rgb = colorize(LABELS)
    assert rgb.shape == (3, 4, 3)
    assert np.allclose(rgb[0, 0], label_color(1))
    assert np.allclose(rgb[0, 2], (1.0, 1.0, 1.0))
    assert np.allclose(rgb[0, 0], rgb[1, 1])


def test_render_and_make_pngs(tmp_path):
    path = render_labels(LABELS, str(tmp_path / "grid.png"), show_labels=True)
    assert os.path.getsize(path) > 0
    npz = tmp_path / "labels.npz"
    np.savez(npz, labels=LABELS)
    make_pngs(str(npz), str(tmp_path / "pngs"))
    assert (tmp_path / "pngs" / "labels_grid.png").exists()
    assert (tmp_path / "pngs" / "labels_size_hist.png").exists()


def test_size_hist_with_single_area_size(tmp_path):
    # every area has one cell, so the histogram range collapses to a point
    npz = tmp_path / "diag.npz"
    np.savez(npz, labels=np.eye(4, dtype=np.uint32) * np.arange(1, 5, dtype=np.uint32))
    make_pngs(str(npz), str(tmp_path / "pngs"))
    assert (tmp_path / "pngs" / "diag_size_hist.png").exists()


def _write_cfg(tmp_path, **cfg) -> str:
    cfg.setdefault("output_dir", str(tmp_path / "out"))
    path = tmp_path / "cfg.yaml"
    path.write_text(yaml.safe_dump(cfg))
    return str(path)


@pytest.mark.parametrize("background", [False, True])
def test_cli_explicit_cells(tmp_path, background):
    cfg = _write_cfg(tmp_path, width=3, height=3, connectivity=8,
                     cells=[[0, 0], [1, 1], [2, 2]])
    argv = ["--config", cfg] + (["--background"] if background else [])
    assert grid_ccl.main(argv) == 1
    assert grid_ccl.main(argv + ["--connectivity", "4"]) == 3

    out = tmp_path / "out"
    with np.load(out / "labels.npz") as d:
        assert int(d["area_count"]) == 3
        assert int(d["connectivity"]) == 4
        assert d["labels"].tolist() == [[1, 0, 0], [0, 2, 0], [0, 0, 3]]
        assert d["num_cells"].tolist() == [1, 1, 1]
    meta = json.loads((out / "labels.meta.json").read_text())
    assert meta["area_count"] == 3
    assert meta["grid"] == {"width": 3, "height": 3, "active": 3}


def test_cli_random_fill_with_png(tmp_path):
    cfg = _write_cfg(tmp_path, width=20, height=12, fill_fraction=0.4, seed=3)
    K = grid_ccl.main(["--config", cfg, "--png"])
    out = tmp_path / "out"
    assert (out / "labels.png").exists()
    with np.load(out / "labels.npz") as d:
        assert d["label_ids"].size == K
        assert int(d["num_cells"].sum()) == int(d["active"].sum())


def test_cli_config_errors(tmp_path):
    with pytest.raises(ValueError):
        grid_ccl.main(["--config", _write_cfg(tmp_path, width=0, height=3)])
    with pytest.raises(ValueError):
        grid_ccl.build_grid({"width": 3, "height": 3, "fill_fraction": 1.5})
    with pytest.raises(OutOfBoundsError):
        grid_ccl.build_grid({"width": 3, "height": 3, "cells": [[3, 0]]})
    with pytest.raises(ValueError):
        grid_ccl.main(["--config", _write_cfg(tmp_path, width=3, height=3, connectivity=6)])


def test_cli_notes_duplicate_cells(capsys):
    grid = grid_ccl.build_grid({"width": 2, "height": 2, "cells": [[0, 0], [0, 0]]})
    assert grid.active_count() == 1
    assert "NOTE" in capsys.readouterr().out
