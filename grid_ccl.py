from __future__ import annotations

import argparse
import json
import os
import subprocess
import time

import numpy as np
import yaml

from grid_model import Grid
from local_label import CONNECTIVITY_MODES, neighbor_offsets
from recompute import recompute
from worker import LabelWorker
import metrics as M


def parse_config(path: str) -> dict:
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ValueError(f"config {path} must be a mapping, got {type(cfg).__name__}")
    return cfg


def build_grid(cfg: dict) -> Grid:
    """Create the grid and activate the cells listed in (or sampled from) the config."""
    width = int(cfg.get("width", 0))
    height = int(cfg.get("height", 0))
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be provided and > 0")
    grid = Grid(width, height)

    cells = cfg.get("cells")
    if cells is not None:
        seen = set()
        for c in cells:
            if len(c) != 2:
                raise ValueError(f"cells entries must be [x, y], got {c!r}")
            x, y = int(c[0]), int(c[1])
            if (x, y) in seen:
                print(f"NOTE: cell ({x}, {y}) listed more than once.")
            seen.add((x, y))
            grid.set_active(x, y, True)
        return grid

    frac = float(cfg.get("fill_fraction", 0.0))
    if not 0.0 <= frac <= 1.0:
        raise ValueError("fill_fraction must be in [0, 1]")
    rng = np.random.default_rng(int(cfg.get("seed", 42)))
    grid.active[...] = rng.random((height, width)) < frac
    return grid


def _git_rev() -> str:
    try:
        return subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL).decode().strip()
    except Exception:
        return "unknown"


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", required=True)
    ap.add_argument("--connectivity", type=int, choices=CONNECTIVITY_MODES, default=None,
                    help="override the config's connectivity (4 or 8)")
    ap.add_argument("--background", action="store_true",
                    help="label a snapshot on the background worker instead of in-line")
    ap.add_argument("--png", action="store_true", help="also render the labeled grid to PNG")
    ap.add_argument("--output-dir", default=None)
    args = ap.parse_args(argv)

    cfg = parse_config(args.config)
    connectivity = int(args.connectivity if args.connectivity is not None else cfg.get("connectivity", 8))
    neighbor_offsets(connectivity)
    background = bool(cfg.get("background", False)) or args.background
    png = bool(cfg.get("png", False)) or args.png

    t0 = time.time()
    grid = build_grid(cfg)
    t_build = time.time()

    if background:
        with LabelWorker() as worker:
            labels, area_count = worker.submit(grid.snapshot(), neighbor_offsets(connectivity)).result()
        grid.apply_labels(labels)
    else:
        area_count = recompute(grid, connectivity).area_count
    labels = grid.labels
    t_label = time.time()

    ids = M.label_ids(labels)
    cell_count = M.num_cells(labels, ids)
    bbox_xy = M.compute_bboxes(labels, ids)
    if ids.size != area_count:
        raise RuntimeError(f"area count {area_count} disagrees with {ids.size} distinct labels")

    out_dir = cfg.get("output_dir", "./ccl_out") if args.output_dir is None else args.output_dir
    os.makedirs(out_dir, exist_ok=True)
    out_path = os.path.join(out_dir, "labels.npz")
    np.savez(
        out_path,
        labels=labels,
        active=grid.active,
        label_ids=ids,
        num_cells=cell_count,
        bbox_xy=bbox_xy,
        connectivity=np.int32(connectivity),
        area_count=np.int64(area_count),
    )

    png_path = None
    if png:
        from plot_grid import render_labels
        png_path = render_labels(labels, os.path.join(out_dir, "labels.png"),
                                 title=f"conn={connectivity} areas={area_count}")
    t_done = time.time()

    meta = {
        "grid": {"width": grid.width, "height": grid.height, "active": grid.active_count()},
        "connectivity": connectivity,
        "area_count": int(area_count),
        "background": background,
        "times": {
            "build": float(t_build - t0),
            "label": float(t_label - t_build),
            "reduce": float(t_done - t_label),
        },
        "git_rev": _git_rev(),
        "config": cfg,
        "output_npz": os.path.basename(out_path),
        "output_png": os.path.basename(png_path) if png_path else None,
    }
    with open(os.path.join(out_dir, "labels.meta.json"), "w") as f:
        json.dump(meta, f, indent=2)

    print(f"grid={grid.width}x{grid.height} conn={connectivity} times: "
          f"build={t_build-t0:.2f}s label={t_label-t_build:.2f}s reduce={t_done-t_label:.2f}s K={area_count}")
    return area_count


if __name__ == "__main__":
    main()
