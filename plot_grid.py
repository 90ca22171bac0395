from __future__ import annotations

import argparse
import colorsys
import os

import numpy as np
import matplotlib
matplotlib.use("agg")
import matplotlib.pyplot as plt

from metrics import label_ids, num_cells


BACKGROUND_RGB = (1.0, 1.0, 1.0)


def label_hue(label: int) -> int:
    """Hue in degrees for a canonical label. Depends on nothing but the label."""
    return (int(label) * 100) % 360


def label_color(label: int) -> tuple[float, float, float]:
    if int(label) == 0:
        return BACKGROUND_RGB
    # hsl(hue, 50%, 50%)
    return colorsys.hls_to_rgb(label_hue(label) / 360.0, 0.5, 0.5)


def colorize(labels: np.ndarray) -> np.ndarray:
    """Map a (height, width) label array to an RGB float image."""
    rgb = np.empty(labels.shape + (3,), dtype=np.float64)
    rgb[...] = BACKGROUND_RGB
    for l in label_ids(labels):
        rgb[labels == l] = label_color(l)
    return rgb


def render_labels(labels: np.ndarray, path: str, title: str | None = None,
                  show_labels: bool = False) -> str:
    height, width = labels.shape
    scale = max(3.0, min(12.0, 0.4 * max(width, height)))
    fig, ax = plt.subplots(figsize=(scale, scale * height / width), dpi=150)
    ax.imshow(colorize(labels), interpolation='nearest', origin='upper')
    ax.set_xticks(np.arange(-0.5, width, 1), minor=True)
    ax.set_yticks(np.arange(-0.5, height, 1), minor=True)
    ax.grid(which='minor', color='0.85', linewidth=0.5)
    ax.tick_params(which='both', bottom=False, left=False, labelbottom=False, labelleft=False)
    if show_labels:
        ys, xs = np.nonzero(labels)
        for x, y in zip(xs, ys):
            ax.text(x, y, str(int(labels[y, x])), ha='center', va='center', fontsize=6)
    ax.set_title(title or 'areas={}'.format(label_ids(labels).size))
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    fig.savefig(path, bbox_inches='tight')
    plt.close(fig)
    return path


def _hist_log(ax, data, bins=30, xlabel=None):
    data = np.asarray(data)
    data = data[np.isfinite(data) & (data > 0)]
    if data.size == 0:
        ax.text(0.5, 0.5, "No data", ha='center', va='center')
        return
    lo, hi = np.nanmin(data), np.nanmax(data)
    if hi <= lo:
        hi = lo + 1
    edges = np.logspace(np.log10(lo), np.log10(hi), bins)
    ax.hist(data, bins=edges, histtype='stepfilled', alpha=0.85)
    ax.set_xscale('log')
    if xlabel:
        ax.set_xlabel(xlabel)


def make_pngs(npz_path: str, outdir: str, prefix: str | None = None, show_labels: bool = False):
    with np.load(npz_path) as d:
        labels = d['labels']
    os.makedirs(outdir, exist_ok=True)
    base = prefix or (os.path.splitext(os.path.basename(npz_path))[0])

    render_labels(labels, os.path.join(outdir, f"{base}_grid.png"), show_labels=show_labels)

    fig, ax = plt.subplots(figsize=(6, 4), dpi=150)
    _hist_log(ax, num_cells(labels), xlabel='area size (cells)')
    ax.set_ylabel('count')
    ax.set_title('Area size distribution (K={})'.format(label_ids(labels).size))
    fig.savefig(os.path.join(outdir, f"{base}_size_hist.png"), bbox_inches='tight')
    plt.close(fig)

    print(f"Wrote PNGs to {outdir}")


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('--input', required=True, help='labels npz written by grid_ccl')
    ap.add_argument('--outdir', default=None, help='output directory for PNGs (default next to input)')
    ap.add_argument('--show-labels', action='store_true', help='print label numbers inside cells')
    args = ap.parse_args()

    outdir = args.outdir or os.path.dirname(args.input) or '.'
    make_pngs(args.input, outdir, show_labels=args.show_labels)


if __name__ == '__main__':
    main()
