from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)


def plot_skip_reasons(
    *,
    skipped: Dict[str, int],
    out_png: str | Path,
    title: str = "Records skipped per reason",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = list(skipped.keys())
    values = [int(skipped[k]) for k in labels]

    plt.figure()
    plt.bar(labels, values)
    plt.ylabel("Record count")
    plt.title(title)
    plt.xticks(rotation=30, ha="right")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_site_positions(
    *,
    positions: Dict[str, List[int]],
    out_png: str | Path,
    title: str = "Core site positions",
    nbins: int = 50,
) -> None:
    """Histogram of accepted site positions, one series per contig.

    Contigs are overlaid on a shared position axis; with zero core sites an
    empty axis is written so the report always has an image.
    """
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    plt.figure()
    for chrom, pos in sorted(positions.items()):
        if not pos:
            continue
        counts, edges = np.histogram(np.asarray(pos, dtype=np.int64), bins=nbins)
        centers = 0.5 * (edges[:-1] + edges[1:])
        plt.step(centers, counts, where="mid", label=chrom)
    if positions:
        plt.legend(loc="upper right", fontsize="small")
    plt.xlabel("Position (bp)")
    plt.ylabel("Core sites per bin")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
