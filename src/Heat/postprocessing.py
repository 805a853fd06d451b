"""Post-processing of checkpoint files and run summaries.

Checkpoints are raw M x N float64 files; the shape is not stored and must be
supplied by the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

PathLike = Union[str, Path]


def load_checkpoint(path: PathLike, M: int, N: int) -> np.ndarray:
    """Read one snapshot as an (M, N) array.

    Raises
    ------
    ValueError
        If the file size does not match M x N doubles.
    """
    path = Path(path)
    expected = M * N * np.dtype(np.float64).itemsize
    size = path.stat().st_size
    if size != expected:
        raise ValueError(f"{path} has {size} bytes, expected {expected} for {M}x{N}")
    return np.fromfile(path, dtype=np.float64).reshape(M, N)


def list_checkpoints(output_dir: PathLike) -> List[Path]:
    """Completed snapshot files in index order (``.part`` files are skipped)."""
    return sorted(Path(output_dir).glob("[0-9][0-9][0-9][0-9][0-9].bin"))


def load_results(path: PathLike) -> dict:
    """Run summary written by ``HeatSolver.save_hdf5``."""
    return pd.read_hdf(path, key="results").iloc[0].to_dict()


def plot_checkpoint(
    path: PathLike,
    M: int,
    N: int,
    output: Optional[PathLike] = None,
    vmin: float = 0.0,
    vmax: float = 60.0,
) -> Path:
    """Render one snapshot as a PNG heatmap next to it (or at ``output``)."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = Path(path)
    output = Path(output) if output is not None else path.with_suffix(".png")
    u = load_checkpoint(path, M, N)

    fig, ax = plt.subplots(figsize=(6, 6 * M / N))
    im = ax.imshow(u, origin="upper", cmap="inferno", vmin=vmin, vmax=vmax)
    ax.set_title(f"Temperature, snapshot {path.stem}")
    ax.set_xlabel("x (column)")
    ax.set_ylabel("y (row)")
    fig.colorbar(im, ax=ax, label="T")
    fig.tight_layout()
    fig.savefig(output, dpi=100)
    plt.close(fig)
    return output


def plot_checkpoints(output_dir: PathLike, M: int, N: int, plot_dir: PathLike) -> List[Path]:
    """Render every completed snapshot in ``output_dir`` into ``plot_dir``."""
    plot_dir = Path(plot_dir)
    plot_dir.mkdir(parents=True, exist_ok=True)
    return [
        plot_checkpoint(p, M, N, output=plot_dir / f"{p.stem}.png")
        for p in list_checkpoints(output_dir)
    ]
