"""
Flow Field Plots.

Streamlines (psi contours) over the speed field, and the convergence history.
"""

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from .io import compute_velocity

log = logging.getLogger(__name__)


def plot_flow(psi: np.ndarray, m: int, n: int, output_dir: Path, title: str = "") -> Path:
    """Plot speed as a filled contour with psi isolines on top."""
    u, v = compute_velocity(psi, m, n)
    speed = np.sqrt(u * u + v * v)

    # Interior points sit at 1..m (first index, x) and 1..n (second, y)
    x = np.arange(1, m + 1)
    y = np.arange(1, n + 1)
    X, Y = np.meshgrid(x, y, indexing="ij")

    fig, ax = plt.subplots(figsize=(6, 5.5))
    cf = ax.contourf(X, Y, speed, levels=30, cmap="viridis")
    ax.contour(X, Y, psi[1:m + 1, 1:n + 1], levels=20, colors="white", linewidths=0.6)
    ax.set_xlabel("i")
    ax.set_ylabel("j")
    ax.set_aspect("equal")
    ax.set_title(title or f"Stream function, {m} x {n} grid")
    fig.colorbar(cf, ax=ax, label="|u|")
    fig.tight_layout()

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / "flow.png"
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    log.info(f"Saved flow plot to {output_path}")
    return output_path


def plot_convergence(time_series, output_dir: Path) -> Path:
    """Plot relative error against iteration on a log scale."""
    df = time_series.to_dataframe()

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.semilogy(df["iteration"], df["error"], marker="." if len(df) < 50 else None)
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Relative error")
    ax.grid(True, which="both", alpha=0.3)
    fig.tight_layout()

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / "convergence.png"
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return output_path
