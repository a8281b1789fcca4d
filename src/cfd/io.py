"""File output of the final flow field for gnuplot.

Writes ``colourmap.dat`` (speed mapped to an RGB integer per interior cell),
``velocity.dat`` (velocity vectors on a coarse subsample) and the gnuplot
script ``cfd.plt`` that overlays the two.
"""

import logging
from pathlib import Path

import numpy as np

log = logging.getLogger(__name__)


def compute_velocity(psi: np.ndarray, m: int, n: int):
    """Velocity components on the interior from central differences of psi.

    Returns
    -------
    u, v : np.ndarray
        Arrays of shape (m, n); u = dpsi/dy, v = -dpsi/dx with spacing 1.
    """
    u = (psi[1:m + 1, 2:n + 2] - psi[1:m + 1, 0:n]) / 2.0
    v = -(psi[2:m + 2, 1:n + 1] - psi[0:m, 1:n + 1]) / 2.0
    return u, v


def colfunc(x):
    """Colour band: 1 near zero, quadratic falloff, 0 beyond 0.5."""
    x1, x2 = 0.2, 0.5
    absx = np.abs(np.asarray(x, dtype=float))
    return np.where(
        absx > x2, 0.0,
        np.where(absx < x1, 1.0, 1.0 - ((absx - x1) / (x2 - x1)) ** 2),
    )


def hue2rgb(hue):
    """Map hue values to packed 24-bit RGB integers."""
    r = (255 * colfunc(hue - 1.0)).astype(np.int64)
    g = (255 * colfunc(hue - 0.5)).astype(np.int64)
    b = (255 * colfunc(hue)).astype(np.int64)
    return 65536 * r + 256 * g + b


def write_data_files(psi: np.ndarray, m: int, n: int, scale: int, output_dir=".") -> tuple:
    """Write colourmap.dat and velocity.dat for the interior of psi.

    Indices in both files are 1-based interior coordinates. Velocity vectors
    are written once per ``scale`` cells in each direction so the arrow
    density is the same at every resolution.

    Returns
    -------
    tuple of Path
        (colourmap_path, velocity_path)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    u, v = compute_velocity(psi, m, n)
    hue = (u * u + v * v) ** 0.4
    rgb = hue2rgb(hue)

    ix, iy = np.meshgrid(np.arange(1, m + 1), np.arange(1, n + 1), indexing="ij")

    colour_path = output_dir / "colourmap.dat"
    np.savetxt(
        colour_path,
        np.column_stack([ix.ravel(), iy.ravel(), rgb.ravel()]),
        fmt="%d %d %d",
    )

    offset = (scale - 1) // 2
    mask = ((ix - 1) % scale == offset) & ((iy - 1) % scale == offset)
    velocity_path = output_dir / "velocity.dat"
    with open(velocity_path, "w") as fh:
        for i, j, uu, vv in zip(ix[mask], iy[mask], u[mask], v[mask]):
            fh.write(f"{i} {j} {uu:f} {vv:f}\n")

    log.info(f"Wrote {colour_path} and {velocity_path}")
    return colour_path, velocity_path


def write_plot_file(m: int, n: int, scale: int, output_dir=".") -> Path:
    """Write the gnuplot script that renders the data files."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    arrow = f"{scale}*0.75"
    lines = [
        "set size square",
        "set key off",
        "unset xtics",
        "unset ytics",
        f"set xrange [{1 - scale}:{m + scale}]",
        f"set yrange [{1 - scale}:{n + scale}]",
        'plot "colourmap.dat" w rgbimage, "velocity.dat" '
        f"u 1:2:({arrow}*$3/sqrt($3**2+$4**2)):({arrow}*$4/sqrt($3**2+$4**2)) "
        'with vectors  lc rgb "#7F7F7F"',
    ]

    plot_path = output_dir / "cfd.plt"
    plot_path.write_text("\n".join(lines) + "\n")
    log.info(f"Wrote gnuplot script {plot_path}")
    return plot_path
