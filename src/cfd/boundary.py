"""Boundary conditions for the stream function and vorticity.

The domain is a box with an inlet slot on the bottom edge and an outlet slot
on the right edge. Boundary values live in the one-cell halo of the
(m+2) x (n+2) arrays, so interior indices run over 1..m and 1..n.
"""

import numpy as np
from numba import njit


@njit(cache=True, nogil=True)
def boundary_psi(psi, m, n, b, h, w):
    """Write the fixed inflow/outflow stream function into the halo.

    Flow enters through the bottom edge between i = b and i = b + w and
    leaves through the right edge between j = h and j = h + w. The
    stream function rises linearly across each slot, so the flux is w.
    """
    # Bottom edge: ramp across the inlet, constant w downstream of it
    for i in range(b + 1, b + w):
        psi[i, 0] = float(i - b)
    for i in range(b + w, m + 1):
        psi[i, 0] = float(w)

    # Right edge: constant w below the outlet, ramp down across it
    for j in range(1, h + 1):
        psi[m + 1, j] = float(w)
    for j in range(h + 1, h + w):
        psi[m + 1, j] = float(w - j + h)


@njit(cache=True, nogil=True)
def boundary_zet(zet, psi, m, n):
    """Set wall vorticity from the current stream function.

    One-sided difference of psi normal to each wall (grid spacing 1). Must be
    rerun after every iteration because psi next to the wall keeps changing.

    The sign matches the psi update ``(sum of neighbours - zet) / 4``, which
    relaxes towards laplacian(psi) = zet.
    """
    # Top and bottom
    for i in range(1, m + 1):
        zet[i, 0] = 2.0 * (psi[i, 1] - psi[i, 0])
        zet[i, n + 1] = 2.0 * (psi[i, n] - psi[i, n + 1])

    # Left and right
    for j in range(1, n + 1):
        zet[0, j] = 2.0 * (psi[1, j] - psi[0, j])
        zet[m + 1, j] = 2.0 * (psi[m, j] - psi[m + 1, j])


def boundary_norm(psi: np.ndarray, zet: np.ndarray = None) -> float:
    """Reference norm sqrt(sum psi^2 [+ sum zet^2]) over the whole array.

    Called right after boundary setup, when only the halo is non-zero.
    """
    total = float(np.sum(psi * psi))
    if zet is not None:
        total += float(np.sum(zet * zet))
    return float(np.sqrt(total))
