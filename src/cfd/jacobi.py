"""Jacobi relaxation kernels and the iterate-difference norm.

Every kernel reads only the previous iterate, so rows are distributed over
threads with ``prange`` and no synchronisation is needed inside a sweep.
The halo ring (row/column 0 and m+1/n+1) is never written here.
"""

import numpy as np
from numba import njit, prange


@njit(parallel=True, cache=True, nogil=True)
def jacobi_step(psi_new, psi, m, n):
    """One Jacobi sweep of Laplace's equation for psi."""
    for i in prange(1, m + 1):
        for j in range(1, n + 1):
            psi_new[i, j] = 0.25 * (
                psi[i - 1, j] + psi[i + 1, j] + psi[i, j - 1] + psi[i, j + 1]
            )


@njit(parallel=True, cache=True, nogil=True)
def jacobi_step_vort(zet_new, psi_new, zet, psi, m, n, re):
    """Coupled Jacobi sweep for vorticity transport and the psi Poisson equation.

    Parameters
    ----------
    zet_new, psi_new : np.ndarray
        Scratch buffers receiving the next iterate (interior only).
    zet, psi : np.ndarray
        Current iterate, read only.
    m, n : int
        Interior extent.
    re : float
        Reynolds number already divided by the scale factor. Must be below
        the stability limit, which the caller checks.
    """
    for i in prange(1, m + 1):
        for j in range(1, n + 1):
            # Diffusion plus centred-difference Jacobian of (psi, zeta)
            zet_new[i, j] = 0.25 * (
                zet[i - 1, j] + zet[i + 1, j] + zet[i, j - 1] + zet[i, j + 1]
            ) - re / 16.0 * (
                (psi[i, j + 1] - psi[i, j - 1]) * (zet[i + 1, j] - zet[i - 1, j])
                - (psi[i + 1, j] - psi[i - 1, j]) * (zet[i, j + 1] - zet[i, j - 1])
            )

            psi_new[i, j] = 0.25 * (
                psi[i - 1, j] + psi[i + 1, j] + psi[i, j - 1] + psi[i, j + 1]
                - zet[i, j]
            )


@njit(parallel=True, cache=True, nogil=True)
def copy_back(dst, src, m, n):
    """Promote the new iterate: copy the interior of src into dst."""
    for i in prange(1, m + 1):
        for j in range(1, n + 1):
            dst[i, j] = src[i, j]


@njit(parallel=True, cache=True, nogil=True)
def delta_sq(new, old, m, n):
    """Sum of squared differences between two iterates over the interior."""
    total = 0.0
    for i in prange(1, m + 1):
        for j in range(1, n + 1):
            diff = new[i, j] - old[i, j]
            total += diff * diff
    return total


def relative_error(dsum: float, bnorm: float) -> float:
    """Turn a summed squared update into the error relative to bnorm.

    A zero bnorm (all-zero boundary) has nothing to normalise against, so the
    absolute norm is returned.
    """
    error = float(np.sqrt(dsum))
    if bnorm > 0.0:
        error /= bnorm
    return error
