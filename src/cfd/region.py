"""Resident working buffers for the iteration loop.

The field arrays are transferred into the compute region once before the
loop and the final psi (and zeta) transferred back once after it. Inside the
region the kernels operate on the resident copies only. Leaving the ``with``
block, including through ``break`` or an exception, always performs the
transfer out, so early convergence exit needs no special handling.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .datastructures import CFDSolverFields

log = logging.getLogger(__name__)


@dataclass
class ResidentBuffers:
    """Contiguous working copies the kernels read and write."""

    psi: np.ndarray
    psi_tmp: np.ndarray
    zet: Optional[np.ndarray] = None
    zet_tmp: Optional[np.ndarray] = None


class ResidentFields:
    """Context manager mapping host fields into resident buffers.

    Mirrors a ``map(tofrom: psi) map(to: psi_tmp)`` data region: psi and
    zeta go both ways, the scratch buffers only in.
    """

    def __init__(self, host: CFDSolverFields):
        self.host = host
        self.buffers = None

    def __enter__(self) -> ResidentBuffers:
        h = self.host
        self.buffers = ResidentBuffers(
            psi=np.array(h.psi, order="C", copy=True),
            psi_tmp=np.array(h.psi_tmp, order="C", copy=True),
            zet=None if h.zet is None else np.array(h.zet, order="C", copy=True),
            zet_tmp=None if h.zet_tmp is None else np.array(h.zet_tmp, order="C", copy=True),
        )
        log.debug("Mapped %d field arrays into resident region",
                  sum(a is not None for a in vars(self.buffers).values()))
        return self.buffers

    def __exit__(self, exc_type, exc, tb):
        b = self.buffers
        self.host.psi[:] = b.psi
        if b.zet is not None:
            self.host.zet[:] = b.zet
        self.buffers = None
        return False
