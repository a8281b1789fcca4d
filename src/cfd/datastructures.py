"""Data structures for solver configuration and results.

Structure:
- Parameters: Input configuration (logged to MLflow at start)
- Metrics: Output results (logged to MLflow at end)
- TimeSeries: Convergence history
- CFDSolverFields: Live and scratch field buffers on the (m+2) x (n+2) grid
"""

import time
from dataclasses import dataclass, asdict
from typing import Optional, List

import numpy as np
import pandas as pd

from .exceptions import GeometryError, ReynoldsStabilityError

# Explicit vorticity relaxation diverges at or above this rescaled Re
RE_STABILITY_LIMIT = 3.7


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass(frozen=True)
class Parameters:
    """Solver parameters - immutable run configuration.

    Grid and obstacle sizes are the base constants multiplied by
    ``scale_factor``. ``reynolds=None`` selects irrotational (potential) flow.
    A ``tolerance`` <= 0 disables convergence checking, so the loop always
    runs ``num_iterations`` sweeps.
    """

    scale_factor: int = 1
    num_iterations: int = 1000
    reynolds: Optional[float] = None
    tolerance: float = 0.0
    print_freq: int = 1000
    check_stability: bool = True

    m_base: int = 32
    n_base: int = 32
    b_base: int = 10
    h_base: int = 15
    w_base: int = 5

    def __post_init__(self):
        if self.scale_factor < 1:
            raise GeometryError(f"scale_factor must be positive, got {self.scale_factor}")
        if self.num_iterations < 1:
            raise ValueError(f"num_iterations must be positive, got {self.num_iterations}")
        if self.print_freq < 1:
            raise ValueError(f"print_freq must be positive, got {self.print_freq}")

        # Inlet runs along the bottom edge up to i = m, outlet up the right edge
        if self.b + self.w > self.m + 1:
            raise GeometryError(
                f"Inlet slot [{self.b}, {self.b + self.w}] does not fit in m={self.m}"
            )
        if self.h + self.w > self.n + 1:
            raise GeometryError(
                f"Outlet slot [{self.h}, {self.h + self.w}] does not fit in n={self.n}"
            )

        if self.check_stability and not self.irrotational:
            re = self.re_scaled
            if not np.isfinite(re) or re < 0.0 or re >= RE_STABILITY_LIMIT:
                raise ReynoldsStabilityError(self.re_scaled, RE_STABILITY_LIMIT)

    # Derived sizes
    @property
    def m(self) -> int:
        return self.m_base * self.scale_factor

    @property
    def n(self) -> int:
        return self.n_base * self.scale_factor

    @property
    def b(self) -> int:
        return self.b_base * self.scale_factor

    @property
    def h(self) -> int:
        return self.h_base * self.scale_factor

    @property
    def w(self) -> int:
        return self.w_base * self.scale_factor

    @property
    def irrotational(self) -> bool:
        return self.reynolds is None

    @property
    def check_error(self) -> bool:
        return self.tolerance > 0

    @property
    def re_scaled(self) -> float:
        """Reynolds number divided by the scale factor (0.0 when irrotational)."""
        if self.reynolds is None:
            return 0.0
        return self.reynolds / float(self.scale_factor)

    @property
    def method(self) -> str:
        return "Jacobi-irrotational" if self.irrotational else "Jacobi-vorticity"

    def to_dict(self) -> dict:
        data = asdict(self)
        data.update(m=self.m, n=self.n, b=self.b, h=self.h, w=self.w,
                    re_scaled=self.re_scaled, method=self.method)
        return data

    def to_dataframe(self):
        return pd.DataFrame([self.to_dict()])

    def to_mlflow(self) -> dict:
        """Flat dict for mlflow.log_params (None is logged as a string)."""
        return {k: ("none" if v is None else v) for k, v in self.to_dict().items()}


# ========================================================
# Metrics (Output Results)
# ========================================================


@dataclass
class Metrics:
    """Solver metrics - output results computed during/after solving."""

    iterations: int = 0
    converged: bool = False
    final_error: float = float("inf")
    bnorm: float = 0.0
    wall_time_seconds: float = 0.0
    time_per_iteration: float = 0.0
    iterations_per_second: float = 0.0

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])

    def to_mlflow(self) -> dict:
        data = asdict(self)
        data["converged"] = float(data["converged"])
        return {k: float(v) for k, v in data.items() if np.isfinite(v)}


# ========================================================
# Time Series (Convergence History)
# ========================================================


@dataclass
class TimeSeries:
    """Relative error at every iteration where it was evaluated."""

    iteration: List[int]
    error: List[float]

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to DataFrame with one row per evaluated iteration."""
        return pd.DataFrame(asdict(self))

    def to_mlflow_batch(self) -> list:
        """Build mlflow Metric entities for MlflowClient.log_batch."""
        from mlflow.entities import Metric

        timestamp = int(time.time() * 1000)
        return [
            Metric(key="error", value=float(e), timestamp=timestamp, step=int(i))
            for i, e in zip(self.iteration, self.error)
            if np.isfinite(e)
        ]


# =============================================================
# Field buffers
# ============================================================


@dataclass
class CFDSolverFields:
    """Live and scratch arrays, each (m+2) x (n+2) including the halo ring.

    Row/column 0 and m+1/n+1 are the boundary; 1..m, 1..n are solved.
    Vorticity buffers are None for irrotational flow.
    """

    psi: np.ndarray
    psi_tmp: np.ndarray
    zet: Optional[np.ndarray] = None
    zet_tmp: Optional[np.ndarray] = None

    @classmethod
    def allocate(cls, m: int, n: int, irrotational: bool = True):
        """Allocate all arrays with proper sizes."""
        shape = (m + 2, n + 2)
        return cls(
            psi=np.zeros(shape),
            psi_tmp=np.zeros(shape),
            zet=None if irrotational else np.zeros(shape),
            zet_tmp=None if irrotational else np.zeros(shape),
        )

    @property
    def irrotational(self) -> bool:
        return self.zet is None

    def zero(self):
        """Reset every buffer to zero in place."""
        for arr in (self.psi, self.psi_tmp, self.zet, self.zet_tmp):
            if arr is not None:
                arr.fill(0.0)
