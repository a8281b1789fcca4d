"""Jacobi iteration driver for flow through a box with inlet and outlet slots.

The driver runs a small state machine:

    SETUP    zero fields, psi boundary, zeta boundary (rotational), bnorm
    LOOPING  Jacobi sweep -> error (when requested) -> copy back
             -> zeta boundary (rotational) -> convergence / progress
    DONE     metrics and final fields available

The zeta boundary depends on psi, so it is always applied after the psi
boundary and again after every copy back.
"""

import enum
import logging
import time
from pathlib import Path
from typing import Callable, Optional

import mlflow
import numpy as np

from .boundary import boundary_norm, boundary_psi, boundary_zet
from .datastructures import CFDSolverFields, Metrics, Parameters, TimeSeries
from .exceptions import CFDError, NonFiniteResidualError
from .jacobi import copy_back, delta_sq, jacobi_step, jacobi_step_vort, relative_error
from .region import ResidentFields

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[float]], None]


class SolverState(str, enum.Enum):
    SETUP = "setup"
    LOOPING = "looping"
    DONE = "done"


class CFDSolver:
    """Stream function / vorticity solver using Jacobi relaxation.

    Handles:
    - Parameter management (input configuration)
    - Boundary setup and the reference norm
    - Iteration loop with error computation and early exit
    - Metrics and convergence history

    Parameters
    ----------
    params : Parameters, optional
        Parameters object. If not provided, kwargs are used to create params.
    **kwargs
        Configuration parameters passed to Parameters if params is None.
    """

    Parameters = Parameters

    def __init__(self, params=None, **kwargs):
        if params is None:
            params = self.Parameters(**kwargs)
        elif kwargs:
            raise ValueError("Pass either params or keyword arguments, not both")

        self.params = params
        self.metrics = Metrics()
        self.time_series = None  # Populated after solve()
        self.bnorm = 0.0
        self.iteration = 0
        self.error = None

        p = self.params
        self.fields = CFDSolverFields.allocate(p.m, p.n, irrotational=p.irrotational)
        self.state = SolverState.SETUP
        self._is_setup = False

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def setup(self):
        """Zero the fields, apply boundary conditions and compute bnorm."""
        p = self.params
        f = self.fields

        f.zero()
        boundary_psi(f.psi, p.m, p.n, p.b, p.h, p.w)
        if not p.irrotational:
            boundary_zet(f.zet, f.psi, p.m, p.n)

        self.bnorm = boundary_norm(f.psi, f.zet)
        self.iteration = 0
        self.error = None
        self.state = SolverState.SETUP
        self._is_setup = True
        log.info(f"Boundary set on {p.m} x {p.n} grid, bnorm={self.bnorm:.6g}")
        return self.bnorm

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def step(self, buffers=None):
        """Perform one Jacobi sweep into the scratch buffers.

        Operates on the host fields unless resident buffers are given.
        """
        a = self.fields if buffers is None else buffers
        p = self.params
        if p.irrotational:
            jacobi_step(a.psi_tmp, a.psi, p.m, p.n)
        else:
            jacobi_step_vort(a.zet_tmp, a.psi_tmp, a.zet, a.psi, p.m, p.n, p.re_scaled)

    def compute_error(self, buffers=None) -> float:
        """Relative error between the scratch (new) and live (old) iterates."""
        a = self.fields if buffers is None else buffers
        p = self.params
        dsum = delta_sq(a.psi_tmp, a.psi, p.m, p.n)
        if not p.irrotational:
            dsum += delta_sq(a.zet_tmp, a.zet, p.m, p.n)
        return relative_error(dsum, self.bnorm)

    def advance(self, buffers=None):
        """Copy the new iterate into the live buffers and refresh zeta walls."""
        a = self.fields if buffers is None else buffers
        p = self.params
        copy_back(a.psi, a.psi_tmp, p.m, p.n)
        if not p.irrotational:
            copy_back(a.zet, a.zet_tmp, p.m, p.n)
            boundary_zet(a.zet, a.psi, p.m, p.n)

    def solve(self, callback: Optional[ProgressCallback] = None):
        """Run the Jacobi loop to completion or convergence.

        The error is evaluated every iteration when a tolerance is set,
        otherwise on the final iteration and at each progress report. In the
        latter case one interior row of the new psi is also checked every
        iteration, so a diverging run stops within a few sweeps of the first
        non-finite value reaching that row rather than at the next report.

        Parameters
        ----------
        callback : callable, optional
            Called as ``callback(iteration, error)`` every ``print_freq``
            iterations.

        Raises
        ------
        NonFiniteResidualError
            If the error becomes NaN or infinite.
        """
        if not self._is_setup:
            self.setup()
        if self.state is SolverState.DONE:
            raise CFDError("Solver already finished; call setup() to run again")

        p = self.params
        sample_row = p.m // 2 + 1
        history_iter = []
        history_error = []
        is_converged = False
        error = None
        iteration = 0

        self.state = SolverState.LOOPING
        log.info(f"Starting {p.method} loop: {p.num_iterations} iterations")
        time_start = time.perf_counter()
        mlflow_time = 0.0

        with ResidentFields(self.fields) as buffers:
            for iteration in range(1, p.num_iterations + 1):
                self.step(buffers)

                report = iteration % p.print_freq == 0
                diverged = not np.isfinite(buffers.psi_tmp[sample_row]).all()
                if p.check_error or report or diverged or iteration == p.num_iterations:
                    error = self.compute_error(buffers)
                    history_iter.append(iteration)
                    history_error.append(error)

                self.advance(buffers)

                if error is not None and not np.isfinite(error):
                    self.iteration = iteration
                    self.error = error
                    raise NonFiniteResidualError(iteration, error)

                if p.check_error and error < p.tolerance:
                    is_converged = True
                    log.info(f"Converged on iteration {iteration}")
                    break

                if report:
                    log.info(f"Completed iteration {iteration}, error = {error:g}")
                    if callback is not None:
                        callback(iteration, error)
                    if mlflow.active_run():
                        t_log_start = time.perf_counter()
                        mlflow.log_metrics({"error": error}, step=iteration)
                        mlflow_time += time.perf_counter() - t_log_start

        wall_time = time.perf_counter() - time_start - mlflow_time

        self.iteration = iteration
        self.error = error
        self.state = SolverState.DONE
        self._store_results(history_iter, history_error, is_converged, wall_time)
        log.info(
            f"Done: {self.metrics.iterations} iterations, error={self.metrics.final_error:g}, "
            f"time={wall_time:.3f}s"
        )
        return self.metrics

    def _store_results(self, history_iter, history_error, is_converged, wall_time):
        """Store solve results in self.time_series and self.metrics."""
        iterations = self.iteration
        self.time_series = TimeSeries(iteration=history_iter, error=history_error)
        self.metrics = Metrics(
            iterations=iterations,
            converged=is_converged,
            final_error=self.error if self.error is not None else float("inf"),
            bnorm=self.bnorm,
            wall_time_seconds=wall_time,
            time_per_iteration=wall_time / iterations if iterations else 0.0,
            iterations_per_second=iterations / wall_time if wall_time > 0 else 0.0,
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @property
    def psi(self) -> np.ndarray:
        """Final stream function including the halo, shape (m+2, n+2)."""
        return self.fields.psi

    @property
    def zet(self) -> Optional[np.ndarray]:
        return self.fields.zet

    def save(self, filepath):
        """Save params, metrics, time series and psi to an HDF5 file.

        Parameters
        ----------
        filepath : str or Path
            Output file path (use .h5 extension).
        """
        import pandas as pd

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with pd.HDFStore(filepath, mode="w", complevel=5) as store:
            store["params"] = pd.DataFrame([self.params.to_mlflow()])
            store["metrics"] = self.metrics.to_dataframe()
            if self.time_series is not None:
                store["time_series"] = self.time_series.to_dataframe()
            store["psi"] = pd.DataFrame(self.fields.psi)
            if self.fields.zet is not None:
                store["zet"] = pd.DataFrame(self.fields.zet)
