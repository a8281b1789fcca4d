"""``cfd`` command: run the Jacobi flow solver from the command line.

Usage:
    cfd <scale> <numiter> [reynolds]

Without a Reynolds number the flow is irrotational (psi only). With one,
vorticity is solved as well and Re is divided by the scale factor.
"""

import logging
import sys
from typing import Optional, Sequence

from rich.logging import RichHandler

from cfd import CFDError, CFDSolver, Parameters

from .console import console, fail, line

log = logging.getLogger(__name__)

USAGE = "Usage: cfd <scale> <numiter> [reynolds]"


def parse_args(args: Sequence[str]) -> Optional[Parameters]:
    """Build Parameters from positional arguments.

    Returns None when the argument count is wrong. Raises ValueError for
    arguments that are not numbers.
    """
    if len(args) < 2 or len(args) > 3:
        return None

    scale_factor = int(args[0])
    num_iterations = int(args[1])
    reynolds = float(args[2]) if len(args) == 3 else None

    return Parameters(
        scale_factor=scale_factor,
        num_iterations=num_iterations,
        reynolds=reynolds,
    )


def print_config(params: Parameters):
    if not params.check_error:
        line(f"Scale Factor = {params.scale_factor}, iterations = {params.num_iterations}")
    else:
        line(
            f"Scale Factor = {params.scale_factor}, iterations = {params.num_iterations}, "
            f"tolerance= {params.tolerance:g}"
        )

    if params.irrotational:
        line("Irrotational flow")
    else:
        line(f"Reynolds number = {params.reynolds:f}")

    line(f"Running CFD on {params.m} x {params.n} grid using parallel kernels")


def print_summary(solver: CFDSolver):
    metrics = solver.metrics
    line("\n... finished")
    line(f"After {metrics.iterations} iterations, the error is {metrics.final_error:g}")
    line(f"Time for {metrics.iterations} iterations was {metrics.wall_time_seconds:g} seconds")
    line(f"Each iteration took {metrics.time_per_iteration:g} seconds")
    line(f"Throughput was {metrics.iterations_per_second:g} iterations per second")
    line("... finished")


def run_cfd(args: Sequence[str]) -> Optional[CFDSolver]:
    """Run the solver for the given positional arguments.

    Returns the finished solver, or None if only usage was printed.
    """
    params = parse_args(args)
    if params is None:
        line(USAGE)
        return None

    print_config(params)

    solver = CFDSolver(params)
    solver.setup()

    def progress(iteration, error):
        if params.check_error:
            line(f"Completed iteration {iteration}, error = {error:g}")
        else:
            line(f"Completed iteration {iteration}")

    line("\nStarting main loop...\n")
    solver.solve(callback=progress)
    print_summary(solver)
    return solver


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console script entry point. Returns the process exit code."""
    if argv is None:
        argv = sys.argv[1:]

    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        run_cfd(argv)
    except CFDError as e:
        fail(str(e))
        return 1
    except ValueError as e:
        line(USAGE)
        fail(f"Invalid argument: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
