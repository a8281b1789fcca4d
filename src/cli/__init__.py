"""Command line interface for the CFD solver."""

from .main import main, run_cfd

__all__ = [
    "main",
    "run_cfd",
]
