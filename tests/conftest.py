"""Pytest configuration and fixtures for the CFD solver tests."""

import sys
from pathlib import Path

import matplotlib
import pytest

matplotlib.use("Agg")

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def irrotational_params():
    """Irrotational flow on the base 32 x 32 grid."""
    from cfd import Parameters

    return Parameters(scale_factor=1, num_iterations=100)


@pytest.fixture
def vortical_params():
    """Vortical flow at Re = 2 on the base grid."""
    from cfd import Parameters

    return Parameters(scale_factor=1, num_iterations=100, reynolds=2.0)


@pytest.fixture
def small_grid_params():
    """Keyword arguments for a small 8 x 8 grid with a 2-cell slot."""
    return {
        "scale_factor": 1,
        "num_iterations": 50,
        "m_base": 8,
        "n_base": 8,
        "b_base": 2,
        "h_base": 3,
        "w_base": 2,
    }
