"""
CFD Solver Runner - Hydra + MLflow integration for the Jacobi flow solver.

Single runs:
    uv run python run_solver.py scale_factor=2 num_iterations=5000
    uv run python run_solver.py scale_factor=1 reynolds=2.0 output.plot=true

Sweeps (multirun mode):
    uv run python run_solver.py -m scale_factor=1,2,4 reynolds=1.0,2.0,3.0

MLflow modes:
    files   - file-based ./mlruns (default)
    remote  - set mlflow.tracking_uri (credentials from .env)
"""

import logging
import sys
from pathlib import Path

import hydra
from dotenv import load_dotenv
from omegaconf import DictConfig

# Load .env file (for MLflow credentials)
load_dotenv()

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from cfd.tracking import run_tracked, setup_mlflow  # noqa: E402

log = logging.getLogger(__name__)


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Hydra entry point - runs solver with MLflow tracking."""
    log.info(
        f"Solver: {cfg.solver.name}, scale={cfg.scale_factor}, "
        f"iterations={cfg.num_iterations}, Re={cfg.reynolds}"
    )

    experiment_name = setup_mlflow(cfg)
    log.info(f"MLflow experiment: {experiment_name}")

    run_id = run_tracked(cfg)
    log.info(f"MLflow run: {run_id[:8]}")


if __name__ == "__main__":
    main()
