"""MLflow tracking for solver runs driven by Hydra configs."""

import logging
import os
import tempfile
from pathlib import Path

import mlflow
from hydra.utils import instantiate
from mlflow.tracking import MlflowClient
from omegaconf import DictConfig, OmegaConf

from .io import write_data_files, write_plot_file

log = logging.getLogger(__name__)


# =============================================================================
# Solver Factory
# =============================================================================


def create_solver(cfg: DictConfig):
    """Instantiate the solver from the ``solver`` subtree of the config.

    Run-level parameters from the root config are passed to the constructor.
    """
    solver_cfg = {k: v for k, v in cfg.solver.items() if k != "name"}
    return instantiate(
        solver_cfg,
        scale_factor=cfg.scale_factor,
        num_iterations=cfg.num_iterations,
        reynolds=cfg.get("reynolds", None),
        tolerance=cfg.get("tolerance", 0.0),
        print_freq=cfg.get("print_freq", 1000),
        _convert_="partial",
    )


def get_run_name(cfg: DictConfig) -> str:
    re = cfg.get("reynolds", None)
    mode = "irrot" if re is None else f"Re{re:g}"
    return f"scale{cfg.scale_factor}_{mode}"


# =============================================================================
# MLflow Logging
# =============================================================================


def setup_mlflow(cfg: DictConfig) -> str:
    """Setup MLflow tracking and return experiment name."""
    tracking_uri = cfg.mlflow.get("tracking_uri", "./mlruns")
    os.environ["MLFLOW_TRACKING_URI"] = str(tracking_uri)
    mlflow.set_tracking_uri(tracking_uri)

    experiment_name = cfg.experiment_name
    project_prefix = cfg.mlflow.get("project_prefix", "")
    if project_prefix and not experiment_name.startswith("/"):
        experiment_name = f"{project_prefix}/{experiment_name}"

    try:
        mlflow.set_experiment(experiment_name)
    except Exception as exc:
        # A previously deleted experiment cannot be reused under the same name
        fallback = f"{experiment_name}-restored"
        log.warning(
            "MLflow set_experiment failed for '%s' (%s); falling back to '%s'",
            experiment_name,
            exc,
            fallback,
        )
        experiment_name = fallback
        mlflow.set_experiment(experiment_name)
    return experiment_name


def log_outputs(solver, cfg: DictConfig):
    """Write data files, gnuplot script and plots, then upload as artifacts."""
    p = solver.params
    output = cfg.get("output", {})

    with tempfile.TemporaryDirectory() as tmpdir:
        tmpdir = Path(tmpdir)
        paths = []
        if output.get("write_files", True):
            paths.extend(write_data_files(solver.psi, p.m, p.n, p.scale_factor, tmpdir))
            paths.append(write_plot_file(p.m, p.n, p.scale_factor, tmpdir))
        if output.get("plot", False):
            from .plotting import plot_convergence, plot_flow

            paths.append(plot_flow(solver.psi, p.m, p.n, tmpdir))
            if solver.time_series is not None and len(solver.time_series.error) > 1:
                paths.append(plot_convergence(solver.time_series, tmpdir))

        for path in paths:
            mlflow.log_artifact(str(path), artifact_path="output")
        log.info(f"Logged {len(paths)} output artifacts")


def run_tracked(cfg: DictConfig) -> str:
    """Run solver inside an MLflow run. Returns run_id."""
    solver = create_solver(cfg)
    parent_run_id = os.environ.get("MLFLOW_PARENT_RUN_ID")
    tags = {"solver": cfg.solver.name}
    if parent_run_id:
        tags.update({"mlflow.parentRunId": parent_run_id, "sweep": "child"})

    with mlflow.start_run(run_name=get_run_name(cfg), tags=tags, nested=bool(parent_run_id)) as run:
        mlflow.log_params(solver.params.to_mlflow())
        mlflow.log_dict(OmegaConf.to_container(cfg), "config.yaml")

        solver.solve()

        mlflow.log_metrics(solver.metrics.to_mlflow())
        if solver.time_series is not None:
            batch = solver.time_series.to_mlflow_batch()
            if batch:
                MlflowClient().log_batch(run.info.run_id, metrics=batch)

        log_outputs(solver, cfg)
        log.info(
            f"Done: {solver.metrics.iterations} iter, error={solver.metrics.final_error:g}, "
            f"time={solver.metrics.wall_time_seconds:.2f}s"
        )
        return run.info.run_id
