"""
Optional MLflow tracking for training runs.

MLflow is only imported when tracking is requested; when it is missing or the
backend fails, runs continue untracked and the failure is logged.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional


def _mlflow():
    try:
        import mlflow  # type: ignore
    except ImportError:
        logging.warning("mlflow is not installed; continuing without tracking (pip install .[tracking])")
        return None
    return mlflow


class Tracker:
    """Thin wrapper that is a no-op unless an MLflow run is active."""

    def __init__(self, mlflow_module=None):
        self._mlflow = mlflow_module

    @property
    def active(self) -> bool:
        return self._mlflow is not None

    def log_params(self, params: Mapping[str, object]) -> None:
        if self._mlflow is None:
            return
        try:
            self._mlflow.log_params(dict(params))
        except Exception as e:
            logging.warning("mlflow log_params failed: %s: %s", type(e).__name__, e)

    def log_metrics(self, metrics: Mapping[str, float]) -> None:
        if self._mlflow is None:
            return
        try:
            self._mlflow.log_metrics({k: float(v) for k, v in metrics.items()})
        except Exception as e:
            logging.warning("mlflow log_metrics failed: %s: %s", type(e).__name__, e)

    def log_artifact(self, path: Path, artifact_path: Optional[str] = None) -> None:
        if self._mlflow is None:
            return
        try:
            self._mlflow.log_artifact(str(path), artifact_path=artifact_path)
        except Exception as e:
            logging.warning("mlflow log_artifact failed: %s: %s", type(e).__name__, e)


@contextmanager
def tracking_run(backend: str, run_name: str, log_dir: Optional[Path] = None) -> Iterator[Tracker]:
    """Yield a Tracker; backend is "none" or "mlflow"."""
    if backend not in ("none", "mlflow"):
        raise ValueError(f"Unknown tracking backend: {backend}")
    mlflow = _mlflow() if backend == "mlflow" else None
    if mlflow is None:
        yield Tracker()
        return
    if log_dir is not None:
        mlflow.set_tracking_uri((Path(log_dir).resolve() / "mlruns").as_uri())
    with mlflow.start_run(run_name=run_name):
        yield Tracker(mlflow)


def flatten_stats(stats: Mapping[str, object], prefix: str = "") -> Dict[str, float]:
    """Numeric leaves of a nested stats dict as dotted metric names."""
    out: Dict[str, float] = {}
    for k, v in stats.items():
        name = f"{prefix}{k}"
        if isinstance(v, Mapping):
            out.update(flatten_stats(v, prefix=f"{name}."))
        elif isinstance(v, (int, float)) and not isinstance(v, bool):
            out[name] = float(v)
    return out
