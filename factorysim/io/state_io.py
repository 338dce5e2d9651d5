"""
JSON persistence for strategies, run results and search checkpoints.

This module handles saving and loading:
- Strategies (with a small metadata envelope)
- Finished simulation results (summary metrics plus final state and history)
- Search checkpoints written at generation/iteration boundaries

Every write goes to a temporary file first and then replaces the target,
so an interrupted write never leaves a truncated file behind.
"""

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from factorysim import __version__
from factorysim.engine.simulation import SimulationResult
from factorysim.models.state import SimulationState
from factorysim.models.strategy import Strategy

ModelT = TypeVar("ModelT", bound=BaseModel)


class SaveMetadata(BaseModel):
    """Metadata stored alongside every saved document."""

    name: str = Field(default="", description="Display name")
    kind: str = Field(description="Document kind: strategy, result or checkpoint")
    created_at: str = Field(description="ISO timestamp when the file was written")
    version: str = Field(default=__version__, description="factorysim version")


class SavedStrategy(BaseModel):
    metadata: SaveMetadata
    strategy: Strategy


class SavedResult(BaseModel):
    """Summary metrics and final state of one run."""

    model_config = ConfigDict(ser_json_inf_nan="constants")

    metadata: SaveMetadata
    metrics: dict[str, Any]
    state: SimulationState
    cancelled: bool = False


class SaveError(Exception):
    """Exception raised when saving fails."""

    pass


class LoadError(Exception):
    """Exception raised when loading fails."""

    pass


def _metadata(kind: str, name: Optional[str]) -> SaveMetadata:
    return SaveMetadata(name=name or "", kind=kind, created_at=datetime.now().isoformat())


def _write_atomic(path: Path, text: str) -> Path:
    """Write ``text`` to a temp file beside ``path`` and move it into place.

    Raises:
        SaveError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(text)
        temp_path.replace(path)
        return path
    except OSError as e:
        raise SaveError(f"Failed to write {path}: {e}") from e


def _read_json(path: Path, what: str) -> Any:
    """Read a JSON document.

    Raises:
        LoadError: If the file is missing or not valid JSON
    """
    path = Path(path)
    if not path.exists():
        raise LoadError(f"{what} file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise LoadError(f"Corrupt {what.lower()} file {path}: {e}") from e
    except OSError as e:
        raise LoadError(f"Failed to read {path}: {e}") from e


# =============================================================================
# Strategies
# =============================================================================


def save_strategy(strategy: Strategy, path: Path, name: Optional[str] = None) -> Path:
    """Save a strategy with its metadata.

    Args:
        strategy: Strategy to save
        path: Destination file
        name: Display name stored in the metadata

    Returns:
        Path to saved file

    Raises:
        SaveError: If saving fails
    """
    saved = SavedStrategy(metadata=_metadata("strategy", name), strategy=strategy)
    return _write_atomic(path, saved.model_dump_json(indent=2))


def load_strategy(path: Path) -> Strategy:
    """Load a strategy saved by save_strategy or written by hand.

    A bare Strategy document (no metadata envelope) is accepted too.

    Raises:
        LoadError: If the file is missing, corrupt, or not a valid strategy
    """
    data = _read_json(path, "Strategy")
    try:
        if isinstance(data, dict) and "strategy" in data and "metadata" in data:
            return SavedStrategy.model_validate(data).strategy
        return Strategy.model_validate(data)
    except Exception as e:
        raise LoadError(f"Invalid strategy in {path}: {e}") from e


# =============================================================================
# Results
# =============================================================================


def save_result(result: SimulationResult, path: Path, name: Optional[str] = None) -> Path:
    """Save summary metrics and the final state (with its history) of a run.

    Raises:
        SaveError: If saving fails
    """
    saved = SavedResult(
        metadata=_metadata("result", name),
        metrics=asdict(result.metrics),
        state=result.state,
        cancelled=result.cancelled,
    )
    return _write_atomic(path, saved.model_dump_json(indent=2))


def load_result(path: Path) -> SavedResult:
    """Load a result saved by save_result.

    Raises:
        LoadError: If loading fails
    """
    data = _read_json(path, "Result")
    try:
        return SavedResult.model_validate(data)
    except Exception as e:
        raise LoadError(f"Invalid result in {path}: {e}") from e


# =============================================================================
# Checkpoints
# =============================================================================


def get_checkpoint_path(checkpoint_dir: Path, method: str, iteration: int) -> Path:
    """File path for one checkpoint, e.g. ``bayesian_0010.json``."""
    return Path(checkpoint_dir) / f"{method}_{iteration:04d}.json"


def save_checkpoint(checkpoint: BaseModel, path: Path) -> Path:
    """Save search progress.

    Args:
        checkpoint: Any checkpoint model (e.g. BayesianCheckpoint)
        path: Destination file

    Raises:
        SaveError: If saving fails
    """
    return _write_atomic(path, checkpoint.model_dump_json(indent=2))


def load_checkpoint(path: Path, model: type[ModelT]) -> ModelT:
    """Load a checkpoint into ``model``.

    Raises:
        LoadError: If loading fails
    """
    data = _read_json(path, "Checkpoint")
    try:
        return model.model_validate(data)
    except Exception as e:
        raise LoadError(f"Invalid checkpoint in {path}: {e}") from e


def latest_checkpoint(checkpoint_dir: Path, method: str) -> Optional[Path]:
    """Most recent checkpoint for ``method`` in ``checkpoint_dir``, if any."""
    directory = Path(checkpoint_dir)
    if not directory.is_dir():
        return None
    candidates = sorted(directory.glob(f"{method}_*.json"))
    return candidates[-1] if candidates else None
