"""
File I/O for factorysim.

This module handles reading and writing of:
- Strategies (JSON)
- Simulation results (metrics, final state and history)
- Search checkpoints
"""

from factorysim.io.state_io import (
    LoadError,
    SavedResult,
    SavedStrategy,
    SaveError,
    SaveMetadata,
    get_checkpoint_path,
    latest_checkpoint,
    load_checkpoint,
    load_result,
    load_strategy,
    save_checkpoint,
    save_result,
    save_strategy,
)

__all__ = [
    "SaveError",
    "LoadError",
    "SaveMetadata",
    "SavedStrategy",
    "SavedResult",
    "save_strategy",
    "load_strategy",
    "save_result",
    "load_result",
    "save_checkpoint",
    "load_checkpoint",
    "get_checkpoint_path",
    "latest_checkpoint",
]
