"""
factorysim - day-stepped factory simulation and strategy search

This package provides:
- A deterministic (per seed) day-by-day simulation of a two-line factory
- Dynamic inventory policies and reactive rules
- Analytical, genetic and Bayesian-style strategy optimizers
- JSON persistence and a command-line interface
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
