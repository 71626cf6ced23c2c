"""
Runner module - orchestrates reconciliation runs.

The engine:
- Loads the parameter registry from configuration
- Checks preconditions (root privilege, journal writability)
- Runs the reconciler and builds the run summary
- Plans, installs and removes persistence artifacts
"""

from .engine import TuningEngine

__all__ = [
    "TuningEngine",
]
