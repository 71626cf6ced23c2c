"""
Registry module - the declared set of tunable parameters.

Components:
- PARAMETER_TABLE: static declarative table (ids, targets, desired/default values)
- ParameterRegistry: expanded, immutable, ordered parameter collection
"""

from .catalog import PARAMETER_TABLE
from .registry import ParameterRegistry

__all__ = [
    "PARAMETER_TABLE",
    "ParameterRegistry",
]
