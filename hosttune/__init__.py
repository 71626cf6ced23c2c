"""
hosttune - Idempotent host tuning for large-model workstations

Reconciles kernel, block-device, ZFS, network, GPU and CPU-idle settings to
a declared set of desired values, journals every change, supports
revert-to-default and rollback, and generates the durable-config artifacts
that make the tuning survive reboot.

Usage:
    # As a module
    python -m hosttune status

    # Programmatically
    from hosttune import Config, TuningEngine

    engine = TuningEngine(Config.load())
    summary = engine.apply(categories=["memory"])
"""

__version__ = "1.0.0"

# Main exports
from .config import Config
from .runner.engine import TuningEngine
from .registry.registry import ParameterRegistry

# Protocol exports
from .protocol.parameter import Parameter, Category, Encoding
from .protocol.records import ChangeRecord, Mode, Outcome, RunSummary
from .protocol.artifacts import PersistenceArtifact, NoDurableMechanism, NativelyDurable

__all__ = [
    # Version
    "__version__",
    # Engine
    "Config",
    "TuningEngine",
    "ParameterRegistry",
    # Protocol
    "Parameter",
    "Category",
    "Encoding",
    "ChangeRecord",
    "Mode",
    "Outcome",
    "RunSummary",
    "PersistenceArtifact",
    "NoDurableMechanism",
    "NativelyDurable",
]
