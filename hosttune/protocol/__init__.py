"""
Protocol module - data model shared by every component.

Parameter: the unit of tuning (protocol.parameter)
ChangeRecord / RunSummary: reconciliation results (protocol.records)
PersistenceArtifact and plan markers (protocol.artifacts)
Error taxonomy (protocol.errors)
"""

from .parameter import (
    Category,
    Volatility,
    ArtifactFamily,
    Encoding,
    Parameter,
)
from .records import (
    Mode,
    Outcome,
    FAILURE_OUTCOMES,
    ChangeRecord,
    RunSummary,
    utc_now,
)
from .artifacts import (
    PersistenceArtifact,
    NoDurableMechanism,
    NativelyDurable,
    PlanDecision,
    ArtifactStatus,
    ArtifactResult,
    PersistencePlan,
)
from .errors import (
    HostTuneError,
    NotFound,
    Unreadable,
    TargetAbsent,
    TargetTimeout,
    PermissionDenied,
    Unverified,
    RegistryLoadError,
    PrivilegeError,
    ConfigError,
)

__all__ = [
    # Parameter
    "Category",
    "Volatility",
    "ArtifactFamily",
    "Encoding",
    "Parameter",
    # Records
    "Mode",
    "Outcome",
    "FAILURE_OUTCOMES",
    "ChangeRecord",
    "RunSummary",
    "utc_now",
    # Persistence
    "PersistenceArtifact",
    "NoDurableMechanism",
    "NativelyDurable",
    "PlanDecision",
    "ArtifactStatus",
    "ArtifactResult",
    "PersistencePlan",
    # Errors
    "HostTuneError",
    "NotFound",
    "Unreadable",
    "TargetAbsent",
    "TargetTimeout",
    "PermissionDenied",
    "Unverified",
    "RegistryLoadError",
    "PrivilegeError",
    "ConfigError",
]
