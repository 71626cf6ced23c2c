"""
Persistence Protocol - durable-config artifacts and plan markers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple, Union

from .parameter import ArtifactFamily


@dataclass(frozen=True)
class PersistenceArtifact:
    """A generated durable-config unit tied to one or more Parameters."""
    id: str
    family: ArtifactFamily
    path: str
    content: str
    parameter_ids: Tuple[str, ...] = ()
    mode: int = 0o644

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "family": self.family.value,
            "path": self.path,
            "parameter_ids": list(self.parameter_ids),
            "mode": oct(self.mode),
        }


@dataclass(frozen=True)
class NoDurableMechanism:
    """Parameter is ephemeral and nothing can re-apply it at boot."""
    parameter_id: str
    reason: str

    survives_reboot = False


@dataclass(frozen=True)
class NativelyDurable:
    """The live system already persists the value by itself."""
    parameter_id: str
    reason: str

    survives_reboot = True


PlanDecision = Union[PersistenceArtifact, NoDurableMechanism, NativelyDurable]


class ArtifactStatus(str, Enum):
    """Status of an artifact after install/uninstall/status."""
    INSTALLED = "installed"
    UNCHANGED = "unchanged"
    STALE = "stale"
    MISSING = "missing"
    REMOVED = "removed"
    WOULD_REMOVE = "would-remove"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass
class ArtifactResult:
    """Result of one artifact operation."""
    artifact_id: str
    path: str
    status: ArtifactStatus
    detail: str = ""
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != ArtifactStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artifact_id": self.artifact_id,
            "path": self.path,
            "status": self.status.value,
            "detail": self.detail,
            "warnings": list(self.warnings),
        }


@dataclass
class PersistencePlan:
    """Merged plan: one artifact per family plus the markers."""
    artifacts: List[PersistenceArtifact] = field(default_factory=list)
    no_mechanism: List[NoDurableMechanism] = field(default_factory=list)
    natively_durable: List[NativelyDurable] = field(default_factory=list)

    def get(self, artifact_id: str) -> PersistenceArtifact:
        for artifact in self.artifacts:
            if artifact.id == artifact_id:
                return artifact
        raise KeyError(artifact_id)

    @property
    def artifact_ids(self) -> List[str]:
        return [a.id for a in self.artifacts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artifacts": [a.to_dict() for a in self.artifacts],
            "no_durable_mechanism": [
                {"parameter_id": m.parameter_id, "reason": m.reason} for m in self.no_mechanism
            ],
            "natively_durable": [
                {"parameter_id": m.parameter_id, "reason": m.reason} for m in self.natively_durable
            ],
        }
