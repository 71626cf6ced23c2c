"""
ChangeRecord Protocol - one attempted reconciliation of one Parameter.

Records are immutable once built and are appended to the Transaction Log;
they are never mutated or deleted.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
import json


class Mode(str, Enum):
    """Reconciliation mode."""
    APPLY = "apply"
    REVERT = "revert-to-default"
    ROLLBACK = "rollback"
    DRY_RUN = "dry-run"


class Outcome(str, Enum):
    """Outcome of a single reconciliation attempt."""
    APPLIED = "applied"
    ALREADY_MATCHED = "already-matched"
    UNSUPPORTED = "unsupported"
    WOULD_CHANGE = "would-change"
    DENIED = "denied"
    UNVERIFIED = "unverified"
    UNREADABLE = "unreadable"

    @property
    def is_failure(self) -> bool:
        return self in FAILURE_OUTCOMES


FAILURE_OUTCOMES = frozenset({Outcome.DENIED, Outcome.UNVERIFIED, Outcome.UNREADABLE})


def utc_now() -> str:
    """Current UTC time as ISO-8601 with trailing Z."""
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


@dataclass(frozen=True)
class ChangeRecord:
    """Result of reconciling one parameter."""
    parameter_id: str
    mode: str
    observed_before: Optional[str]
    requested_value: Optional[str]
    observed_after: Optional[str]
    outcome: Outcome
    timestamp: str
    detail: str = ""

    @property
    def is_failure(self) -> bool:
        return self.outcome.is_failure

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["outcome"] = self.outcome.value
        return data

    def to_json(self) -> str:
        """Serialize to a single JSON line."""
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeRecord":
        """Create from dictionary (journal line)."""
        values = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        values["outcome"] = Outcome(values["outcome"])
        return cls(**values)


@dataclass
class RunSummary:
    """Per-run aggregate of ChangeRecords."""
    mode: str
    dry_run: bool = False
    records: List[ChangeRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: str = ""
    finished_at: str = ""

    def __post_init__(self):
        if not self.started_at:
            self.started_at = utc_now()

    def counts(self) -> Dict[str, int]:
        """Number of records per outcome (every outcome present, zero if unused)."""
        result = {o.value: 0 for o in Outcome}
        for record in self.records:
            result[record.outcome.value] += 1
        return result

    @property
    def failures(self) -> List[ChangeRecord]:
        """Records that need operator attention (unsupported excluded)."""
        return [r for r in self.records if r.is_failure]

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "counts": self.counts(),
            "failure_count": self.failure_count,
            "warnings": list(self.warnings),
            "records": [r.to_dict() for r in self.records],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
