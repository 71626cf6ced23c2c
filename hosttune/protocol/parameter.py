"""
Parameter Protocol - the unit of tuning.

A Parameter binds a stable id to a live Target, the encoding used to read and
write it, and the desired/default values in that encoding.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Category(str, Enum):
    """Category of a tunable parameter."""
    MEMORY = "memory"
    IO = "io"
    STORAGE_POOL = "storage-pool"
    NETWORK = "network"
    SCHEDULER = "scheduler"
    ACCELERATOR_CLOCK = "accelerator-clock"
    ACCELERATOR_MODE = "accelerator-mode"
    CPU_IDLE = "cpu-idle"


class Volatility(str, Enum):
    """Whether a live value survives reboot unaided."""
    EPHEMERAL = "ephemeral"                  # Resets every boot or driver reload
    PERSISTENT_VIA_OS = "persistent-via-os"  # Survives once a durable mechanism exists
    SELF_PERSISTENT = "self-persistent"      # Live system keeps it (pool property, driver mode)


class ArtifactFamily(str, Enum):
    """Durable-config mechanism used to re-apply a value at boot."""
    NONE = "none"
    SYSCTL = "sysctl"
    UDEV = "udev"
    SERVICE = "service"
    MODPROBE = "modprobe"


_BRACKETED = re.compile(r"\[([^\]]+)\]")


class Encoding(str, Enum):
    """Read/write encoding of a target value."""
    INTEGER = "integer"
    ENUM = "enum"
    PAIR = "pair"

    def decode(self, raw: str) -> str:
        """
        Parse raw target text into the canonical string form.

        Raises:
            ValueError: If the text does not parse in this encoding
        """
        text = (raw or "").strip()
        if not text:
            raise ValueError("empty value")

        if self is Encoding.INTEGER:
            return str(int(text.split()[0]))

        if self is Encoding.ENUM:
            # sysfs selectors: "[always] madvise never" -> "always"
            match = _BRACKETED.search(text)
            if match:
                return match.group(1).strip().lower()
            return text.lower()

        parts = [p.strip() for p in text.split(",")]
        if len(parts) == 1:
            # single token pair values (e.g. "unlocked")
            return parts[0].lower()
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"expected 'a,b' pair, got {text!r}")
        return f"{parts[0]},{parts[1]}"

    def canonical(self, value: Any) -> str:
        """Canonicalize a declared value (int, str) for comparison."""
        return self.decode(str(value))


@dataclass(frozen=True)
class Parameter:
    """
    A single tunable parameter.

    The target is any object exposing read() -> str and write(str); see
    hosttune.tuning.targets.
    """
    id: str
    category: Category
    target: Any
    encoding: Encoding
    desired_value: str
    default_value: str
    description: str = ""
    requires_privilege: bool = True
    volatility: Volatility = Volatility.EPHEMERAL
    persistence: ArtifactFamily = ArtifactFamily.NONE
    optional: bool = False
    pre_write: Optional[str] = None

    # Family-specific hints for the Persistence Planner
    # (sysctl key, udev kernel/attr, module/option name)
    persist_hints: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    def value_for(self, mode: str) -> Optional[str]:
        """Target value for a static mode (apply / revert-to-default)."""
        if mode in ("apply", "dry-run"):
            return self.desired_value
        if mode == "revert-to-default":
            return self.default_value
        return None

    @property
    def location(self) -> str:
        """Human-readable target location."""
        return getattr(self.target, "location", repr(self.target))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (listing/JSON output)."""
        return {
            "id": self.id,
            "category": self.category.value,
            "target": self.location,
            "encoding": self.encoding.value,
            "desired_value": self.desired_value,
            "default_value": self.default_value,
            "requires_privilege": self.requires_privilege,
            "volatility": self.volatility.value,
            "persistence": self.persistence.value,
            "optional": self.optional,
            "description": self.description,
        }
