"""
Configuration management for hosttune.

Supports:
- TOML config files
- Environment variables
- Command-line overrides
- Sensible defaults

Priority (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Config file
4. Defaults
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for older Python

from .protocol.errors import ConfigError
from .journal.log import DEFAULT_JOURNAL_PATH

CONFIG_ENV = "HOSTTUNE_CONFIG"
JOURNAL_ENV = "HOSTTUNE_JOURNAL"


def config_search_paths() -> List[Path]:
    """Default config file locations (searched in order)."""
    paths = []
    if os.environ.get(CONFIG_ENV):
        paths.append(Path(os.environ[CONFIG_ENV]))
    paths.extend([
        Path.cwd() / "hosttune.toml",                       # Current working directory
        Path("/etc/hosttune/config.toml"),                  # System-wide
        Path.home() / ".config" / "hosttune" / "config.toml",
    ])
    return paths


def _is_int(value) -> bool:
    # TOML true/false load as bool, which is an int subclass
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class EngineConfig:
    """Reconciliation engine configuration."""
    require_root: bool = True
    timeout: float = 5.0  # seconds per target access
    root: str = "/"       # alternative filesystem root for sysfs/procfs
    skip: List[str] = field(default_factory=list)


@dataclass
class HostConfig:
    """Host facts used to expand per-device and per-CPU parameters."""
    block_devices: List[str] = field(default_factory=lambda: ["sda", "sdb"])
    zfs_pool: str = "data_pool_a"
    cpu_count: int = 20
    cstates: List[int] = field(default_factory=lambda: [2, 3])
    gpu_clock_mhz: int = 3003


@dataclass
class JournalConfig:
    """Transaction log configuration."""
    path: str = str(DEFAULT_JOURNAL_PATH)

    def __post_init__(self):
        if os.environ.get(JOURNAL_ENV):
            self.path = os.environ[JOURNAL_ENV]


@dataclass
class PersistenceSettings:
    """Durable-config artifact configuration."""
    root: str = "/"
    name: str = "hosttune"
    executable: str = "hosttune"


@dataclass
class OutputConfig:
    """Output configuration."""
    quiet: bool = False
    json: bool = False


@dataclass
class Config:
    """Main configuration container."""
    engine: EngineConfig = field(default_factory=EngineConfig)
    host: HostConfig = field(default_factory=HostConfig)
    journal: JournalConfig = field(default_factory=JournalConfig)
    persistence: PersistenceSettings = field(default_factory=PersistenceSettings)
    output: OutputConfig = field(default_factory=OutputConfig)
    desired: Dict[str, Any] = field(default_factory=dict)

    # Source tracking
    _config_file: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load configuration from file.

        Args:
            config_path: Explicit path to config file. If None, searches default locations.

        Returns:
            Config instance with loaded values

        Raises:
            ConfigError: Explicit file missing, or file is not valid TOML
        """
        config = cls()

        # Find config file
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigError(f"Config file not found: {config_path}")
        else:
            path = cls._find_config_file()

        if path:
            config = cls._load_from_file(path)
            config._config_file = path

        return config

    @classmethod
    def _find_config_file(cls) -> Optional[Path]:
        """Find config file in default locations."""
        for path in config_search_paths():
            if path.exists():
                return path
        return None

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load config from TOML file."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e.strerror or e}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        # Engine
        if "engine" in data:
            eng = data["engine"]
            config.engine = EngineConfig(
                require_root=eng.get("require_root", config.engine.require_root),
                timeout=eng.get("timeout", config.engine.timeout),
                root=eng.get("root", config.engine.root),
                skip=list(eng.get("skip", config.engine.skip)),
            )

        # Host
        if "host" in data:
            host = data["host"]
            config.host = HostConfig(
                block_devices=list(host.get("block_devices", config.host.block_devices)),
                zfs_pool=host.get("zfs_pool", config.host.zfs_pool),
                cpu_count=host.get("cpu_count", config.host.cpu_count),
                cstates=list(host.get("cstates", config.host.cstates)),
                gpu_clock_mhz=host.get("gpu_clock_mhz", config.host.gpu_clock_mhz),
            )

        # Journal (environment still wins over the file)
        if "journal" in data:
            journal = JournalConfig(path=data["journal"].get("path", config.journal.path))
            config.journal = journal

        # Persistence
        if "persistence" in data:
            pers = data["persistence"]
            config.persistence = PersistenceSettings(
                root=pers.get("root", config.persistence.root),
                name=pers.get("name", config.persistence.name),
                executable=pers.get("executable", config.persistence.executable),
            )

        # Output
        if "output" in data:
            out = data["output"]
            config.output = OutputConfig(
                quiet=out.get("quiet", config.output.quiet),
                json=out.get("json", config.output.json),
            )

        # Desired-value overrides
        if "desired" in data:
            if not isinstance(data["desired"], dict):
                raise ConfigError("[desired] must be a table of parameter id = value")
            config.desired = dict(data["desired"])

        return config

    def override_from_args(self, args) -> "Config":
        """
        Override config values from argparse namespace.

        Args with value None are ignored (keeping config file values).
        """
        if getattr(args, "journal", None):
            self.journal.path = args.journal
        if getattr(args, "root", None):
            self.engine.root = args.root
            self.persistence.root = args.root
        if getattr(args, "timeout", None):
            self.engine.timeout = args.timeout
        if getattr(args, "quiet", None):
            self.output.quiet = args.quiet
        if getattr(args, "json", None):
            self.output.json = args.json

        return self

    def validate(self) -> list:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        timeout = self.engine.timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            errors.append("engine.timeout must be a positive number of seconds")
        if not isinstance(self.engine.skip, list) or not all(isinstance(s, str) for s in self.engine.skip):
            errors.append("engine.skip must be a list of parameter ids")

        if not all(isinstance(d, str) and d for d in self.host.block_devices):
            errors.append("host.block_devices must be a list of device names")
        if not _is_int(self.host.cpu_count) or self.host.cpu_count < 0:
            errors.append("host.cpu_count must be a non-negative integer")
        if not all(_is_int(s) and s >= 0 for s in self.host.cstates):
            errors.append("host.cstates must be a list of C-state indices")
        if not _is_int(self.host.gpu_clock_mhz) or self.host.gpu_clock_mhz <= 0:
            errors.append("host.gpu_clock_mhz must be a positive integer")
        if not self.host.zfs_pool:
            errors.append("host.zfs_pool is required")

        if not self.journal.path:
            errors.append("journal.path is required")
        if not self.persistence.name:
            errors.append("persistence.name is required")

        return errors

    def summary(self, include_config_path: bool = True) -> str:
        """Generate human-readable config summary."""
        lines = []

        if include_config_path:
            if self._config_file:
                lines.append(f"Config: {self._config_file}")
            else:
                lines.append("Config: (defaults)")

        lines.append(f"Root: {self.engine.root} (timeout {self.engine.timeout:g}s)")
        lines.append(
            f"Host: devices {', '.join(self.host.block_devices) or '(none)'}, "
            f"pool {self.host.zfs_pool}, {self.host.cpu_count} CPUs, "
            f"C-states {self.host.cstates}, GPU clock {self.host.gpu_clock_mhz} MHz"
        )
        lines.append(f"Journal: {self.journal.path}")
        lines.append(f"Persistence: {self.persistence.name} under {self.persistence.root}")
        if self.desired:
            lines.append(f"Overrides: {len(self.desired)} desired value(s)")
        if self.engine.skip:
            lines.append(f"Skipped: {', '.join(self.engine.skip)}")

        return "\n".join(lines)


EXAMPLE_CONFIG = """# hosttune Configuration

[engine]
require_root = true
timeout = 5.0
root = "/"
# Parameters to leave out entirely
skip = []

[host]
block_devices = ["sda", "sdb"]
zfs_pool = "data_pool_a"
cpu_count = 20
cstates = [2, 3]
gpu_clock_mhz = 3003

[journal]
path = "/var/lib/hosttune/journal.jsonl"

[persistence]
root = "/"
name = "hosttune"
executable = "hosttune"

[output]
quiet = false
json = false

# Desired-value overrides (parameter id = value)
[desired]
# "mem.swappiness" = 10
# "io.sda.read_ahead_kb" = 4096
"""


def create_example_config(path: str = "hosttune.toml") -> Path:
    """Create example config file."""
    target = Path(path)

    if target.exists():
        raise FileExistsError(f"Config file already exists: {path}")

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(EXAMPLE_CONFIG)
    return target
