"""
Targets - addressable live configuration points.

Each target exposes:
- location: human-readable address
- read() -> raw text
- write(value) -> None

Failures are raised using the protocol error taxonomy:
- TargetAbsent: location does not exist on this host
- TargetTimeout: access exceeded the timeout
- Unreadable: location exists but cannot be read/parsed
- PermissionDenied: OS or firmware rejected the access
"""

import re
import subprocess
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from ..protocol.errors import (
    PermissionDenied,
    TargetAbsent,
    TargetTimeout,
    Unreadable,
)
from .commands import CommandRunner

DEFAULT_TIMEOUT = 5.0


def bounded(func: Callable, timeout: float, what: str):
    """
    Run func in a daemon thread and wait at most timeout seconds.

    A sysfs node backed by an unresponsive device can block a read forever;
    the worker is abandoned (daemon) and TargetTimeout raised instead.
    """
    outcome: Dict[str, object] = {}

    def worker():
        try:
            outcome["value"] = func()
        except BaseException as e:  # re-raised in the calling thread
            outcome["error"] = e

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    thread.join(timeout)

    if thread.is_alive():
        raise TargetTimeout(f"{what} timed out after {timeout:g}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value")


def under_root(root: Union[str, Path], path: str) -> Path:
    """Resolve an absolute host path below an alternative root."""
    return Path(root) / path.lstrip("/")


class FileTarget:
    """A virtual-file node (sysfs, procfs)."""

    def __init__(self, path: Union[str, Path], timeout: float = DEFAULT_TIMEOUT):
        self.path = Path(path)
        self.timeout = timeout

    @property
    def location(self) -> str:
        return str(self.path)

    def read(self) -> str:
        try:
            return bounded(self.path.read_text, self.timeout, f"read {self.path}")
        except FileNotFoundError:
            raise TargetAbsent(f"{self.path} does not exist")
        except PermissionError as e:
            raise PermissionDenied(f"read {self.path}: {e.strerror or e}")
        except OSError as e:
            raise Unreadable(f"read {self.path}: {e.strerror or e}")
        except ValueError as e:
            # UnicodeDecodeError: binary attribute or corrupt node
            raise Unreadable(f"read {self.path}: {e}")

    def write(self, value: str) -> None:
        # Opening a missing sysfs node for write would create a regular file
        # on anything but sysfs; absence is checked first.
        if not self.path.exists():
            raise TargetAbsent(f"{self.path} does not exist")

        def store():
            with open(self.path, "w") as f:
                f.write(f"{value}\n")

        try:
            bounded(store, self.timeout, f"write {self.path}")
        except TargetTimeout as e:
            raise PermissionDenied(str(e))
        except PermissionError as e:
            raise PermissionDenied(f"write {self.path}: {e.strerror or e}")
        except OSError as e:
            # EINVAL, EBUSY, ...: the kernel rejected the value
            raise PermissionDenied(f"write {value!r} to {self.path} rejected: {e.strerror or e}")

    def __repr__(self) -> str:
        return f"FileTarget({str(self.path)!r})"


class SysctlTarget(FileTarget):
    """A kernel parameter addressed by its sysctl key via /proc/sys."""

    def __init__(self, key: str, root: Union[str, Path] = "/", timeout: float = DEFAULT_TIMEOUT):
        self.key = key
        super().__init__(
            under_root(root, "/proc/sys/" + key.replace(".", "/")),
            timeout=timeout,
        )

    @property
    def location(self) -> str:
        return self.key

    def __repr__(self) -> str:
        return f"SysctlTarget({self.key!r})"


class CommandTarget:
    """Base for targets reached through a management command."""

    # Output fragments that mean "this target does not exist here"
    ABSENT_MARKERS: List[str] = []
    PERMISSION_MARKERS = [
        "permission denied",
        "insufficient permissions",
        "not permitted",
        "must be root",
        "requires root",
    ]

    def __init__(self, runner: Optional[CommandRunner] = None, timeout: float = DEFAULT_TIMEOUT):
        self.runner = runner or CommandRunner()
        self.timeout = timeout

    def _invoke(self, args: List[str], writing: bool = False) -> str:
        """Run a command and map failures onto the error taxonomy."""
        what = " ".join(args)
        try:
            result = self.runner.run(args, timeout=self.timeout)
        except FileNotFoundError:
            raise TargetAbsent(f"{args[0]} is not installed")
        except subprocess.TimeoutExpired:
            if writing:
                raise PermissionDenied(f"{what} timed out after {self.timeout:g}s")
            raise TargetTimeout(f"{what} timed out after {self.timeout:g}s")

        output = f"{result.stdout or ''}\n{result.stderr or ''}".strip()
        if result.returncode == 0:
            return result.stdout or ""

        lowered = output.lower()
        if any(marker in lowered for marker in self.ABSENT_MARKERS):
            raise TargetAbsent(f"{what}: {output}")
        if writing or any(marker in lowered for marker in self.PERMISSION_MARKERS):
            raise PermissionDenied(f"{what} failed (exit {result.returncode}): {output}")
        raise Unreadable(f"{what} failed (exit {result.returncode}): {output}")


class ZpoolPropertyTarget(CommandTarget):
    """A pool-level property of a ZFS pool."""

    ABSENT_MARKERS = ["no such pool", "missing", "failed to initialize"]

    def __init__(self, pool: str, prop: str, **kwargs):
        super().__init__(**kwargs)
        self.pool = pool
        self.prop = prop

    @property
    def location(self) -> str:
        return f"zpool {self.pool} {self.prop}"

    def read(self) -> str:
        return self._invoke(["zpool", "get", "-H", "-o", "value", self.prop, self.pool])

    def write(self, value: str) -> None:
        self._invoke(["zpool", "set", f"{self.prop}={value}", self.pool], writing=True)

    def __repr__(self) -> str:
        return f"ZpoolPropertyTarget({self.pool!r}, {self.prop!r})"


class NvidiaSmiTarget(CommandTarget):
    """A GPU setting queried with --query-gpu and set with a command flag."""

    ABSENT_MARKERS = [
        "no devices were found",
        "nvidia-smi has failed",
        "couldn't communicate with the nvidia driver",
    ]

    def __init__(
        self,
        field: str,
        write_flag: Optional[str] = None,
        value_map: Optional[Dict[str, str]] = None,
        gpu_index: int = 0,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.field = field
        self.write_flag = write_flag
        self.value_map = value_map or {}
        self.gpu_index = gpu_index

    @property
    def location(self) -> str:
        return f"nvidia-smi {self.field}"

    def _query(self, fields: str, nounits: bool = False) -> str:
        fmt = "csv,noheader,nounits" if nounits else "csv,noheader"
        output = self._invoke([
            "nvidia-smi", "-i", str(self.gpu_index),
            f"--query-gpu={fields}", f"--format={fmt}",
        ])
        lines = [line for line in output.splitlines() if line.strip()]
        if not lines:
            raise Unreadable(f"nvidia-smi returned no value for {fields}")
        return lines[0].strip()

    def read(self) -> str:
        return self._query(self.field)

    def write(self, value: str) -> None:
        if not self.write_flag:
            raise PermissionDenied(f"{self.field} is read-only")
        arg = self.value_map.get(value.lower(), value)
        self._invoke(["nvidia-smi", "-i", str(self.gpu_index), self.write_flag, arg], writing=True)

    def __repr__(self) -> str:
        return f"NvidiaSmiTarget({self.field!r})"


class ClockLockTarget(NvidiaSmiTarget):
    """
    Locked GPU graphics clock range.

    The driver exposes no direct read-back of the lock, so the lock is
    inferred: an SM clock sitting at its maximum reads as "<max>,<max>",
    anything else as "unlocked". Writing "unlocked" resets the lock.
    """

    UNLOCKED = "unlocked"

    def __init__(self, **kwargs):
        super().__init__(field="clocks.sm,clocks.max.sm", write_flag="-lgc", **kwargs)

    @property
    def location(self) -> str:
        return "nvidia-smi locked graphics clocks"

    def read(self) -> str:
        raw = self._query(self.field, nounits=True)
        parts = [p.strip() for p in raw.split(",")]
        try:
            current, maximum = int(parts[0]), int(parts[1])
        except (IndexError, ValueError):
            raise Unreadable(f"unexpected clock query output: {raw!r}")
        if current >= maximum:
            return f"{maximum},{maximum}"
        return self.UNLOCKED

    def write(self, value: str) -> None:
        if value.strip().lower() == self.UNLOCKED:
            self._invoke(["nvidia-smi", "-i", str(self.gpu_index), "-rgc"], writing=True)
        else:
            self._invoke(["nvidia-smi", "-i", str(self.gpu_index), "-lgc", value], writing=True)


class VboostTarget(CommandTarget):
    """GPU core-vs-memory clock boost slider."""

    ABSENT_MARKERS = NvidiaSmiTarget.ABSENT_MARKERS + ["not supported", "invalid combination"]

    @property
    def location(self) -> str:
        return "nvidia-smi boost-slider vboost"

    def read(self) -> str:
        output = self._invoke(["nvidia-smi", "boost-slider", "-l"])
        for line in output.splitlines():
            # "|   0  vboost   <current>   <max>  |"
            _, found, rest = line.lower().partition("vboost")
            if found:
                numbers = re.findall(r"-?\d+", rest)
                if numbers:
                    return numbers[0]
        raise Unreadable(f"no vboost value in boost-slider output: {output.strip()!r}")

    def write(self, value: str) -> None:
        self._invoke(["nvidia-smi", "boost-slider", "--vboost", value], writing=True)

    def __repr__(self) -> str:
        return "VboostTarget()"
