"""
CommandRunner - runs control commands (zpool, nvidia-smi, systemctl, udevadm).

Every invocation is bounded by a timeout so a wedged driver or device
cannot hang a reconciliation run.
"""

import subprocess
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class CommandConfig:
    """Configuration for command execution."""
    timeout: float = 5.0


class CommandRunner:
    """
    Executes argument vectors locally.

    Raises FileNotFoundError when the executable does not exist and
    subprocess.TimeoutExpired when the command exceeds its timeout; a
    non-zero exit status is returned, not raised.
    """

    def __init__(self, config: Optional[CommandConfig] = None):
        self.config = config or CommandConfig()

    def run(self, args: List[str], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        """Run a command and capture its output."""
        return subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=timeout if timeout is not None else self.config.timeout,
        )

    def check(self, args: List[str], timeout: Optional[float] = None) -> Optional[str]:
        """
        Run a command and return an error message, or None on success.

        Used for activation steps whose failure is a warning, not an error.
        """
        try:
            result = self.run(args, timeout=timeout)
        except FileNotFoundError:
            return f"{args[0]} not found"
        except subprocess.TimeoutExpired:
            return f"{' '.join(args)} timed out"

        if result.returncode != 0:
            message = (result.stderr or result.stdout or "").strip()
            return f"{' '.join(args)} failed (exit {result.returncode}): {message}"
        return None
