"""
ActivationController - makes installed artifacts take effect.

Provides:
- sysctl fragment load (sysctl -p)
- udev rule reload and trigger (udevadm)
- unit registration (systemctl daemon-reload / enable / disable)

Every step returns warnings instead of raising: an artifact that was written
but could not be activated is still installed and will apply at next boot.
"""

from typing import List, Optional

from ..protocol.parameter import ArtifactFamily
from ..tuning.commands import CommandRunner


class ActivationController:
    """Runs the family-specific activation commands for artifacts."""

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def _steps(self, commands: List[List[str]]) -> List[str]:
        warnings = []
        for args in commands:
            error = self.runner.check(args)
            if error:
                warnings.append(error)
        return warnings

    def activate(self, family: ArtifactFamily, path: str, unit: str = "") -> List[str]:
        """
        Activate a freshly written artifact.

        Args:
            family: Artifact family
            path: Absolute path of the written file
            unit: Unit name (service family)

        Returns:
            List of warning messages (empty on success)
        """
        if family == ArtifactFamily.SYSCTL:
            return self._steps([["sysctl", "-p", path]])
        if family == ArtifactFamily.UDEV:
            return self._steps([
                ["udevadm", "control", "--reload-rules"],
                ["udevadm", "trigger", "--subsystem-match=block", "--action=change"],
            ])
        if family == ArtifactFamily.SERVICE:
            return self._steps([
                ["systemctl", "daemon-reload"],
                ["systemctl", "enable", unit],
            ])
        # modprobe options take effect at next module load
        return []

    def deactivate(self, family: ArtifactFamily, unit: str = "") -> List[str]:
        """Undo registration before the artifact file is removed."""
        if family == ArtifactFamily.SERVICE:
            # a running unit outlives its removed unit file
            return self._steps([
                ["systemctl", "stop", unit],
                ["systemctl", "disable", unit],
            ])
        return []

    def reload(self, family: ArtifactFamily) -> List[str]:
        """Reload the owning daemon after an artifact file was removed."""
        if family == ArtifactFamily.SERVICE:
            return self._steps([["systemctl", "daemon-reload"]])
        if family == ArtifactFamily.UDEV:
            return self._steps([["udevadm", "control", "--reload-rules"]])
        return []
