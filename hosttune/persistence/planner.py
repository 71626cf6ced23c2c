"""
PersistencePlanner - maps parameters to durable-config artifacts.

Flow:
1. PLAN      - one decision per parameter (artifact or explicit marker)
2. MERGE     - one artifact per family (sysctl, udev, modprobe, service)
3. INSTALL   - write changed files, then activate
4. UNINSTALL - deactivate, remove, reload

Parameters with no durable mechanism are never silently dropped: they come
back as NoDurableMechanism so the caller can flag them.
"""

import os
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..protocol.parameter import ArtifactFamily, Parameter, Volatility
from ..protocol.artifacts import (
    ArtifactResult,
    ArtifactStatus,
    NativelyDurable,
    NoDurableMechanism,
    PersistenceArtifact,
    PersistencePlan,
    PlanDecision,
)
from ..protocol.errors import NotFound
from ..tuning.commands import CommandRunner
from ..tuning.targets import under_root
from . import templates
from .activation import ActivationController

# Merge and install order
FAMILY_ORDER = [
    ArtifactFamily.SYSCTL,
    ArtifactFamily.UDEV,
    ArtifactFamily.MODPROBE,
    ArtifactFamily.SERVICE,
]


@dataclass
class PersistenceConfig:
    """Configuration for persistence artifacts."""
    root: str = "/"
    name: str = "hosttune"
    executable: str = "hosttune"
    activate: Optional[bool] = None  # None: only when root is "/"

    def artifact_paths(self) -> Dict[ArtifactFamily, str]:
        """Absolute host paths per family (before applying root)."""
        return {
            ArtifactFamily.SYSCTL: f"/etc/sysctl.d/99-{self.name}.conf",
            ArtifactFamily.UDEV: f"/etc/udev/rules.d/60-{self.name}-io.rules",
            ArtifactFamily.MODPROBE: f"/etc/modprobe.d/{self.name}-zfs.conf",
            ArtifactFamily.SERVICE: f"/etc/systemd/system/{self.name}.service",
        }

    @property
    def unit_name(self) -> str:
        return f"{self.name}.service"


class PersistencePlanner:
    """
    Plans, installs and removes durable-config artifacts.

    Artifact ids are the family names: "sysctl", "udev", "modprobe",
    "service".
    """

    def __init__(
        self,
        config: Optional[PersistenceConfig] = None,
        runner: Optional[CommandRunner] = None,
    ):
        self.config = config or PersistenceConfig()
        self.paths = self.config.artifact_paths()
        if self.config.activate is None:
            self.activate = Path(self.config.root).resolve() == Path("/")
        else:
            self.activate = self.config.activate
        self.activation = ActivationController(runner)

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(self, parameter: Parameter) -> PlanDecision:
        """
        Decide how one parameter survives reboot.

        Returns:
            PersistenceArtifact, NoDurableMechanism or NativelyDurable;
            never None.
        """
        if parameter.volatility == Volatility.SELF_PERSISTENT:
            return NativelyDurable(
                parameter.id,
                f"{parameter.location} keeps its value across reboots",
            )

        if parameter.persistence == ArtifactFamily.NONE:
            reason = parameter.persist_hints.get(
                "no_mechanism_reason",
                f"no boot-time mechanism re-applies {parameter.location}",
            )
            return NoDurableMechanism(parameter.id, reason)

        return self._artifact(parameter.persistence, [parameter])

    def plan_all(self, parameters: Iterable[Parameter]) -> PersistencePlan:
        """Plan every parameter and merge artifacts per family."""
        plan = PersistencePlan()
        grouped: "OrderedDict[ArtifactFamily, List[Parameter]]" = OrderedDict(
            (family, []) for family in FAMILY_ORDER
        )

        for parameter in parameters:
            decision = self.plan(parameter)
            if isinstance(decision, NoDurableMechanism):
                plan.no_mechanism.append(decision)
            elif isinstance(decision, NativelyDurable):
                plan.natively_durable.append(decision)
            else:
                grouped[parameter.persistence].append(parameter)

        for family, members in grouped.items():
            if members:
                plan.artifacts.append(self._artifact(family, members))

        return plan

    def _artifact(self, family: ArtifactFamily, parameters: Sequence[Parameter]) -> PersistenceArtifact:
        name = self.config.name
        if family == ArtifactFamily.SYSCTL:
            content = templates.render_sysctl(parameters, name)
        elif family == ArtifactFamily.UDEV:
            content = templates.render_udev(parameters, name)
        elif family == ArtifactFamily.MODPROBE:
            content = templates.render_modprobe(parameters, name)
        else:
            content = templates.render_service(parameters, name, self.config.executable)

        return PersistenceArtifact(
            id=family.value,
            family=family,
            path=self.paths[family],
            content=content,
            parameter_ids=tuple(p.id for p in parameters),
        )

    # =========================================================================
    # Install / uninstall / status
    # =========================================================================

    def host_path(self, path: str) -> Path:
        """Artifact path below the configured root."""
        return under_root(self.config.root, path)

    def install(self, artifacts: Iterable[PersistenceArtifact]) -> List[ArtifactResult]:
        """
        Write and activate artifacts.

        Identical on-disk content is left alone (no write, no activation), so
        installing twice changes nothing the second time. A failure on one
        artifact never stops the others.
        """
        results = []
        for artifact in artifacts:
            path = self.host_path(artifact.path)
            result = ArtifactResult(artifact.id, str(path), ArtifactStatus.INSTALLED)

            try:
                if path.exists() and path.read_text() == artifact.content:
                    result.status = ArtifactStatus.UNCHANGED
                    result.detail = "content already up to date"
                    results.append(result)
                    continue
                self._write(path, artifact.content, artifact.mode)
            except OSError as e:
                result.status = ArtifactStatus.FAILED
                result.detail = f"write failed: {e.strerror or e}"
                results.append(result)
                continue

            if self.activate:
                result.warnings.extend(
                    self.activation.activate(artifact.family, str(path), self.config.unit_name)
                )
            else:
                result.detail = "activation skipped (alternative root)"
            results.append(result)

        return results

    def _write(self, path: Path, content: str, mode: int) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.tmp")
        with open(tmp, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)

    def resolve(self, artifact_ids: Iterable[str]) -> List[ArtifactFamily]:
        """Families for artifact ids (raises NotFound for unknown ids)."""
        return [self._family(artifact_id) for artifact_id in artifact_ids]

    def _family(self, artifact_id: str) -> ArtifactFamily:
        try:
            family = ArtifactFamily(artifact_id)
        except ValueError:
            family = None
        if family not in self.paths:
            raise NotFound(f"unknown artifact: {artifact_id}")
        return family

    def uninstall(
        self,
        artifact_ids: Optional[Iterable[str]] = None,
        dry_run: bool = False,
    ) -> List[ArtifactResult]:
        """
        Deactivate and remove artifacts by id (all families by default).

        A file that is already gone is reported as absent. Works on partial
        installs: each artifact is handled independently. With dry_run the
        artifacts that would be removed are reported and nothing is touched.

        Raises:
            NotFound: Unknown artifact id (before anything is touched)
        """
        ids = list(artifact_ids) if artifact_ids is not None else [f.value for f in FAMILY_ORDER]
        families = self.resolve(ids)

        results = []
        for family in families:
            path = self.host_path(self.paths[family])
            result = ArtifactResult(family.value, str(path), ArtifactStatus.REMOVED)

            if not path.exists():
                result.status = ArtifactStatus.ABSENT
                result.detail = "not installed"
                results.append(result)
                continue

            if dry_run:
                result.status = ArtifactStatus.WOULD_REMOVE
                result.detail = "dry run"
                results.append(result)
                continue

            if self.activate:
                result.warnings.extend(self.activation.deactivate(family, self.config.unit_name))

            try:
                path.unlink()
            except FileNotFoundError:
                result.status = ArtifactStatus.ABSENT
                result.detail = "not installed"
            except OSError as e:
                result.status = ArtifactStatus.FAILED
                result.detail = f"remove failed: {e.strerror or e}"
                results.append(result)
                continue

            if self.activate and result.status == ArtifactStatus.REMOVED:
                result.warnings.extend(self.activation.reload(family))
            results.append(result)

        return results

    def status(self, artifacts: Iterable[PersistenceArtifact]) -> List[ArtifactResult]:
        """Compare planned artifacts against what is on disk."""
        results = []
        for artifact in artifacts:
            path = self.host_path(artifact.path)
            result = ArtifactResult(artifact.id, str(path), ArtifactStatus.MISSING)
            try:
                if path.exists():
                    if path.read_text() == artifact.content:
                        result.status = ArtifactStatus.INSTALLED
                    else:
                        result.status = ArtifactStatus.STALE
                        result.detail = "on-disk content differs from plan"
            except OSError as e:
                result.status = ArtifactStatus.FAILED
                result.detail = f"read failed: {e.strerror or e}"
            results.append(result)
        return results
