"""
TuningEngine - wires the registry, reconciler, journal and planner.

The engine owns preconditions (privilege, journal writability, registry
load); once a run starts every parameter produces a record and nothing
short of an interrupt stops the batch.
"""

import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from ..config import Config
from ..protocol.parameter import Parameter
from ..protocol.records import ChangeRecord, Mode, RunSummary, utc_now
from ..protocol.artifacts import ArtifactResult, PersistencePlan
from ..protocol.errors import PrivilegeError
from ..registry.registry import ParameterRegistry
from ..journal.log import TransactionLog
from ..tuning.commands import CommandConfig, CommandRunner
from ..tuning.reader import StateReader
from ..tuning.reconciler import Reconciler
from ..persistence.planner import PersistenceConfig, PersistencePlanner


class TuningEngine:
    """
    Main orchestrator for reconciliation runs and persistence.

    Components are initialized lazily so read-only commands (list, history,
    plan-persistence) never touch targets they do not need.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        runner: Optional[CommandRunner] = None,
        registry: Optional[ParameterRegistry] = None,
        journal: Optional[TransactionLog] = None,
        geteuid: Callable[[], int] = os.geteuid,
    ):
        self.config = config or Config()
        self.runner = runner or CommandRunner(CommandConfig(timeout=self.config.engine.timeout))
        self._geteuid = geteuid

        # Components (initialized lazily)
        self._registry = registry
        self._journal = journal
        self._planner: Optional[PersistencePlanner] = None

        # Callbacks
        self._on_record: Optional[Callable[[ChangeRecord], None]] = None

    def on_record(self, callback: Callable[[ChangeRecord], None]):
        """Register callback invoked as each record is produced."""
        self._on_record = callback

    @property
    def registry(self) -> ParameterRegistry:
        """Get or load the parameter registry (raises RegistryLoadError)."""
        if self._registry is None:
            self._registry = ParameterRegistry.load(
                host=self.config.host,
                overrides=self.config.desired,
                skip=self.config.engine.skip,
                root=self.config.engine.root,
                timeout=self.config.engine.timeout,
                runner=self.runner,
            )
        return self._registry

    @property
    def journal(self) -> TransactionLog:
        """Get or initialize the transaction log."""
        if self._journal is None:
            self._journal = TransactionLog(self.config.journal.path)
        return self._journal

    @property
    def planner(self) -> PersistencePlanner:
        """Get or initialize the persistence planner."""
        if self._planner is None:
            settings = self.config.persistence
            self._planner = PersistencePlanner(
                config=PersistenceConfig(
                    root=settings.root,
                    name=settings.name,
                    executable=settings.executable,
                ),
                runner=self.runner,
            )
        return self._planner

    # =========================================================================
    # Preconditions
    # =========================================================================

    def check_privilege(self) -> None:
        """Raise PrivilegeError when changes cannot be attempted at all."""
        if self.config.engine.require_root and self._geteuid() != 0:
            raise PrivilegeError("this command changes host state and must run as root")

    def check_journal(self) -> None:
        """Raise PrivilegeError when the transaction log cannot be written."""
        path = Path(self.journal.path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PrivilegeError(f"cannot create journal directory {path.parent}: {e.strerror or e}")

        checked = path if path.exists() else path.parent
        if not os.access(checked, os.W_OK):
            raise PrivilegeError(f"journal {path} is not writable")

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def select(
        self,
        categories: Optional[Iterable[str]] = None,
        ids: Optional[Iterable[str]] = None,
    ) -> List[Parameter]:
        """Parameters in registry order (raises NotFound for unknown names)."""
        return self.registry.list_parameters(categories=categories, ids=ids)

    def run(
        self,
        mode: Union[Mode, str],
        categories: Optional[Iterable[str]] = None,
        ids: Optional[Iterable[str]] = None,
        dry_run: bool = False,
    ) -> RunSummary:
        """
        Reconcile the selected parameters.

        Args:
            mode: apply, revert-to-default, rollback or dry-run
            categories: Restrict to these categories
            ids: Restrict to these parameter ids
            dry_run: Report would-be changes without writing or journaling

        Returns:
            RunSummary with one record per selected parameter

        Raises:
            NotFound: Unknown category or parameter id
            RegistryLoadError: Registry could not be built
            PrivilegeError: Missing root or unwritable journal (non-dry runs)
        """
        mode = Mode(mode)
        if mode == Mode.DRY_RUN:
            dry_run = True

        parameters = self.select(categories, ids)

        if not dry_run:
            self.check_privilege()
            self.check_journal()

        reconciler = Reconciler(
            reader=StateReader(),
            journal=self.journal,
            on_record=self._on_record,
        )

        summary = RunSummary(mode=mode.value, dry_run=dry_run)
        summary.records = reconciler.reconcile(parameters, mode, dry_run=dry_run)
        summary.warnings = list(reconciler.warnings)
        summary.finished_at = utc_now()
        return summary

    def apply(self, categories=None, ids=None, dry_run: bool = False) -> RunSummary:
        return self.run(Mode.APPLY, categories, ids, dry_run=dry_run)

    def revert(self, categories=None, ids=None, dry_run: bool = False) -> RunSummary:
        return self.run(Mode.REVERT, categories, ids, dry_run=dry_run)

    def rollback(self, categories=None, ids=None, dry_run: bool = False) -> RunSummary:
        return self.run(Mode.ROLLBACK, categories, ids, dry_run=dry_run)

    def status(self, categories=None, ids=None) -> RunSummary:
        """Drift report: apply in dry-run mode."""
        return self.run(Mode.DRY_RUN, categories, ids)

    def history(self, parameter_id: Optional[str] = None, limit: Optional[int] = None) -> List[ChangeRecord]:
        """Journal records, optionally for one parameter (raises NotFound)."""
        if parameter_id is not None:
            self.registry.get(parameter_id)
        return self.journal.history(parameter_id=parameter_id, limit=limit)

    # =========================================================================
    # Persistence
    # =========================================================================

    def plan_persistence(self, categories=None, ids=None) -> PersistencePlan:
        """Plan durable-config artifacts for the selected parameters."""
        return self.planner.plan_all(self.select(categories, ids))

    def install_persistence(
        self,
        categories=None,
        ids=None,
        dry_run: bool = False,
    ) -> Tuple[PersistencePlan, List[ArtifactResult]]:
        """Plan, then write and activate the merged artifacts."""
        plan = self.plan_persistence(categories, ids)
        if dry_run:
            return plan, []
        self.check_privilege()
        return plan, self.planner.install(plan.artifacts)

    def uninstall_persistence(
        self,
        artifact_ids: Optional[Iterable[str]] = None,
        categories=None,
        ids=None,
        dry_run: bool = False,
    ) -> List[ArtifactResult]:
        """
        Deactivate and remove artifacts (all when nothing is selected).

        A category or parameter selection maps to the artifact families its
        parameters are persisted through; merged artifacts are removed whole.
        Explicit artifact ids narrow that further.
        """
        if artifact_ids is not None:
            artifact_ids = list(artifact_ids)
            self.planner.resolve(artifact_ids)

        if categories or ids:
            selected = self.plan_persistence(categories, ids).artifact_ids
            if artifact_ids is not None:
                selected = [a for a in selected if a in artifact_ids]
            artifact_ids = selected

        if not dry_run:
            self.check_privilege()
        return self.planner.uninstall(artifact_ids, dry_run=dry_run)

    def persistence_status(self, categories=None, ids=None) -> Tuple[PersistencePlan, List[ArtifactResult]]:
        """Compare the current plan with the artifacts on disk."""
        plan = self.plan_persistence(categories, ids)
        return plan, self.planner.status(plan.artifacts)
