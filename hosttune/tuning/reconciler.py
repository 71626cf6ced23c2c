"""
Reconciler - diffs desired vs. live state and applies the minimal change.

Per parameter, strictly in the given order:
1. READ    - current value via the StateReader
2. TARGET  - desired / default / last-known-good depending on mode
3. COMPARE - equal values mean zero writes (idempotence)
4. WRITE   - skipped on dry-run
5. VERIFY  - re-read; only a matching re-read counts as applied

One failing parameter never stops the batch: every input parameter gets
exactly one ChangeRecord.
"""

from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Union

from ..protocol.parameter import Parameter
from ..protocol.records import ChangeRecord, Mode, Outcome, utc_now
from ..protocol.errors import HostTuneError, PermissionDenied, Unreadable
from ..journal.log import TransactionLog
from .reader import ABSENT, StateReader


class Reconciler:
    """
    Generic reconciliation loop over a sequence of Parameters.

    Writes are never concurrent: some targets have cross-parameter side
    effects (toggling a module flag to force re-evaluation).
    """

    def __init__(
        self,
        reader: Optional[StateReader] = None,
        journal: Optional[TransactionLog] = None,
        on_record: Optional[Callable[[ChangeRecord], None]] = None,
    ):
        self.reader = reader or StateReader()
        self.journal = journal
        self.on_record = on_record
        # Problems outside any single parameter (journal writes)
        self.warnings: List[str] = []

    def reconcile(
        self,
        parameters: Iterable[Parameter],
        mode: Union[Mode, str] = Mode.APPLY,
        dry_run: bool = False,
    ) -> List[ChangeRecord]:
        """
        Reconcile every parameter and return one record each.

        Args:
            parameters: Parameters in registry order
            mode: apply, revert-to-default, rollback or dry-run
            dry_run: Report would-be changes without writing

        Returns:
            List of ChangeRecords, same length and order as parameters
        """
        mode = Mode(mode)
        if mode == Mode.DRY_RUN:
            dry_run = True

        records = []
        for parameter in parameters:
            record = self.reconcile_one(parameter, mode, dry_run=dry_run)
            if not dry_run and self.journal is not None:
                record = self._journal(record)
            if self.on_record:
                self.on_record(record)
            records.append(record)

        return records

    def _journal(self, record: ChangeRecord) -> ChangeRecord:
        """Append to the journal; a failed append is reported, not raised."""
        try:
            self.journal.append(record)
        except OSError as e:
            reason = f"journal append failed: {e.strerror or e}"
            self.warnings.append(f"{record.parameter_id}: {reason}")
            detail = f"{record.detail}; {reason}" if record.detail else reason
            return replace(record, detail=detail)
        return record

    def _target_value(self, parameter: Parameter, mode: Mode) -> Optional[str]:
        if mode in (Mode.APPLY, Mode.DRY_RUN):
            return parameter.desired_value
        if mode == Mode.REVERT:
            return parameter.default_value
        if self.journal is None:
            return None
        value = self.journal.last_known_good(parameter.id)
        if value is None:
            return None
        return parameter.encoding.canonical(value)

    def reconcile_one(
        self,
        parameter: Parameter,
        mode: Mode,
        dry_run: bool = False,
    ) -> ChangeRecord:
        """Reconcile a single parameter; never raises for target failures."""
        started = utc_now()

        def record(outcome, before=None, requested=None, after=None, detail=""):
            return ChangeRecord(
                parameter_id=parameter.id,
                mode=mode.value,
                observed_before=before,
                requested_value=requested,
                observed_after=after,
                outcome=outcome,
                timestamp=started,
                detail=detail,
            )

        # Phase 1: READ
        try:
            current = self.reader.read(parameter)
        except PermissionDenied as e:
            return record(Outcome.DENIED, detail=f"read denied: {e.detail}")
        except Unreadable as e:
            return record(Outcome.UNREADABLE, detail=e.detail)

        if current is ABSENT:
            return record(Outcome.UNSUPPORTED, detail=f"{parameter.location} not present on this host")

        # Phase 2: TARGET
        try:
            target = self._target_value(parameter, mode)
        except OSError as e:
            return record(Outcome.UNREADABLE, current, after=current, detail=f"journal unreadable: {e.strerror or e}")
        if target is None:
            return record(
                Outcome.UNSUPPORTED,
                before=current,
                after=current,
                detail="no applied value recorded to roll back to",
            )

        # Phase 3: COMPARE
        if current == target:
            return record(Outcome.ALREADY_MATCHED, current, target, current)

        if dry_run:
            return record(Outcome.WOULD_CHANGE, current, target, current, detail=f"{current} -> {target}")

        # Phase 4: WRITE
        try:
            if parameter.pre_write is not None and parameter.pre_write != target:
                parameter.target.write(parameter.pre_write)
            parameter.target.write(target)
        except HostTuneError as e:
            return record(Outcome.DENIED, current, target, detail=e.detail)

        # Phase 5: VERIFY
        try:
            after = self.reader.read(parameter)
        except HostTuneError as e:
            return record(Outcome.UNVERIFIED, current, target, detail=f"re-read failed: {e.detail}")

        if after is ABSENT:
            return record(Outcome.UNVERIFIED, current, target, detail="target vanished after write")

        if after == target:
            return record(Outcome.APPLIED, current, target, after)

        if after == current:
            detail = f"write accepted but value stayed {after}"
        else:
            detail = f"requested {target}, target reports {after}"
        return record(Outcome.UNVERIFIED, current, target, after, detail=detail)
