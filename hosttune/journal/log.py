"""
TransactionLog - append-only record of every attempted change.

Stored as JSON Lines: one ChangeRecord per line, appended and fsynced so the
audit trail survives a crash mid-run. Records are never rewritten.
"""

import json
import os
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..protocol.records import ChangeRecord, Mode, Outcome

DEFAULT_JOURNAL_PATH = Path("/var/lib/hosttune/journal.jsonl")


class TransactionLog:
    """Durable, ordered, append-only ChangeRecord store."""

    def __init__(self, path: Union[str, Path] = DEFAULT_JOURNAL_PATH):
        self.path = Path(path)

    def append(self, record: ChangeRecord) -> None:
        """Append one record durably."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(record.to_json() + "\n")
            f.flush()
            os.fsync(f.fileno())

    def _iter_records(self) -> Iterator[ChangeRecord]:
        if not self.path.exists():
            return
        with open(self.path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield ChangeRecord.from_dict(json.loads(line))
                except (ValueError, KeyError, TypeError):
                    # torn or hand-edited line
                    continue

    def history(
        self,
        parameter_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ChangeRecord]:
        """
        Records in append order, optionally for one parameter.

        Args:
            parameter_id: Only records for this parameter
            limit: Keep only the most recent N records
        """
        records = [
            r for r in self._iter_records()
            if parameter_id is None or r.parameter_id == parameter_id
        ]
        if limit is not None and limit >= 0:
            records = records[-limit:] if limit else []
        return records

    def last_known_good(self, parameter_id: str) -> Optional[str]:
        """
        requested_value of the most recent applied apply-mode record, or None.

        Reverts restore OS defaults and are never a tuned value to roll
        back to; rollbacks only re-apply an earlier apply-mode value.
        """
        result = None
        for record in self._iter_records():
            if (
                record.parameter_id == parameter_id
                and record.outcome == Outcome.APPLIED
                and record.mode == Mode.APPLY.value
            ):
                result = record.requested_value
        return result

    def __len__(self) -> int:
        return sum(1 for _ in self._iter_records())
