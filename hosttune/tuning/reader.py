"""
StateReader - reads the current value of a parameter from its live target.

Absence is only acceptable for optional parameters; for everything else a
missing target is Unreadable and surfaces as a failed record.
"""

from typing import Union

from ..protocol.parameter import Parameter
from ..protocol.errors import TargetAbsent, Unreadable


class _Absent:
    """Sentinel for an optional target that does not exist on this host."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


class StateReader:
    """
    Reads and decodes live values.

    read() returns the canonical value, or ABSENT for a missing optional
    target. Raises Unreadable or PermissionDenied otherwise.
    """

    def read(self, parameter: Parameter) -> Union[str, _Absent]:
        try:
            raw = parameter.target.read()
        except TargetAbsent as e:
            if parameter.optional:
                return ABSENT
            raise Unreadable(f"required target missing: {e.detail}", parameter_id=parameter.id)
        except Unreadable as e:
            e.parameter_id = parameter.id
            raise

        try:
            return parameter.encoding.decode(raw)
        except ValueError as e:
            raise Unreadable(
                f"cannot parse {raw.strip()!r} as {parameter.encoding.value}: {e}",
                parameter_id=parameter.id,
            )
