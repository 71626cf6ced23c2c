"""
ParameterRegistry - the declared set of tunable parameters.

Built once from the static table in catalog.py, expanded against the host
settings (block devices, ZFS pool, CPU count, C-states, GPU clock) and then
never mutated.
"""

from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from ..protocol.parameter import (
    ArtifactFamily,
    Category,
    Encoding,
    Parameter,
    Volatility,
)
from ..protocol.errors import NotFound, RegistryLoadError
from ..tuning.commands import CommandRunner
from ..tuning.targets import (
    DEFAULT_TIMEOUT,
    ClockLockTarget,
    FileTarget,
    NvidiaSmiTarget,
    SysctlTarget,
    VboostTarget,
    ZpoolPropertyTarget,
    under_root,
)
from .catalog import PARAMETER_TABLE


class ParameterRegistry:
    """
    Ordered, immutable collection of Parameters.

    Declaration order is the reconciliation order; list_parameters() and
    categories() are deterministic.
    """

    def __init__(self, parameters: Iterable[Parameter]):
        self._parameters = tuple(parameters)
        self._index: Dict[str, Parameter] = {}
        for parameter in self._parameters:
            if parameter.id in self._index:
                raise RegistryLoadError(f"duplicate parameter id: {parameter.id}", parameter.id)
            self._index[parameter.id] = parameter

    @classmethod
    def load(
        cls,
        host: Any = None,
        overrides: Optional[Dict[str, Any]] = None,
        skip: Sequence[str] = (),
        root: Union[str, Path] = "/",
        timeout: float = DEFAULT_TIMEOUT,
        runner: Optional[CommandRunner] = None,
        table: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> "ParameterRegistry":
        """
        Build the registry from the declarative table.

        Args:
            host: HostConfig (block_devices, zfs_pool, cpu_count, cstates, gpu_clock_mhz)
            overrides: Parameter id -> desired value replacing the shipped one
            skip: Parameter ids to leave out entirely
            root: Alternative filesystem root for sysfs/procfs targets
            timeout: Per-access timeout in seconds
            runner: CommandRunner shared by command-backed targets
            table: Declarative table (defaults to the shipped one)

        Raises:
            RegistryLoadError: Malformed table entry, unknown override id,
                or a value that does not parse in the parameter's encoding
        """
        if host is None:
            from ..config import HostConfig
            host = HostConfig()

        runner = runner or CommandRunner()
        builder = _Builder(root=root, timeout=timeout, runner=runner)

        parameters = []
        for template_id, entry in (table if table is not None else PARAMETER_TABLE).items():
            for context in _expansions(entry, host):
                parameters.append(builder.build(template_id, entry, context))

        known = {p.id for p in parameters}
        overrides = dict(overrides or {})
        for pid in list(overrides) + list(skip):
            if pid not in known:
                raise RegistryLoadError(f"unknown parameter id in configuration: {pid}", pid)

        result = []
        for parameter in parameters:
            if parameter.id in skip:
                continue
            if parameter.id in overrides:
                parameter = _with_desired(parameter, overrides[parameter.id])
            result.append(parameter)

        return cls(result)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_parameters(
        self,
        categories: Optional[Iterable[Union[str, Category]]] = None,
        ids: Optional[Iterable[str]] = None,
    ) -> List[Parameter]:
        """
        Parameters in declaration order, optionally filtered.

        Raises:
            NotFound: Unknown category name or parameter id
        """
        selected = list(self._parameters)

        if categories:
            wanted = set()
            for name in categories:
                try:
                    wanted.add(Category(name))
                except ValueError:
                    raise NotFound(f"unknown category: {name}")
            selected = [p for p in selected if p.category in wanted]

        if ids:
            wanted_ids = list(ids)
            for pid in wanted_ids:
                if pid not in self._index:
                    raise NotFound(f"unknown parameter: {pid}", pid)
            selected = [p for p in selected if p.id in set(wanted_ids)]

        return selected

    def get(self, parameter_id: str) -> Parameter:
        """Look up one parameter. Raises NotFound."""
        try:
            return self._index[parameter_id]
        except KeyError:
            raise NotFound(f"unknown parameter: {parameter_id}", parameter_id)

    def categories(self) -> List[Category]:
        """Categories present, in declaration order."""
        seen: List[Category] = []
        for parameter in self._parameters:
            if parameter.category not in seen:
                seen.append(parameter.category)
        return seen

    def __len__(self) -> int:
        return len(self._parameters)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._parameters)

    def __contains__(self, parameter_id: object) -> bool:
        return parameter_id in self._index


# =============================================================================
# Table expansion
# =============================================================================

def _expansions(entry: Dict[str, Any], host: Any) -> Iterator[Dict[str, Any]]:
    """Yield one formatting context per concrete parameter of an entry."""
    base = {
        "pool": host.zfs_pool,
        "gpu_clock": host.gpu_clock_mhz,
    }
    expand = entry.get("expand")

    if expand is None:
        yield base
    elif expand == "block_device":
        for device in host.block_devices:
            yield dict(base, device=device)
    elif expand == "cpu_cstate":
        for cpu in range(host.cpu_count):
            for state in host.cstates:
                yield dict(base, cpu=cpu, state=state)
    else:
        raise RegistryLoadError(f"unknown expansion: {expand}")


def _fill(value: Any, context: Dict[str, Any]) -> Any:
    if isinstance(value, str):
        return value.format(**context)
    return value


def _with_desired(parameter: Parameter, value: Any) -> Parameter:
    try:
        desired = parameter.encoding.canonical(value)
    except ValueError as e:
        raise RegistryLoadError(
            f"override for {parameter.id} is not a valid {parameter.encoding.value}: {value!r} ({e})",
            parameter.id,
        )
    return replace(parameter, desired_value=desired)


class _Builder:
    """Turns one table entry plus a context into a Parameter."""

    def __init__(self, root, timeout: float, runner: CommandRunner):
        self.root = root
        self.timeout = timeout
        self.runner = runner

    def target(self, entry: Dict[str, Any], context: Dict[str, Any]):
        kind = entry["kind"]
        command_kwargs = {"runner": self.runner, "timeout": self.timeout}

        if kind == "sysctl":
            return SysctlTarget(entry["key"], root=self.root, timeout=self.timeout)
        if kind == "sysfs":
            path = _fill(entry["path"], context)
            return FileTarget(under_root(self.root, path), timeout=self.timeout)
        if kind == "zpool":
            return ZpoolPropertyTarget(_fill(entry["pool"], context), entry["prop"], **command_kwargs)
        if kind == "nvidia-smi":
            return NvidiaSmiTarget(
                entry["field"],
                write_flag=entry.get("write_flag"),
                value_map=entry.get("value_map"),
                **command_kwargs,
            )
        if kind == "clock-lock":
            return ClockLockTarget(**command_kwargs)
        if kind == "vboost":
            return VboostTarget(**command_kwargs)
        raise RegistryLoadError(f"unknown target kind: {kind}")

    def hints(self, entry: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, str]:
        hints = {}
        if entry["kind"] == "sysctl":
            hints["key"] = entry["key"]
        if entry["kind"] == "sysfs":
            hints["path"] = _fill(entry["path"], context)
        if "device" in context:
            hints["kernel"] = str(context["device"])
        for name in ("udev_attr", "module", "option", "no_mechanism_reason"):
            if name in entry:
                hints[name] = str(entry[name])
        return hints

    def build(self, template_id: str, entry: Dict[str, Any], context: Dict[str, Any]) -> Parameter:
        pid = template_id.format(**context)
        try:
            encoding = Encoding(entry["encoding"])
            pre_write = entry.get("pre_write")
            return Parameter(
                id=pid,
                category=Category(entry["category"]),
                target=self.target(entry, context),
                encoding=encoding,
                desired_value=encoding.canonical(_fill(entry["desired"], context)),
                default_value=encoding.canonical(_fill(entry["default"], context)),
                description=entry.get("description", ""),
                requires_privilege=entry.get("requires_privilege", True),
                volatility=Volatility(entry.get("volatility", "ephemeral")),
                persistence=ArtifactFamily(entry.get("persistence", "none")),
                optional=entry.get("optional", False),
                pre_write=encoding.canonical(pre_write) if pre_write is not None else None,
                persist_hints=self.hints(entry, context),
            )
        except KeyError as e:
            raise RegistryLoadError(f"table entry {template_id} is missing {e}", pid)
        except ValueError as e:
            raise RegistryLoadError(f"table entry {template_id} is invalid: {e}", pid)
