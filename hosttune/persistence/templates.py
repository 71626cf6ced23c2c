"""
Artifact templates - render durable-config file contents.

One renderer per artifact family. Each takes the parameters of that family
(in registry order) and returns the full file text.
"""

from collections import OrderedDict
from typing import List, Sequence

from ..protocol.parameter import Parameter

HEADER = "# Managed by {name}. Regenerate with '{name} install-persistence'; local edits are overwritten."


def render_sysctl(parameters: Sequence[Parameter], name: str = "hosttune") -> str:
    """sysctl.d fragment: one 'key = value' line per parameter."""
    lines = [HEADER.format(name=name)]
    for parameter in parameters:
        key = parameter.persist_hints.get("key", parameter.location)
        lines.append(f"# {parameter.id}: {parameter.description}" if parameter.description else f"# {parameter.id}")
        lines.append(f"{key} = {parameter.desired_value}")
    return "\n".join(lines) + "\n"


def render_udev(parameters: Sequence[Parameter], name: str = "hosttune") -> str:
    """udev rules re-applying block queue attributes on add/change."""
    lines = [HEADER.format(name=name)]
    for parameter in parameters:
        kernel = parameter.persist_hints["kernel"]
        attr = parameter.persist_hints["udev_attr"]
        lines.append(f"# {parameter.id}")
        lines.append(
            f'ACTION=="add|change", KERNEL=="{kernel}", ATTR{{{attr}}}="{parameter.desired_value}"'
        )
    return "\n".join(lines) + "\n"


def render_modprobe(parameters: Sequence[Parameter], name: str = "hosttune") -> str:
    """modprobe.d fragment: one 'options' line per kernel module."""
    modules: "OrderedDict[str, List[str]]" = OrderedDict()
    for parameter in parameters:
        module = parameter.persist_hints["module"]
        option = parameter.persist_hints["option"]
        modules.setdefault(module, []).append(f"{option}={parameter.desired_value}")

    lines = [HEADER.format(name=name)]
    for module, options in modules.items():
        lines.append(f"options {module} {' '.join(options)}")
    return "\n".join(lines) + "\n"


def render_service(
    parameters: Sequence[Parameter],
    name: str = "hosttune",
    executable: str = "hosttune",
) -> str:
    """Oneshot systemd unit that re-applies ephemeral parameters at boot."""
    args = " ".join(f"--parameter {p.id}" for p in parameters)
    return (
        f"{HEADER.format(name=name)}\n"
        "[Unit]\n"
        f"Description={name} boot-time re-apply of ephemeral tuning\n"
        "After=multi-user.target nvidia-persistenced.service systemd-modules-load.service\n"
        "Wants=nvidia-persistenced.service\n"
        "\n"
        "[Service]\n"
        "Type=oneshot\n"
        "RemainAfterExit=yes\n"
        f"ExecStart={executable} --quiet apply {args}\n"
        "StandardOutput=journal\n"
        "StandardError=journal\n"
        "\n"
        "[Install]\n"
        "WantedBy=multi-user.target\n"
    )
