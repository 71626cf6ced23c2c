"""
Tuning module - reads and reconciles live system state.

Components:
- Targets: live locations (sysfs/procfs files, zpool, nvidia-smi)
- StateReader: reads and decodes current values
- Reconciler: diff, write, re-read verification
- CommandRunner: bounded subprocess execution
"""

from .commands import CommandRunner, CommandConfig
from .targets import (
    FileTarget,
    SysctlTarget,
    CommandTarget,
    ZpoolPropertyTarget,
    NvidiaSmiTarget,
    ClockLockTarget,
    VboostTarget,
    bounded,
    under_root,
)
from .reader import StateReader, ABSENT
from .reconciler import Reconciler

__all__ = [
    "CommandRunner",
    "CommandConfig",
    "FileTarget",
    "SysctlTarget",
    "CommandTarget",
    "ZpoolPropertyTarget",
    "NvidiaSmiTarget",
    "ClockLockTarget",
    "VboostTarget",
    "bounded",
    "under_root",
    "StateReader",
    "ABSENT",
    "Reconciler",
]
