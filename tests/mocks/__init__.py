"""
Mock components for testing hosttune.

These fakes stand in for live sysfs nodes, management commands and the
host filesystem so reconciliation and persistence run without root.
"""

from .fake_targets import FakeTarget, FakeCommandRunner, make_parameter
from .fake_host import populate_root, read_value

__all__ = [
    'FakeTarget',
    'FakeCommandRunner',
    'make_parameter',
    'populate_root',
    'read_value',
]
