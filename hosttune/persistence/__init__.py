"""
Persistence module - durable-config artifacts.

Components:
- PersistencePlanner: plans, installs, uninstalls and checks artifacts
- ActivationController: sysctl/udevadm/systemctl activation steps
- templates: file renderers per artifact family
"""

from .planner import PersistencePlanner, PersistenceConfig, FAMILY_ORDER
from .activation import ActivationController
from . import templates

__all__ = [
    "PersistencePlanner",
    "PersistenceConfig",
    "FAMILY_ORDER",
    "ActivationController",
    "templates",
]
