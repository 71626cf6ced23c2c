"""
Error taxonomy for hosttune.

Per-parameter errors (Unreadable, PermissionDenied, Unverified) are caught by
the Reconciler and turned into ChangeRecord outcomes. Only precondition
errors (RegistryLoadError, PrivilegeError, ConfigError) abort a run.
"""

from typing import Optional


class HostTuneError(Exception):
    """Base class for all hosttune errors."""

    def __init__(self, message: str, parameter_id: Optional[str] = None):
        super().__init__(message)
        self.parameter_id = parameter_id
        self.detail = message


class NotFound(HostTuneError):
    """Unknown parameter id or category (caller error)."""
    pass


class Unreadable(HostTuneError):
    """Target missing or unreadable for a non-optional parameter."""
    pass


class TargetAbsent(Unreadable):
    """Target location does not exist on this host."""
    pass


class TargetTimeout(Unreadable):
    """Target access did not complete within the configured timeout."""
    pass


class PermissionDenied(HostTuneError):
    """Read or write rejected by the OS or firmware."""
    pass


class Unverified(HostTuneError):
    """Write accepted but the re-read did not return the requested value."""
    pass


class RegistryLoadError(HostTuneError):
    """Static table or desired-value overrides could not be loaded."""
    pass


class PrivilegeError(HostTuneError):
    """The process lacks the privilege to attempt any change at all."""
    pass


class ConfigError(HostTuneError):
    """Configuration file missing or invalid."""
    pass
