from __future__ import annotations


class HostPulseError(Exception):
    """Base class for every error raised by hostpulse."""


class ProviderUnavailable(HostPulseError):
    """A system-wide metric could not be read this tick."""


class ProcessTransient(HostPulseError):
    """A single process exited or refused access mid-query."""

    def __init__(self, pid: int, reason: str = ""):
        super().__init__(f"process {pid} unavailable: {reason}" if reason else f"process {pid} unavailable")
        self.pid = pid


class EnumerationFailure(HostPulseError):
    """The running-process list could not be obtained at all."""
