"""Exceptions raised by icmprobe."""

from __future__ import annotations


class ProbeError(Exception):
    """Base class for every error raised by the probe."""


class UsageError(ProbeError):
    """Invalid command line arguments or configuration values."""


class ResolutionError(ProbeError):
    """The destination could not be resolved to an address."""


class TransportError(ProbeError, OSError):
    """The raw socket could not be opened, configured, written or read."""


class ClosedError(TransportError):
    """The transport was closed on purpose; not a failure."""


class ConfigError(TransportError):
    """A socket option could not be applied."""


class RawSocketPermissionError(TransportError, PermissionError):
    """Raised when raw socket creation fails due to missing privileges."""


class CodecError(ProbeError, ValueError):
    """A received datagram is not a valid ICMP message."""
