"""
Custom exceptions for IP Scanner.

Per-probe failures never surface as exceptions; they are folded into
ProbeOutcome / ScanResult. Only operator-facing failures live here.
"""


class IPScannerError(Exception):
    """Base class for all IP Scanner errors."""
    pass


class InvalidRangeError(IPScannerError, ValueError):
    """Raised when a range string is not `A.B.C.D` or `A.B.C.D-A.B.C.D` with start <= end."""

    def __init__(self, range_input: str, reason: str = "malformed range"):
        super().__init__(f"Invalid range {range_input!r}: {reason}")
        self.range_input = range_input
        self.reason = reason


class ServiceConfigError(IPScannerError):
    """Base class for service configuration errors."""
    pass


class ServiceConfigDecodeError(ServiceConfigError):
    """Raised when a services JSON blob cannot be decoded."""
    pass


class ImportDecodeError(ServiceConfigDecodeError):
    """Raised when an imported services file cannot be decoded.
    The existing configuration must be left untouched."""
    pass


class ServiceEditError(ServiceConfigError):
    """Raised when adding or editing a service would break the configuration."""
    pass
