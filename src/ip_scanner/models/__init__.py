"""
Pydantic models for IP Scanner.
"""
from .common import (
    BasePydanticModel,
    ProbeOutcome,
    ScanState,
    Transport,
)
from .scan import (
    NetworkInterface,
    ScanResult,
    ServiceDefinition,
    services_summary,
)

__all__ = [
    "BasePydanticModel",
    "NetworkInterface",
    "ProbeOutcome",
    "ScanResult",
    "ScanState",
    "ServiceDefinition",
    "Transport",
    "services_summary",
]
