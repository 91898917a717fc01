"""
Scan engine: range parsing, probing, liveness, per-host scanning and orchestration.
"""

from .address_range import count_for_range, int_to_ip, ip_to_int, is_large_range, parse_range
from .cancellation import CancelFlag
from .orchestrator import ReorderBuffer, ScanOrchestrator, ScanProgress
from .prober import PortProber
from .service_scanner import ServiceScanner

__all__ = [
    "CancelFlag",
    "PortProber",
    "ReorderBuffer",
    "ScanOrchestrator",
    "ScanProgress",
    "ServiceScanner",
    "count_for_range",
    "int_to_ip",
    "ip_to_int",
    "is_large_range",
    "parse_range",
]
