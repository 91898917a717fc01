"""
Hostname discovery for IP Scanner.

A lifetime-scoped mDNS listener feeds a write-once address -> hostname cache
that the service scanner falls back to when reverse DNS has no answer. The
network helpers compute scan ranges for the local interfaces.
"""

from .mdns_listener import HostnameDiscoveryService
from .name_cache import NameResolutionCache
from .network import current_subnet_range, list_ipv4_interfaces, subnet_range

__all__ = [
    "HostnameDiscoveryService",
    "NameResolutionCache",
    "current_subnet_range",
    "list_ipv4_interfaces",
    "subnet_range",
]
