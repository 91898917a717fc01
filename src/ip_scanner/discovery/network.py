"""Local network interface utilities used to autofill the scan range."""

from typing import List, Optional

import netifaces
import structlog

from ..models.scan import NetworkInterface
from ..scanner.address_range import int_to_ip, ip_to_int

logger = structlog.get_logger(__name__)

LINK_LOCAL_PREFIX = "169."


def get_network_interfaces(skip_loopback: bool = True) -> List[str]:
    """Get list of network interface names.

    Args:
        skip_loopback: Whether to exclude loopback interfaces.

    Returns:
        List[str]: List of interface names, empty if they cannot be enumerated.
    """
    try:
        interfaces = netifaces.interfaces()
    except (OSError, ValueError) as e:
        logger.warning("netifaces interface enumeration failed", error=str(e))
        return []
    if skip_loopback:
        # 'lo' on Linux, 'lo0' on macOS, 'Loopback...' on Windows
        interfaces = [
            iface for iface in interfaces
            if not iface.lower().startswith(("lo", "loopback"))
        ]
    return interfaces


def get_interface_ipv4(interface: str) -> List[NetworkInterface]:
    """Get the usable IPv4 addresses (with netmask) configured on one interface.

    Loopback and link-local (169.254/16) addresses are skipped.
    """
    try:
        addr_info = netifaces.ifaddresses(interface)
    except (ValueError, KeyError, OSError) as e:
        logger.error("Failed to get addresses for interface", interface=interface, error=str(e))
        return []

    found = []
    for addr in addr_info.get(netifaces.AF_INET, []):
        ip = addr.get("addr")
        mask = ip_to_int(addr.get("netmask", ""))
        if not ip or mask is None or ip_to_int(ip) is None:
            continue
        if ip.startswith(LINK_LOCAL_PREFIX) or ip.startswith("127."):
            continue
        found.append(NetworkInterface(name=interface, ip_address=ip, netmask=mask))
    return found


def list_ipv4_interfaces() -> List[NetworkInterface]:
    """All non-loopback, non-link-local IPv4 interface addresses, sorted by interface name."""
    interfaces = [
        entry
        for iface in get_network_interfaces(skip_loopback=True)
        for entry in get_interface_ipv4(iface)
    ]
    return sorted(interfaces, key=lambda entry: entry.name)


def subnet_range(interface: Optional[NetworkInterface]) -> Optional[str]:
    """Usable host range of the interface's subnet (network+1 .. broadcast-1) as a range string."""
    if interface is None:
        return None
    ip = ip_to_int(interface.ip_address)
    if ip is None:
        return None

    mask = interface.netmask & 0xFFFFFFFF
    network = ip & mask
    broadcast = network | (~mask & 0xFFFFFFFF)
    start, end = network + 1, broadcast - 1
    if start >= end:
        return None
    return f"{int_to_ip(start)}-{int_to_ip(end)}"


def find_interface(name: str) -> Optional[NetworkInterface]:
    for entry in list_ipv4_interfaces():
        if entry.name == name:
            return entry
    return None


def current_subnet_range() -> Optional[str]:
    """Range for the first usable interface, or None if there is none."""
    interfaces = list_ipv4_interfaces()
    return subnet_range(interfaces[0] if interfaces else None)
