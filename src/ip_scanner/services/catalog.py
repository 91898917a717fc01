"""
Built-in catalog of well-known services offered as default scan targets.
"""
from typing import Dict, List, Tuple

from ..models.common import Transport
from ..models.scan import ServiceDefinition

# Probed for liveness only when no TCP service is enabled.
DEFAULT_DISCOVERY_PORTS: Tuple[int, ...] = (80, 443, 22, 3389, 5900)

_CATALOG: Tuple[Tuple[str, int, Transport], ...] = (
    ("dhcp", 67, Transport.UDP),
    ("dns", 53, Transport.UDP),
    ("ftp", 21, Transport.TCP),
    ("imap", 143, Transport.TCP),
    ("imaps", 993, Transport.TCP),
    ("http", 80, Transport.TCP),
    ("https", 443, Transport.TCP),
    ("ldap", 389, Transport.TCP),
    ("mqtt", 1883, Transport.TCP),
    ("mqtts", 8883, Transport.TCP),
    ("mysql", 3306, Transport.TCP),
    ("netbios", 139, Transport.TCP),
    ("ntp", 123, Transport.UDP),
    ("postgres", 5432, Transport.TCP),
    ("rdp", 3389, Transport.TCP),
    ("redis", 6379, Transport.TCP),
    ("smb", 445, Transport.TCP),
    ("smtp", 25, Transport.TCP),
    ("ssh", 22, Transport.TCP),
    ("telnet", 23, Transport.TCP),
    ("tftp", 69, Transport.UDP),
    ("vnc", 5900, Transport.TCP),
)

SERVICE_CATALOG: Tuple[ServiceDefinition, ...] = tuple(
    ServiceDefinition(name=name, port=port, transport=transport, enabled=True)
    for name, port, transport in _CATALOG
)

CATALOG_BY_KEY: Dict[str, ServiceDefinition] = {service.identity_key: service for service in SERVICE_CATALOG}


def default_services() -> List[ServiceDefinition]:
    """Fresh list of the catalog entries, all enabled."""
    return list(SERVICE_CATALOG)


def is_default(service: ServiceDefinition) -> bool:
    return service.identity_key in CATALOG_BY_KEY
