"""
Host liveness: one ICMP echo, then TCP probes of the discovery ports.
"""
from typing import Iterable, List, Optional, Protocol

import structlog

from ..models.common import ProbeOutcome, Transport
from ..models.scan import ServiceDefinition
from ..services.catalog import DEFAULT_DISCOVERY_PORTS
from .cancellation import CancelFlag, is_cancelled

logger = structlog.get_logger(__name__)

DEFAULT_ICMP_TIMEOUT = 1.0
DEFAULT_TCP_TIMEOUT = 0.8


class Prober(Protocol):
    async def probe(self, address: str, port: int, transport: Transport | str, timeout: float) -> ProbeOutcome: ...

    async def ping(self, address: str, timeout: float) -> bool: ...


def discovery_ports_for(services: Iterable[ServiceDefinition]) -> List[int]:
    """TCP ports of the enabled services, deduplicated and ascending; the well-known defaults if there are none."""
    ports = {
        service.port
        for service in services
        if service.enabled and service.transport == Transport.TCP
    }
    if not ports:
        return list(DEFAULT_DISCOVERY_PORTS)
    return sorted(ports)


async def check_alive(
    prober: Prober,
    address: str,
    discovery_ports: Iterable[int],
    icmp_timeout: float = DEFAULT_ICMP_TIMEOUT,
    tcp_timeout: float = DEFAULT_TCP_TIMEOUT,
    cancel_flag: Optional[CancelFlag] = None,
) -> bool:
    """True if the host answers ICMP or any discovery port answers open or refused."""
    log = logger.bind(address=address)
    if await prober.ping(address, icmp_timeout):
        log.debug("Host answered ICMP echo")
        return True

    for port in discovery_ports:
        if is_cancelled(cancel_flag):
            return False
        outcome = ProbeOutcome(await prober.probe(address, port, Transport.TCP, tcp_timeout))
        if outcome.responded:
            log.debug("Host answered discovery port", port=port, outcome=outcome.value)
            return True
    return False
