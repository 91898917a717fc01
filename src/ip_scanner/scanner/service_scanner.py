"""
Per-host scan: liveness, service probes, hostname and MAC enrichment.
"""
import asyncio
import platform
import re
import socket
from typing import Iterable, List, Optional, Sequence

import structlog

from ..config import ScanConfig
from ..discovery.name_cache import NameResolutionCache
from ..models.common import ProbeOutcome
from ..models.scan import ScanResult, ServiceDefinition
from .address_range import int_to_ip
from .cancellation import CancelFlag, is_cancelled
from .liveness import Prober, check_alive, discovery_ports_for
from .prober import PortProber

logger = structlog.get_logger(__name__)

# arp prints colon-separated octets, Windows uses dashes
MAC_PATTERN = re.compile(r"(?:[0-9a-fA-F]{1,2}[:-]){5}[0-9a-fA-F]{1,2}")


def parse_mac_address(output: str) -> Optional[str]:
    """First MAC-looking token in neighbour table output, lowercased and colon-separated."""
    match = MAC_PATTERN.search(output)
    if not match:
        return None
    return match.group(0).replace("-", ":").lower()


def neighbor_table_commands(address: str, system: Optional[str] = None) -> List[List[str]]:
    system = (system or platform.system()).lower()
    if system == "windows":
        return [["arp", "-a", address]]
    return [["arp", "-n", address], ["ip", "neigh", "show", address]]


async def _run_neighbor_command(command: List[str], timeout: float) -> Optional[str]:
    """Output of one neighbour table command, None on timeout. Raises OSError if it cannot start."""
    process = await asyncio.create_subprocess_exec(
        *command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
    )
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        return None
    finally:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
    return stdout.decode(errors="replace")


async def read_neighbor_table(address: str, timeout: float) -> Optional[str]:
    """Output of the first neighbour table command that lists a MAC for `address`, else None."""
    for command in neighbor_table_commands(address):
        try:
            output = await _run_neighbor_command(command, timeout)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.debug("Failed to run neighbour table command", command=command[0], error=str(e))
            return None
        if output is not None and parse_mac_address(output):
            return output
    return None


async def reverse_dns(address: str, timeout: float) -> Optional[str]:
    """PTR lookup for `address`; None when there is no name or the lookup fails."""
    loop = asyncio.get_running_loop()
    try:
        host, _ = await asyncio.wait_for(
            loop.getnameinfo((address, 0), socket.NI_NAMEREQD), timeout=timeout
        )
    except (asyncio.TimeoutError, OSError):
        return None
    # Some resolvers echo the address back instead of failing
    if not host or host == address:
        return None
    return host


class ServiceScanner:
    """Scans one address: decides liveness and, for live hosts, which services respond."""

    def __init__(
        self,
        prober: Optional[Prober] = None,
        name_cache: Optional[NameResolutionCache] = None,
        scan_config: Optional[ScanConfig] = None,
    ):
        self.scan_config = scan_config or ScanConfig()
        self.prober = prober or PortProber(udp_settle_seconds=self.scan_config.udp_settle_seconds)
        self.name_cache = name_cache or NameResolutionCache()

    async def scan(
        self,
        address_value: int,
        services: Sequence[ServiceDefinition],
        discovery_ports: Optional[Iterable[int]] = None,
        cancel_flag: Optional[CancelFlag] = None,
    ) -> ScanResult:
        """Build the ScanResult for one address. Never raises for network conditions."""
        address = int_to_ip(address_value)
        try:
            return await self._scan(address, address_value, services, discovery_ports, cancel_flag)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # One address must never abort the sweep.
            logger.exception("Unexpected error while scanning address", address=address, error=str(e))
            return ScanResult(address=address, sort_key=address_value)

    async def _scan(
        self,
        address: str,
        address_value: int,
        services: Sequence[ServiceDefinition],
        discovery_ports: Optional[Iterable[int]],
        cancel_flag: Optional[CancelFlag],
    ) -> ScanResult:
        cfg = self.scan_config
        enabled = [service for service in services if service.enabled]
        ports = list(discovery_ports) if discovery_ports is not None else discovery_ports_for(enabled)

        is_alive = await check_alive(
            self.prober,
            address,
            ports,
            icmp_timeout=cfg.icmp_timeout_seconds,
            tcp_timeout=cfg.discovery_tcp_timeout_seconds,
            cancel_flag=cancel_flag,
        )
        if not is_alive or is_cancelled(cancel_flag):
            return ScanResult(address=address, sort_key=address_value, is_alive=is_alive)

        outcomes = await asyncio.gather(*(
            self.prober.probe(address, service.port, service.transport, cfg.service_timeout_seconds)
            for service in enabled
        ))
        open_services = [
            service for service, outcome in zip(enabled, outcomes)
            if ProbeOutcome(outcome) == ProbeOutcome.OPEN
        ]

        hostname = None
        mac_address = None
        if not is_cancelled(cancel_flag):
            hostname = await self.resolve_hostname(address)
        if not is_cancelled(cancel_flag):
            mac_address = await self.resolve_mac_address(address)

        logger.debug(
            "Scanned live host",
            address=address,
            open_services=[service.name for service in open_services],
            hostname=hostname,
            mac_address=mac_address,
        )
        return ScanResult(
            address=address,
            sort_key=address_value,
            hostname=hostname,
            mac_address=mac_address,
            is_alive=True,
            open_services=open_services,
        )

    async def resolve_hostname(self, address: str) -> Optional[str]:
        """Reverse DNS first, then whatever the mDNS listener recorded. None if both fail."""
        try:
            hostname = await reverse_dns(address, self.scan_config.hostname_timeout_seconds)
            if hostname:
                return hostname
            return self.name_cache.lookup(address)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Hostname lookup failed", address=address, error=str(e))
            return None

    async def resolve_mac_address(self, address: str) -> Optional[str]:
        try:
            output = await read_neighbor_table(address, self.scan_config.mac_timeout_seconds)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("MAC address lookup failed", address=address, error=str(e))
            return None
        if output is None:
            return None
        return parse_mac_address(output)
