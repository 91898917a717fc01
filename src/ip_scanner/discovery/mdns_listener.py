"""
Background mDNS/DNS-SD listener that feeds the NameResolutionCache.

It runs for the lifetime of the application, independently of any scan:
announced services are resolved to their IPv4 addresses and the advertised
host name is recorded for each address.
"""
import asyncio
from typing import Optional

import structlog
from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from ..config import DiscoveryConfig
from .name_cache import NameResolutionCache

logger = structlog.get_logger(__name__)


def hostname_from_service_info(info: AsyncServiceInfo, service_type: str, name: str) -> str:
    """Advertised server name without the trailing dot, else the service instance name."""
    server = (info.server or "").rstrip(".")
    if server:
        return server
    suffix = f".{service_type}"
    return name[: -len(suffix)] if name.endswith(suffix) else name


class HostnameDiscoveryService:
    """
    Browses local service announcements and writes address -> hostname pairs into a cache.
    """

    def __init__(self, cache: NameResolutionCache, discovery_config: Optional[DiscoveryConfig] = None):
        self.cache = cache
        self.discovery_config = discovery_config or DiscoveryConfig()
        self.logger = logger.bind(service="HostnameDiscoveryService")
        self._aiozc: Optional[AsyncZeroconf] = None
        self._browser: Optional[AsyncServiceBrowser] = None
        self._resolve_tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._browser is not None

    async def start(self) -> None:
        """Start browsing. No-op if disabled or already running."""
        if not self.discovery_config.enable_mdns:
            self.logger.info("mDNS hostname discovery is disabled in configuration.")
            return
        if self.running:
            return

        service_types = list(self.discovery_config.mdns_service_types)
        self.logger.info("Starting mDNS hostname discovery", service_types=service_types)
        try:
            self._aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)
            self._browser = AsyncServiceBrowser(
                self._aiozc.zeroconf, service_types, handlers=[self._on_service_state_change]
            )
        except OSError as e:
            # No multicast-capable interface; scans still work with reverse DNS only.
            self.logger.warning("Could not start mDNS browser", error=str(e))
            await self._close_zeroconf()

    def _on_service_state_change(
        self, zeroconf: Zeroconf, service_type: str, name: str, state_change: ServiceStateChange
    ) -> None:
        # zeroconf invokes handlers with keyword arguments; the parameter names matter.
        if state_change not in (ServiceStateChange.Added, ServiceStateChange.Updated):
            return
        self.logger.debug("mDNS service state change detected.", service_name=name, service_type=service_type, state=str(state_change))
        task = asyncio.get_running_loop().create_task(self._resolve_service(zeroconf, service_type, name))
        self._resolve_tasks.add(task)
        task.add_done_callback(self._resolve_tasks.discard)

    async def _resolve_service(self, zeroconf: Zeroconf, service_type: str, name: str) -> None:
        log = self.logger.bind(service_name=name, service_type=service_type)
        try:
            info = AsyncServiceInfo(service_type, name)
            if not await info.async_request(zeroconf, self.discovery_config.resolve_timeout_ms):
                log.debug("Failed to resolve mDNS service info (request timed out or no info).")
                return
            stored = self.record_service_info(info, service_type, name)
            log.debug("Resolved mDNS service", stored_addresses=stored)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Listener runs for the app lifetime; one bad announcement must not kill it.
            log.exception("Error processing mDNS service info", error=str(e))

    def record_service_info(self, info: AsyncServiceInfo, service_type: str, name: str) -> list[str]:
        """Write the hostname for every IPv4 address of a resolved service. Returns the addresses newly stored."""
        hostname = hostname_from_service_info(info, service_type, name)
        stored = []
        for ip in info.parsed_addresses(IPVersion.V4Only):
            if self.cache.update(ip, hostname):
                stored.append(ip)
        return stored

    async def stop(self) -> None:
        """Stop browsing and cancel pending resolutions. Idempotent."""
        for task in list(self._resolve_tasks):
            if not task.done():
                task.cancel()
        if self._resolve_tasks:
            await asyncio.gather(*self._resolve_tasks, return_exceptions=True)
        self._resolve_tasks.clear()

        if self._browser is not None:
            await self._browser.async_cancel()
            self._browser = None
        await self._close_zeroconf()
        self.logger.info("mDNS hostname discovery stopped.")

    async def _close_zeroconf(self) -> None:
        if self._aiozc is not None:
            await self._aiozc.async_close()
            self._aiozc = None

    async def __aenter__(self) -> "HostnameDiscoveryService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.stop()
