"""
Address -> hostname cache fed by the background mDNS listener.
"""
import threading
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class NameResolutionCache:
    """Write-once-per-key mapping from IPv4 address string to hostname.

    The first writer for an address wins. Safe to share between the scan
    workers and the zeroconf listener, which may call in from its own thread.
    """

    def __init__(self) -> None:
        self._hostnames: dict[str, str] = {}
        self._lock = threading.Lock()

    def update(self, ip: str, hostname: str) -> bool:
        """Record `hostname` for `ip` unless one is already known. Returns True if stored."""
        if not hostname:
            return False
        with self._lock:
            if ip in self._hostnames:
                return False
            self._hostnames[ip] = hostname
        logger.debug("Cached hostname", ip=ip, hostname=hostname)
        return True

    def lookup(self, ip: str) -> Optional[str]:
        # dict.get is atomic; readers never wait on the writer lock.
        return self._hostnames.get(ip)

    def __contains__(self, ip: object) -> bool:
        return ip in self._hostnames

    def __len__(self) -> int:
        return len(self._hostnames)
