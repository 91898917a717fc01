"""
ScanOrchestrator: drives a whole sweep over an address range.

A bounded pool of worker coroutines pulls addresses in order and scans them
concurrently. Completions arrive out of order; a reorder buffer releases them
so that callers always see results in ascending address order. Only one scan
runs at a time per orchestrator, and cancellation is cooperative through a
per-scan flag.
"""
import asyncio
import socket
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

import structlog

from ..config import ScanConfig
from ..discovery.name_cache import NameResolutionCache
from ..exceptions import InvalidRangeError
from ..export import results_to_csv
from ..models.common import ScanState
from ..models.scan import ScanResult, ServiceDefinition
from ..services.config import active_services
from .address_range import count_for_range, parse_range
from .cancellation import CancelFlag
from .liveness import Prober, discovery_ports_for
from .service_scanner import ServiceScanner

logger = structlog.get_logger(__name__)

T = TypeVar("T")

INVALID_RANGE_MESSAGE = "Invalid range. Use format 192.168.1.1-192.168.1.15"
SCAN_COMPLETE_TEXT = "IP Scan Complete"
LOCAL_NETWORK_TRIGGER_ADDRESS = ("255.255.255.255", 9) # discard port

UpdateCallback = Callable[["ScanOrchestrator"], None]


def trigger_local_network_access() -> None:
    """Send one broadcast datagram so the OS raises any local-network permission prompt up front.

    Best effort: every failure is ignored.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setblocking(False)
            sock.sendto(b"\x00", LOCAL_NETWORK_TRIGGER_ADDRESS)
    except OSError as e:
        logger.debug("Local network access trigger failed", error=str(e))


class ReorderBuffer(Generic[T]):
    """Slots for out-of-order completions plus a cursor to the next slot to release.

    `put` fills a slot; `drain` releases the maximal contiguous run of filled
    slots starting at the cursor.
    """

    def __init__(self, size: int):
        self._slots: List[Optional[T]] = [None] * size
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def done(self) -> bool:
        return self._cursor == len(self._slots)

    def put(self, index: int, item: T) -> None:
        if not 0 <= index < len(self._slots):
            raise IndexError(f"slot {index} outside buffer of size {len(self._slots)}")
        if index < self._cursor or self._slots[index] is not None:
            raise ValueError(f"slot {index} already filled")
        self._slots[index] = item

    def drain(self) -> List[T]:
        released: List[T] = []
        while self._cursor < len(self._slots):
            item = self._slots[self._cursor]
            if item is None:
                break
            released.append(item)
            self._slots[self._cursor] = None
            self._cursor += 1
        return released


class ScanProgress:
    """Completed-probe counter with a serialized increment."""

    def __init__(self) -> None:
        self._completed = 0
        self._lock = asyncio.Lock()

    @property
    def completed(self) -> int:
        return self._completed

    async def increment(self) -> int:
        async with self._lock:
            self._completed += 1
            return self._completed


class ScanOrchestrator:
    """
    Runs one scan at a time and exposes its progressively published state:
    `results`, `progress_text`, `status_message`, `is_scanning` and `state`.
    """

    def __init__(
        self,
        prober: Optional[Prober] = None,
        name_cache: Optional[NameResolutionCache] = None,
        scan_config: Optional[ScanConfig] = None,
        on_update: Optional[UpdateCallback] = None,
        scanner: Optional[ServiceScanner] = None,
    ):
        self.scan_config = scan_config or ScanConfig()
        self.name_cache = name_cache or NameResolutionCache()
        self.scanner = scanner or ServiceScanner(prober=prober, name_cache=self.name_cache, scan_config=self.scan_config)
        self.on_update = on_update
        self.logger = logger.bind(component="ScanOrchestrator")

        self.state = ScanState.IDLE
        self.is_scanning = False
        self.progress_text = ""
        self.status_message = ""
        self._results: List[ScanResult] = []
        self._task: Optional[asyncio.Task] = None
        self._cancel_flag: Optional[CancelFlag] = None

    @property
    def results(self) -> List[ScanResult]:
        """Snapshot of the published results, ascending by address."""
        return list(self._results)

    def count_for_range(self, range_input: str) -> Optional[int]:
        return count_for_range(range_input)

    def csv_string(self, include_mac: bool = True) -> str:
        return results_to_csv(self._results, include_mac=include_mac)

    def _notify(self) -> None:
        if self.on_update is None:
            return
        try:
            self.on_update(self)
        except Exception as e:
            # Consumer errors are logged, never propagated into the sweep.
            self.logger.exception("on_update callback failed", error=str(e))

    def start(self, range_input: str, services: Sequence[ServiceDefinition]) -> Optional[asyncio.Task]:
        """Start a scan, cancelling any scan in flight. Must be called from a running event loop.

        Returns the scan task, or None if the range could not be parsed (see `status_message`).
        """
        self.stop()
        self.status_message = ""
        self._results = []

        try:
            addresses = parse_range(range_input)
        except InvalidRangeError as e:
            self.logger.info("Rejected scan range", range_input=range_input, reason=e.reason)
            self.status_message = INVALID_RANGE_MESSAGE
            self.state = ScanState.IDLE
            self._notify()
            return None

        enabled = active_services(services)
        discovery_ports = discovery_ports_for(enabled)
        if self.scan_config.trigger_local_network_access:
            trigger_local_network_access()

        flag = CancelFlag()
        self._cancel_flag = flag
        self.is_scanning = True
        self.state = ScanState.RUNNING
        self.progress_text = f"Queued 0/{len(addresses)}"
        self.logger.info(
            "Starting scan",
            range_input=range_input,
            addresses=len(addresses),
            services=[service.identity_key for service in enabled],
            discovery_ports=discovery_ports,
        )
        self._notify()

        self._task = asyncio.get_running_loop().create_task(
            self._run_scan(addresses, enabled, discovery_ports, flag)
        )
        return self._task

    async def run(self, range_input: str, services: Sequence[ServiceDefinition]) -> List[ScanResult]:
        """Start a scan and wait for it to finish or be stopped. Returns the published results."""
        task = self.start(range_input, services)
        if task is None:
            return []
        try:
            # asyncio.wait does not raise when the scan task itself is cancelled by stop()
            await asyncio.wait({task})
        except asyncio.CancelledError:
            self.stop()
            raise
        return self.results

    def stop(self) -> None:
        """Cancel the active scan, if any. Idempotent."""
        flag, task = self._cancel_flag, self._task
        self._cancel_flag = None
        self._task = None
        if flag is not None:
            flag.set()
        if task is not None and not task.done():
            task.cancel()

        was_running = self.state == ScanState.RUNNING
        self.is_scanning = False
        self.progress_text = ""
        if was_running:
            self.state = ScanState.CANCELLED
            self.logger.info("Scan cancelled", published=len(self._results))
            self._notify()

    async def _run_scan(
        self,
        addresses: List[int],
        services: List[ServiceDefinition],
        discovery_ports: List[int],
        flag: CancelFlag,
    ) -> None:
        total = len(addresses)
        buffer: ReorderBuffer[ScanResult] = ReorderBuffer(total)
        progress = ScanProgress()
        publish_lock = asyncio.Lock()
        pending = iter(range(total)) # shared by all workers; each index is handed out once

        async def worker() -> None:
            for index in pending:
                if flag.is_set:
                    return
                result = await self.scanner.scan(addresses[index], services, discovery_ports, flag)
                async with publish_lock:
                    if flag.is_set:
                        return
                    buffer.put(index, result)
                    completed = await progress.increment()
                    ready = buffer.drain()
                    if flag.is_set:
                        return
                    self._results.extend(ready)
                    self.progress_text = f"Completed {completed}/{total}"
                    self._notify()

        workers = [
            asyncio.create_task(worker())
            for _ in range(min(self.scan_config.max_parallel_scans, total))
        ]
        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            # Abandon in-flight probes; their results are never published.
            flag.set()
            for task in workers:
                task.cancel()
            if self._cancel_flag is flag:
                self._cancel_flag = None
                self.is_scanning = False
                self.state = ScanState.CANCELLED
            raise

        if flag.is_set:
            return
        self._cancel_flag = None
        self.is_scanning = False
        self.state = ScanState.COMPLETED
        self.progress_text = SCAN_COMPLETE_TEXT
        self.logger.info(
            "Scan complete",
            addresses=total,
            alive=sum(1 for result in self._results if result.is_alive),
        )
        self._notify()

    async def __aenter__(self) -> "ScanOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()
