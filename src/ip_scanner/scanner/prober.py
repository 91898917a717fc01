"""
Transport-level probes: one TCP connect, one UDP datagram or one ICMP echo per call.

Every probe is bounded by its timeout and classified locally; nothing here raises
for network conditions.
"""
import asyncio
import platform
import socket
from typing import Optional

import structlog

from ..models.common import ProbeOutcome, Transport

logger = structlog.get_logger(__name__)

UDP_PAYLOAD = b"\x00"
DEFAULT_UDP_SETTLE_SECONDS = 0.25


class _UDPProbeProtocol(asyncio.DatagramProtocol):
    """Resolves a single outcome future from datagram endpoint callbacks.

    The first determination wins; later callbacks (or a timeout after success)
    are no-ops.
    """

    def __init__(self, outcome: asyncio.Future):
        self.outcome = outcome

    def _resolve(self, result: ProbeOutcome) -> None:
        if not self.outcome.done():
            self.outcome.set_result(result)

    def datagram_received(self, data: bytes, addr) -> None:
        # Any reply at all means the port is listening.
        self._resolve(ProbeOutcome.OPEN)

    def error_received(self, exc: Exception) -> None:
        if isinstance(exc, ConnectionRefusedError):
            self._resolve(ProbeOutcome.CLOSED)
        else:
            self._resolve(ProbeOutcome.TIMEOUT_OR_ERROR)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self.error_received(exc)


def build_ping_command(address: str, timeout: float, system: Optional[str] = None) -> list[str]:
    """Arguments for a single ICMP echo with the platform's `ping` binary."""
    system = (system or platform.system()).lower()
    timeout_ms = max(1, int(timeout * 1000))
    if system == "windows":
        return ["ping", "-n", "1", "-w", str(timeout_ms), address]
    if system == "darwin":
        return ["ping", "-c", "1", "-W", str(timeout_ms), "-n", address]
    # iputils ping takes whole seconds for -W
    return ["ping", "-c", "1", "-W", str(max(1, round(timeout))), "-n", address]


class PortProber:
    """Probes a single address:port (or ICMP echo) with a timeout."""

    def __init__(self, udp_settle_seconds: float = DEFAULT_UDP_SETTLE_SECONDS):
        self.udp_settle_seconds = udp_settle_seconds

    async def probe(self, address: str, port: int, transport: Transport | str, timeout: float) -> ProbeOutcome:
        """Classify one probe as open, closed or timeout/error. Exactly one outcome per call."""
        if not 1 <= port <= 65535:
            return ProbeOutcome.TIMEOUT_OR_ERROR
        if Transport(transport) == Transport.UDP:
            outcome = await self._probe_udp(address, port, timeout)
        else:
            outcome = await self._probe_tcp(address, port, timeout)
        logger.debug("Probe finished", address=address, port=port, transport=Transport(transport).value, outcome=outcome.value)
        return outcome

    async def _probe_tcp(self, address: str, port: int, timeout: float) -> ProbeOutcome:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(address, port), timeout=timeout)
        except asyncio.TimeoutError:
            return ProbeOutcome.TIMEOUT_OR_ERROR
        except ConnectionRefusedError:
            return ProbeOutcome.CLOSED
        except OSError:
            return ProbeOutcome.TIMEOUT_OR_ERROR

        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), timeout=timeout)
        except (asyncio.TimeoutError, OSError):
            # The connection already succeeded; a messy close does not change the outcome.
            pass
        return ProbeOutcome.OPEN

    async def _probe_udp(self, address: str, port: int, timeout: float) -> ProbeOutcome:
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future = loop.create_future()
        transport: Optional[asyncio.DatagramTransport] = None
        try:
            transport, _ = await asyncio.wait_for(
                loop.create_datagram_endpoint(
                    lambda: _UDPProbeProtocol(outcome),
                    remote_addr=(address, port),
                    family=socket.AF_INET,
                ),
                timeout=timeout,
            )
            transport.sendto(UDP_PAYLOAD)
            settle = min(self.udp_settle_seconds, timeout)
            try:
                return await asyncio.wait_for(asyncio.shield(outcome), timeout=settle)
            except asyncio.TimeoutError:
                # Send completed and nothing rejected it.
                if not outcome.done():
                    outcome.set_result(ProbeOutcome.OPEN)
                return outcome.result()
        except asyncio.TimeoutError:
            return ProbeOutcome.TIMEOUT_OR_ERROR
        except ConnectionRefusedError:
            return ProbeOutcome.CLOSED
        except OSError:
            return ProbeOutcome.TIMEOUT_OR_ERROR
        finally:
            if transport is not None:
                transport.close()
            if not outcome.done():
                outcome.cancel()

    async def ping(self, address: str, timeout: float) -> bool:
        """Single ICMP echo through the system `ping`. False on any failure."""
        command = build_ping_command(address, timeout)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (FileNotFoundError, PermissionError) as e:
            logger.debug("ping binary unavailable", address=address, error=str(e))
            return False
        except OSError as e:
            logger.debug("Failed to spawn ping", address=address, error=str(e))
            return False

        try:
            # ping enforces its own deadline; the extra second covers process startup
            return_code = await asyncio.wait_for(process.wait(), timeout=timeout + 1.0)
        except asyncio.TimeoutError:
            return_code = None
        finally:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
        return return_code == 0
