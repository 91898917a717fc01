"""Shared fakes for scanner tests."""

import asyncio
import random
from typing import Dict, Optional, Set, Tuple

import pytest

from ip_scanner.models.common import ProbeOutcome, Transport


class FakeProber:
    """In-memory prober: answers from a table of (address, port) -> outcome.

    Unknown ports time out. `jitter` adds a random delay per call so that
    completions arrive out of order.
    """

    def __init__(
        self,
        outcomes: Optional[Dict[Tuple[str, int], ProbeOutcome]] = None,
        pingable: Optional[Set[str]] = None,
        jitter: float = 0.0,
    ):
        self.outcomes = outcomes or {}
        self.pingable = pingable or set()
        self.jitter = jitter
        self.probes: list[Tuple[str, int, str]] = []
        self.pings: list[str] = []

    async def _delay(self) -> None:
        if self.jitter:
            await asyncio.sleep(random.uniform(0, self.jitter))

    async def probe(self, address, port, transport, timeout):
        self.probes.append((address, port, Transport(transport).value))
        await self._delay()
        return self.outcomes.get((address, port), ProbeOutcome.TIMEOUT_OR_ERROR)

    async def ping(self, address, timeout):
        self.pings.append(address)
        await self._delay()
        return address in self.pingable


@pytest.fixture
def make_prober():
    """Factory for FakeProber instances."""
    return FakeProber
