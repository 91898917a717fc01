"""IP Scanner - discovers live hosts on a local IPv4 range and the services they expose.

The scan engine probes liveness with ICMP and discovery ports, checks a
configurable service catalog on every live host, enriches results with
hostname and MAC, and publishes them progressively in address order.
"""

__version__ = "0.1.0"

from .config import Config

__all__ = ["Config"]
