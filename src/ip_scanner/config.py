"""Configuration management for IP Scanner."""

import json
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScanConfig(BaseModel):
    """Tuning knobs for a single sweep. Passed explicitly to the orchestrator at scan start."""

    max_parallel_scans: int = Field(default=32, ge=1, le=256, description="Ceiling on concurrently scanned addresses.")
    icmp_timeout_seconds: float = Field(default=1.0, gt=0, le=10, description="Timeout for the ICMP echo liveness attempt.")
    discovery_tcp_timeout_seconds: float = Field(default=0.8, gt=0, le=10, description="Timeout for each discovery-port TCP probe.")
    service_timeout_seconds: float = Field(default=1.0, gt=0, le=10, description="Timeout for each configured service probe.")
    hostname_timeout_seconds: float = Field(default=2.0, gt=0, le=10, description="Timeout for the reverse DNS lookup.")
    mac_timeout_seconds: float = Field(default=3.0, gt=0, le=10, description="Timeout for the neighbour table lookup.")
    udp_settle_seconds: float = Field(default=0.25, ge=0, le=5, description="How long a UDP probe waits for a port-unreachable rejection.")
    large_range_threshold: int = Field(default=256, ge=1, description="Ranges above this size ask for confirmation before scanning.")
    default_range: str = Field(default="192.168.1.1-192.168.1.15", description="Range used when none is given.")
    trigger_local_network_access: bool = Field(default=True, description="Send one broadcast datagram before scanning to surface OS permission prompts.")


class DiscoveryConfig(BaseModel):
    """Configuration for the background mDNS hostname listener."""

    enable_mdns: bool = Field(default=True, description="Enable the mDNS/DNS-SD hostname listener.")
    mdns_service_types: List[str] = Field(
        default_factory=lambda: [
            "_workstation._tcp.local.",
            "_ssh._tcp.local.",
            "_smb._tcp.local.",
            "_http._tcp.local.",
        ],
        description="mDNS service types to browse for hostname announcements.",
    )
    resolve_timeout_ms: int = Field(default=3000, ge=100, le=30000, description="Timeout for resolving one announced service.")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format ('json' or 'console')")
    file: Optional[Path] = Field(default=None, description="Log file path")


class Config(BaseSettings):
    """Main configuration for IP Scanner. Loads from environment variables prefixed with IP_SCANNER_."""

    model_config = SettingsConfigDict(
        env_prefix='IP_SCANNER_',
        env_nested_delimiter='__',  # e.g., IP_SCANNER_SCAN__MAX_PARALLEL_SCANS
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    scan: ScanConfig = Field(default_factory=ScanConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    services_file: Optional[Path] = Field(default=None, description="Where the services configuration JSON is persisted.")

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.

        This does not layer with environment variables.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
