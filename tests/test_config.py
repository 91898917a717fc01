"""Tests for configuration module."""

import json

import pytest
from pydantic import ValidationError

from ip_scanner.config import Config, DiscoveryConfig, ScanConfig


def test_config_from_env(monkeypatch):
    """Test loading configuration from environment variables, including nested sections."""
    monkeypatch.setenv("IP_SCANNER_SCAN__MAX_PARALLEL_SCANS", "8")
    monkeypatch.setenv("IP_SCANNER_SCAN__SERVICE_TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("IP_SCANNER_DISCOVERY__ENABLE_MDNS", "false")
    monkeypatch.setenv("IP_SCANNER_LOGGING__LEVEL", "DEBUG")
    monkeypatch.setenv("IP_SCANNER_SERVICES_FILE", "/tmp/services.json")

    config = Config()

    assert config.scan.max_parallel_scans == 8
    assert config.scan.service_timeout_seconds == 0.5
    assert config.discovery.enable_mdns is False
    assert config.logging.level == "DEBUG"
    assert str(config.services_file) == "/tmp/services.json"


def test_config_defaults():
    """Test default configuration values."""
    config = Config()

    # ScanConfig defaults
    assert config.scan.max_parallel_scans == 32
    assert config.scan.icmp_timeout_seconds == 1.0
    assert config.scan.discovery_tcp_timeout_seconds == 0.8
    assert config.scan.service_timeout_seconds == 1.0
    assert config.scan.hostname_timeout_seconds == 2.0
    assert config.scan.mac_timeout_seconds == 3.0
    assert config.scan.large_range_threshold == 256
    assert config.scan.default_range == "192.168.1.1-192.168.1.15"
    assert config.scan.trigger_local_network_access is True

    # DiscoveryConfig defaults
    assert config.discovery.enable_mdns is True
    assert "_workstation._tcp.local." in config.discovery.mdns_service_types
    assert config.discovery.resolve_timeout_ms == 3000

    # LoggingConfig defaults
    assert config.logging.level == "INFO"
    assert config.logging.format == "json"
    assert config.logging.file is None

    assert config.services_file is None


def test_config_from_file(tmp_path):
    """Test loading configuration from a JSON file."""
    config_content = {
        "scan": {"max_parallel_scans": 4, "default_range": "10.0.0.1-10.0.0.20"},
        "discovery": {"mdns_service_types": ["_ssh._tcp.local."]},
        "logging": {"level": "WARNING", "format": "console"},
        "services_file": "/tmp/my-services.json",
    }
    config_file = tmp_path / "test_config.json"
    config_file.write_text(json.dumps(config_content))

    config = Config.from_file(config_file)

    assert config.scan.max_parallel_scans == 4
    assert config.scan.default_range == "10.0.0.1-10.0.0.20"
    assert config.discovery.mdns_service_types == ["_ssh._tcp.local."]
    assert config.logging.level == "WARNING"
    assert config.logging.format == "console"
    assert str(config.services_file) == "/tmp/my-services.json"

    # Unspecified fields retain defaults
    assert config.scan.icmp_timeout_seconds == 1.0
    assert config.discovery.enable_mdns is True


def test_scan_config_bounds():
    """Parallelism must stay within 1..256 and timeouts must be positive."""
    with pytest.raises(ValidationError):
        ScanConfig(max_parallel_scans=0)
    with pytest.raises(ValidationError):
        ScanConfig(max_parallel_scans=1000)
    with pytest.raises(ValidationError):
        ScanConfig(service_timeout_seconds=0)
    with pytest.raises(ValidationError):
        DiscoveryConfig(resolve_timeout_ms=10)
