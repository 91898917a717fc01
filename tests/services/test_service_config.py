"""Tests for the service catalog and services configuration handling."""

import json

import pytest

from ip_scanner.exceptions import ImportDecodeError, ServiceEditError
from ip_scanner.models import ServiceDefinition, Transport
from ip_scanner.services import (
    SERVICE_CATALOG,
    active_services,
    add_service,
    custom_services,
    decode_raw,
    decode_services,
    default_json,
    default_services,
    encode_services,
    export_all_json,
    export_custom_json,
    is_default,
    merge_defaults,
    merge_imported,
    merge_imported_json,
    remove_service,
    select_services,
    set_enabled,
)

CATALOG_KEYS = [service.identity_key for service in SERVICE_CATALOG]


def _keys(services):
    return [service.identity_key for service in services]


def _by_key(services):
    return {service.identity_key: service for service in services}

# --- Catalog ---

def test_catalog_entries_are_unique_and_enabled():
    assert len(set(CATALOG_KEYS)) == len(CATALOG_KEYS)
    assert all(service.enabled for service in SERVICE_CATALOG)
    catalog = _by_key(SERVICE_CATALOG)
    assert catalog["dns:53"].transport == Transport.UDP
    assert catalog["http:80"].transport == Transport.TCP


def test_default_services_is_a_fresh_list():
    services = default_services()
    services.append(ServiceDefinition(name="x", port=1))
    assert len(default_services()) == len(SERVICE_CATALOG)

# --- Decode ---

def test_decode_default_json_round_trips():
    decoded = decode_services(default_json())
    assert [s.model_dump() for s in decoded] == [s.model_dump() for s in default_services()]


@pytest.mark.parametrize("blob", [None, "", "   ", "not json", "{\"name\": \"x\"}", "[{\"name\": \"x\", \"port\": 0}]"])
def test_decode_falls_back_to_defaults(blob):
    assert decode_services(blob) == default_services()


def test_decode_adds_missing_defaults_and_keeps_customs():
    blob = json.dumps([
        {"name": "http", "port": 80, "isEnabled": False},
        {"name": "plex", "port": 32400, "isEnabled": True},
    ])
    services = decode_services(blob)

    assert _keys(services)[: len(CATALOG_KEYS)] == CATALOG_KEYS
    assert _keys(services)[len(CATALOG_KEYS):] == ["plex:32400"]
    assert _by_key(services)["http:80"].enabled is False


def test_decode_applies_catalog_transport_when_missing():
    services = decode_services(json.dumps([{"name": "DNS", "port": 53, "isEnabled": True}]))
    assert _by_key(services)["dns:53"].transport == Transport.UDP


def test_decode_keeps_explicit_transport():
    blob = json.dumps([{"name": "dns", "port": 53, "isEnabled": True, "transport": "tcp"}])
    assert _by_key(decode_services(blob))["dns:53"].transport == Transport.TCP


def test_decode_drops_duplicate_keys():
    blob = json.dumps([
        {"name": "plex", "port": 32400, "isEnabled": True},
        {"name": "PLEX", "port": 32400, "isEnabled": False},
    ])
    customs = custom_services(decode_services(blob))
    assert len(customs) == 1
    assert customs[0].enabled is True


def test_decode_raw_is_strict():
    with pytest.raises(ImportDecodeError):
        decode_raw("[1, 2, 3]")
    with pytest.raises(ImportDecodeError):
        decode_raw("")
    assert _keys(decode_raw("[{\"name\": \"plex\", \"port\": 32400}]")) == ["plex:32400"]

# --- Merge ---

def test_merge_defaults_is_idempotent():
    once = merge_defaults([ServiceDefinition(name="plex", port=32400)])
    assert merge_defaults(once) == once


def test_merge_imported_overrides_defaults_and_appends_new_customs():
    existing = merge_defaults([ServiceDefinition(name="plex", port=32400), ServiceDefinition(name="ssh", port=22, enabled=False)])
    imported = [
        ServiceDefinition(name="HTTP", port=80, enabled=False),
        ServiceDefinition(name="plex", port=32400, enabled=False),
        ServiceDefinition(name="grafana", port=3000),
    ]
    merged = merge_imported(existing, imported)
    by_key = _by_key(merged)

    # Every default is still present, exactly once
    assert _keys(merged)[: len(CATALOG_KEYS)] == CATALOG_KEYS
    assert len(merged) == len(set(_keys(merged)))
    # Imported entries win for defaults
    assert by_key["http:80"].enabled is False
    # Defaults absent from the import keep their current state
    assert by_key["ssh:22"].enabled is False
    assert by_key["https:443"].enabled is True
    # Existing customs are kept, new customs appended
    assert by_key["plex:32400"].enabled is True
    assert _keys(merged)[-2:] == ["plex:32400", "grafana:3000"]


def test_merge_imported_json_round_trip():
    existing = encode_services(default_services())
    merged = merge_imported_json(existing, json.dumps([{"name": "grafana", "port": 3000, "isEnabled": True}]))
    assert _keys(decode_services(merged))[-1] == "grafana:3000"


def test_merge_imported_json_rejects_bad_import():
    with pytest.raises(ImportDecodeError):
        merge_imported_json(default_json(), "{broken")

# --- Export ---

def test_export_all_and_custom():
    services = merge_defaults([ServiceDefinition(name="plex", port=32400, transport=Transport.UDP)])
    everything = json.loads(export_all_json(services))
    customs = json.loads(export_custom_json(services))

    assert len(everything) == len(CATALOG_KEYS) + 1
    assert customs == [{"isEnabled": True, "name": "plex", "port": 32400, "transport": "udp"}]

# --- Edits ---

def test_active_services_keeps_order():
    services = [
        ServiceDefinition(name="b", port=2),
        ServiceDefinition(name="a", port=1, enabled=False),
        ServiceDefinition(name="c", port=3),
    ]
    assert [service.name for service in active_services(services)] == ["b", "c"]


def test_select_services():
    services = [ServiceDefinition(name="web", port=80), ServiceDefinition(name="web", port=8080)]
    assert len(select_services(services, "WEB")) == 2
    assert _keys(select_services(services, "web:8080")) == ["web:8080"]
    assert select_services(services, "nope") == []


def test_add_service():
    services = add_service(default_services(), "plex", 32400, "udp")
    added = services[-1]
    assert (added.name, added.port, added.transport, added.enabled) == ("plex", 32400, Transport.UDP, True)
    assert not is_default(added)

    with pytest.raises(ServiceEditError):
        add_service(services, "PLEX", 32400)
    with pytest.raises(ServiceEditError):
        add_service(services, "  ", 1)
    with pytest.raises(ServiceEditError):
        add_service(services, "x", 70000)


def test_remove_service():
    services = add_service(default_services(), "plex", 32400)
    assert "plex:32400" not in _keys(remove_service(services, "plex"))

    with pytest.raises(ServiceEditError):
        remove_service(services, "http")
    with pytest.raises(ServiceEditError):
        remove_service(services, "missing")


def test_set_enabled_requires_unambiguous_selector():
    services = [ServiceDefinition(name="web", port=80), ServiceDefinition(name="web", port=8080)]
    with pytest.raises(ServiceEditError):
        set_enabled(services, "web", False)

    updated = set_enabled(services, "web:8080", False)
    assert [service.enabled for service in updated] == [True, False]
