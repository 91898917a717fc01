"""
Service catalog and services configuration handling.
"""
from .catalog import DEFAULT_DISCOVERY_PORTS, SERVICE_CATALOG, default_services, is_default
from .config import (
    active_services,
    add_service,
    custom_services,
    decode_raw,
    decode_services,
    default_json,
    encode_pretty,
    encode_services,
    export_all_json,
    export_custom_json,
    identity_key,
    merge_defaults,
    merge_imported,
    merge_imported_json,
    remove_service,
    select_services,
    set_enabled,
)

__all__ = [
    "DEFAULT_DISCOVERY_PORTS",
    "SERVICE_CATALOG",
    "active_services",
    "add_service",
    "custom_services",
    "decode_raw",
    "decode_services",
    "default_json",
    "default_services",
    "encode_pretty",
    "encode_services",
    "export_all_json",
    "export_custom_json",
    "identity_key",
    "is_default",
    "merge_defaults",
    "merge_imported",
    "merge_imported_json",
    "remove_service",
    "select_services",
    "set_enabled",
]
