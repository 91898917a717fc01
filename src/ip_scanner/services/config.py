"""
Services configuration: JSON encoding, defaults merge, import merge and edits.

The JSON blob is a list of objects with `name`, `port`, `isEnabled` and an
optional `transport`. Entries are matched by identity key
(`lowercase(name):port`); transport is deliberately not part of the key.
Built-in catalog entries are always present in a decoded configuration.
"""
import json
from typing import Iterable, List, Optional, Sequence

import structlog
from pydantic import TypeAdapter, ValidationError

from ..exceptions import ImportDecodeError, ServiceConfigDecodeError, ServiceEditError
from ..models.common import Transport
from ..models.scan import ServiceDefinition
from .catalog import CATALOG_BY_KEY, default_services, is_default

logger = structlog.get_logger(__name__)

_SERVICE_LIST = TypeAdapter(List[ServiceDefinition])


def identity_key(service: ServiceDefinition) -> str:
    return service.identity_key


def _dedupe(services: Iterable[ServiceDefinition]) -> List[ServiceDefinition]:
    """Drop later entries whose identity key was already seen."""
    seen: set[str] = set()
    unique = []
    for service in services:
        if service.identity_key in seen:
            continue
        seen.add(service.identity_key)
        unique.append(service)
    return unique


def _with_catalog_transport(service: ServiceDefinition) -> ServiceDefinition:
    # Blobs written before transport existed only carry name/port/isEnabled.
    if "transport" in service.model_fields_set:
        return service
    catalog_entry = CATALOG_BY_KEY.get(service.identity_key)
    if catalog_entry is None or catalog_entry.transport == service.transport:
        return service
    return service.model_copy(update={"transport": catalog_entry.transport})


def _parse(blob: Optional[str]) -> List[ServiceDefinition]:
    if blob is None or not blob.strip():
        raise ServiceConfigDecodeError("services configuration is empty")
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise ServiceConfigDecodeError(f"services configuration is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ServiceConfigDecodeError("services configuration must be a JSON list")
    try:
        services = _SERVICE_LIST.validate_python(data)
    except ValidationError as e:
        raise ServiceConfigDecodeError(f"invalid service entry: {e.errors()[0].get('msg', e)}") from e
    return [_with_catalog_transport(service) for service in services]


def merge_defaults(existing: Sequence[ServiceDefinition]) -> List[ServiceDefinition]:
    """Catalog entries in catalog order (existing entries win per key), then the custom entries."""
    existing = _dedupe(existing)
    by_key = {service.identity_key: service for service in existing}
    merged = [by_key.get(default.identity_key, default) for default in default_services()]
    custom = [service for service in existing if not is_default(service)]
    return merged + custom


def decode_services(blob: Optional[str]) -> List[ServiceDefinition]:
    """Decode a persisted configuration, falling back to the catalog if it cannot be read."""
    try:
        services = _parse(blob)
    except ServiceConfigDecodeError as e:
        logger.warning("Falling back to default services", error=str(e))
        return default_services()
    return merge_defaults(services)


def decode_raw(blob: Optional[str]) -> List[ServiceDefinition]:
    """Strict decode for imports: no defaults merge, and failures raise.

    Raises:
        ImportDecodeError: if the blob is not a list of valid service entries.
    """
    try:
        return _parse(blob)
    except ServiceConfigDecodeError as e:
        raise ImportDecodeError(str(e)) from e


def merge_imported(
    existing: Sequence[ServiceDefinition], imported: Sequence[ServiceDefinition]
) -> List[ServiceDefinition]:
    """Merge an imported list into the current configuration.

    Catalog entries stay present and take the imported entry's state when the
    import carries the same key. Existing custom entries keep their place;
    imported custom entries whose key is new are appended.
    """
    imported = _dedupe(imported)
    imported_by_key = {service.identity_key: service for service in imported}

    merged = []
    for service in merge_defaults(existing):
        if is_default(service):
            merged.append(imported_by_key.get(service.identity_key, service))
        else:
            merged.append(service)

    known = {service.identity_key for service in merged}
    merged.extend(service for service in imported if service.identity_key not in known)
    return merged


def merge_imported_json(existing_blob: Optional[str], imported_blob: str) -> str:
    """Import a services file into a persisted configuration; returns the new blob.

    Raises:
        ImportDecodeError: the import could not be read; the caller keeps its existing blob.
    """
    imported = decode_raw(imported_blob)
    merged = merge_imported(decode_services(existing_blob), imported)
    logger.info("Imported services", imported=len(imported), total=len(merged))
    return encode_services(merged)


def _as_json_objects(services: Iterable[ServiceDefinition]) -> list[dict]:
    return [service.model_dump(mode="json", by_alias=True) for service in services]


def encode_services(services: Iterable[ServiceDefinition]) -> str:
    return json.dumps(_as_json_objects(services), separators=(",", ":"))


def encode_pretty(services: Iterable[ServiceDefinition]) -> str:
    return json.dumps(_as_json_objects(services), indent=2, sort_keys=True)


def default_json() -> str:
    return encode_services(default_services())


def custom_services(services: Iterable[ServiceDefinition]) -> List[ServiceDefinition]:
    return [service for service in services if not is_default(service)]


def export_all_json(services: Sequence[ServiceDefinition]) -> str:
    return encode_pretty(merge_defaults(services))


def export_custom_json(services: Sequence[ServiceDefinition]) -> str:
    return encode_pretty(custom_services(merge_defaults(services)))


def active_services(services: Iterable[ServiceDefinition]) -> List[ServiceDefinition]:
    """The enabled services, in configured order."""
    return [service for service in services if service.enabled]


def select_services(services: Sequence[ServiceDefinition], selector: str) -> List[ServiceDefinition]:
    """Services matching `name:port` exactly, or every service with that name (case-insensitive)."""
    selector = selector.strip().lower()
    if ":" in selector:
        return [service for service in services if service.identity_key == selector]
    return [service for service in services if service.name.lower() == selector]


def _select_one(services: Sequence[ServiceDefinition], selector: str) -> ServiceDefinition:
    matches = select_services(services, selector)
    if not matches:
        raise ServiceEditError(f"No service matches {selector!r}")
    if len(matches) > 1:
        keys = ", ".join(service.identity_key for service in matches)
        raise ServiceEditError(f"{selector!r} is ambiguous ({keys}); use name:port")
    return matches[0]


def add_service(
    services: Sequence[ServiceDefinition],
    name: str,
    port: int,
    transport: Transport | str = Transport.TCP,
    enabled: bool = True,
) -> List[ServiceDefinition]:
    """Append a custom service. Rejects blank names, ports outside 1..65535 and duplicate keys."""
    try:
        service = ServiceDefinition(name=name, port=port, transport=transport, enabled=enabled)
    except ValidationError as e:
        raise ServiceEditError(f"Invalid service: {e.errors()[0].get('msg', e)}") from e
    if any(existing.identity_key == service.identity_key for existing in services):
        raise ServiceEditError(f"A service named {service.name!r} on port {service.port} already exists")
    return [*services, service]


def remove_service(services: Sequence[ServiceDefinition], selector: str) -> List[ServiceDefinition]:
    """Remove one custom service. Catalog entries can only be disabled."""
    target = _select_one(services, selector)
    if is_default(target):
        raise ServiceEditError(f"{target.name!r} is a built-in service; disable it instead")
    return [service for service in services if service.identity_key != target.identity_key]


def set_enabled(services: Sequence[ServiceDefinition], selector: str, enabled: bool) -> List[ServiceDefinition]:
    target = _select_one(services, selector)
    return [
        service.model_copy(update={"enabled": enabled}) if service.identity_key == target.identity_key else service
        for service in services
    ]
