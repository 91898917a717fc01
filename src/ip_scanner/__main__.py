"""CLI entry point for IP Scanner."""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import click

from .config import Config
from .discovery import HostnameDiscoveryService, NameResolutionCache, list_ipv4_interfaces, subnet_range
from .discovery.network import current_subnet_range, find_interface
from .exceptions import ImportDecodeError, ServiceEditError
from .export import filter_results
from .models.common import Transport
from .models.scan import ScanResult, ServiceDefinition
from .scanner.address_range import count_for_range, is_large_range
from .scanner.orchestrator import INVALID_RANGE_MESSAGE, ScanOrchestrator
from .services import (
    add_service,
    decode_services,
    default_json,
    encode_services,
    export_all_json,
    export_custom_json,
    is_default,
    merge_imported_json,
    remove_service,
    set_enabled,
)
from .utils.logging import configure_logging

DEFAULT_SERVICES_FILE = Path.home() / ".config" / "ip-scanner" / "services.json"
EXIT_INVALID_RANGE = 2
EXIT_INTERRUPTED = 130


def resolve_services_file(config: Config, services_file: Optional[str]) -> Path:
    if services_file:
        return Path(services_file)
    return config.services_file or DEFAULT_SERVICES_FILE


def load_services(path: Path) -> List[ServiceDefinition]:
    """Services persisted at `path`, merged with the catalog. A missing file means the defaults."""
    blob = path.read_text(encoding="utf-8") if path.exists() else default_json()
    return decode_services(blob)


def save_services(path: Path, services: List[ServiceDefinition]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(encode_services(services), encoding="utf-8")


def format_row(result: ScanResult, include_mac: bool = True) -> str:
    columns = [f"{result.address:<15}", f"{result.status_text:<11}", f"{result.hostname or '-':<32}"]
    if include_mac:
        columns.append(f"{result.mac_address or '-':<17}")
    columns.append(result.summary or "-")
    return "  ".join(columns)


def format_header(include_mac: bool = True) -> str:
    columns = [f"{'IP':<15}", f"{'Status':<11}", f"{'Hostname':<32}"]
    if include_mac:
        columns.append(f"{'MAC':<17}")
    columns.append("Services")
    return "  ".join(columns)


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="IP_SCANNER_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO).",
    envvar="IP_SCANNER_LOGGING_LEVEL"
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format.",
    envvar="IP_SCANNER_LOGGING_FORMAT"
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """IP Scanner - finds live hosts on a local IPv4 range and the services they expose."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()

    configure_logging(cfg.logging)
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@cli.command()
@click.argument("range_input", required=False)
@click.option(
    "--services-file", "-s",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Services configuration JSON to scan with (defaults to the configured file)."
)
@click.option("--hide-no-response", is_flag=True, help="Only show hosts that responded.")
@click.option("--only-with-services", is_flag=True, help="Only show hosts with at least one open service.")
@click.option("--no-mac", is_flag=True, help="Leave the MAC column out of the table and the CSV.")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, writable=True, resolve_path=True),
    help="Write all results as CSV to this file when the scan ends."
)
@click.option("--yes", "-y", is_flag=True, help="Do not ask before scanning a large range.")
@click.pass_context
def scan(
    ctx: click.Context,
    range_input: Optional[str],
    services_file: Optional[str],
    hide_no_response: bool,
    only_with_services: bool,
    no_mac: bool,
    output: Optional[str],
    yes: bool,
) -> None:
    """Scan RANGE_INPUT (A.B.C.D or A.B.C.D-A.B.C.D); defaults to the local subnet."""
    config: Config = ctx.obj["config"]
    range_input = range_input or current_subnet_range() or config.scan.default_range
    include_mac = not no_mac

    count = count_for_range(range_input)
    if count is None:
        click.echo(INVALID_RANGE_MESSAGE, err=True)
        sys.exit(EXIT_INVALID_RANGE)
    if is_large_range(count, config.scan.large_range_threshold) and not yes:
        click.confirm(f"{range_input} covers {count} addresses. Scan anyway?", abort=True)

    services = load_services(resolve_services_file(config, services_file))
    printed = 0

    def on_update(orchestrator: ScanOrchestrator) -> None:
        nonlocal printed
        results = orchestrator.results
        for result in filter_results(results[printed:], hide_no_response, only_with_services):
            click.echo(format_row(result, include_mac))
        printed = len(results)

    name_cache = NameResolutionCache()
    orchestrator = ScanOrchestrator(name_cache=name_cache, scan_config=config.scan, on_update=on_update)

    async def run_scan() -> List[ScanResult]:
        async with HostnameDiscoveryService(name_cache, config.discovery):
            async with orchestrator:
                return await orchestrator.run(range_input, services)

    click.echo(f"Scanning {range_input} ({count} addresses)", err=True)
    click.echo(format_header(include_mac))
    try:
        results = asyncio.run(run_scan())
    except KeyboardInterrupt:
        click.echo("\nScan interrupted by user.", err=True)
        sys.exit(EXIT_INTERRUPTED)

    if orchestrator.status_message:
        click.echo(orchestrator.status_message, err=True)
        sys.exit(EXIT_INVALID_RANGE)

    alive = sum(1 for result in results if result.is_alive)
    click.echo(f"{orchestrator.progress_text}: {alive} of {len(results)} hosts responded.", err=True)

    if output:
        try:
            Path(output).write_text(orchestrator.csv_string(include_mac=include_mac) + "\n", encoding="utf-8")
        except OSError as e:
            click.echo(f"Error writing output file {output}: {e}", err=True)
            sys.exit(1)
        click.echo(f"Results written to {output}", err=True)


@cli.command()
@click.option("--interface", "-i", help="Interface to use (default: first usable one).")
def subnet(interface: Optional[str]) -> None:
    """Show the scan range of the local subnet(s)."""
    if interface:
        entry = find_interface(interface)
        if entry is None:
            click.echo(f"No usable IPv4 address on interface {interface}", err=True)
            sys.exit(1)
        entries = [entry]
    else:
        entries = list_ipv4_interfaces()

    if not entries:
        click.echo("No usable IPv4 interface found.", err=True)
        sys.exit(1)
    for entry in entries:
        click.echo(f"{entry.name:<12} {entry.ip_address:<15} {subnet_range(entry) or '-'}")


@cli.group()
@click.option(
    "--services-file", "-s",
    type=click.Path(dir_okay=False, resolve_path=True),
    help="Services configuration JSON to edit (defaults to the configured file)."
)
@click.pass_context
def services(ctx: click.Context, services_file: Optional[str]) -> None:
    """View and edit the services probed on every live host."""
    ctx.obj["services_file"] = resolve_services_file(ctx.obj["config"], services_file)


def _edit_services(ctx: click.Context, edit) -> None:
    path: Path = ctx.obj["services_file"]
    try:
        updated = edit(load_services(path))
    except ServiceEditError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    try:
        save_services(path, updated)
    except OSError as e:
        click.echo(f"Error writing services file {path}: {e}", err=True)
        sys.exit(1)


@services.command("list")
@click.pass_context
def services_list(ctx: click.Context) -> None:
    """List configured services."""
    for service in load_services(ctx.obj["services_file"]):
        marker = "x" if service.enabled else " "
        origin = "built-in" if is_default(service) else "custom"
        click.echo(f"[{marker}] {service.name:<16} {service.port:>5}/{Transport(service.transport).value:<4} {origin}")


@services.command("add")
@click.argument("name")
@click.argument("port", type=int)
@click.option("--transport", "-t", type=click.Choice(["tcp", "udp"]), default="tcp", show_default=True)
@click.option("--disabled", is_flag=True, help="Add the service without enabling it.")
@click.pass_context
def services_add(ctx: click.Context, name: str, port: int, transport: str, disabled: bool) -> None:
    """Add a custom service NAME on PORT."""
    _edit_services(ctx, lambda current: add_service(current, name, port, transport, enabled=not disabled))
    click.echo(f"Added {name} on port {port}/{transport}")


@services.command("remove")
@click.argument("selector")
@click.pass_context
def services_remove(ctx: click.Context, selector: str) -> None:
    """Remove a custom service (SELECTOR is a name or name:port)."""
    _edit_services(ctx, lambda current: remove_service(current, selector))
    click.echo(f"Removed {selector}")


@services.command("enable")
@click.argument("selector")
@click.pass_context
def services_enable(ctx: click.Context, selector: str) -> None:
    """Enable a service (SELECTOR is a name or name:port)."""
    _edit_services(ctx, lambda current: set_enabled(current, selector, True))


@services.command("disable")
@click.argument("selector")
@click.pass_context
def services_disable(ctx: click.Context, selector: str) -> None:
    """Disable a service (SELECTOR is a name or name:port)."""
    _edit_services(ctx, lambda current: set_enabled(current, selector, False))


@services.command("export")
@click.option("--custom-only", is_flag=True, help="Only export services that are not built in.")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, writable=True, resolve_path=True),
    help="Write to this file instead of stdout."
)
@click.pass_context
def services_export(ctx: click.Context, custom_only: bool, output: Optional[str]) -> None:
    """Export the services configuration as JSON."""
    current = load_services(ctx.obj["services_file"])
    blob = export_custom_json(current) if custom_only else export_all_json(current)
    if not output:
        click.echo(blob)
        return
    try:
        Path(output).write_text(blob + "\n", encoding="utf-8")
    except OSError as e:
        click.echo(f"Error writing output file {output}: {e}", err=True)
        sys.exit(1)
    click.echo(f"Services written to {output}", err=True)


@services.command("import")
@click.argument("import_file", type=click.Path(exists=True, dir_okay=False, resolve_path=True))
@click.pass_context
def services_import(ctx: click.Context, import_file: str) -> None:
    """Merge services from IMPORT_FILE into the configuration."""
    path: Path = ctx.obj["services_file"]
    existing = path.read_text(encoding="utf-8") if path.exists() else None
    try:
        merged = merge_imported_json(existing, Path(import_file).read_text(encoding="utf-8"))
    except ImportDecodeError as e:
        click.echo(f"Could not import {import_file}: {e}", err=True)
        sys.exit(1)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(merged, encoding="utf-8")
    except OSError as e:
        click.echo(f"Error writing services file {path}: {e}", err=True)
        sys.exit(1)
    click.echo(f"Imported services from {import_file}")


@cli.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    click.echo(f"IP Scanner v{__version__}")


@cli.command()
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: Config = ctx.obj["config"]
    click.echo(config.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
