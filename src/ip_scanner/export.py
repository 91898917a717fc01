"""
CSV export and view filtering of scan results.
"""
from typing import Iterable, List, Sequence

from .models.scan import ScanResult

CSV_HEADER = ["IP", "Hostname", "MAC", "Alive", "Services"]
CSV_HEADER_NO_MAC = ["IP", "Hostname", "Alive", "Services"]
_NEEDS_QUOTING = (",", "\"", "\n")


def escape_csv_field(field: str) -> str:
    """Double embedded quotes and wrap the field in quotes if it holds a comma, quote or newline."""
    escaped = field.replace("\"", "\"\"")
    if any(char in escaped for char in _NEEDS_QUOTING):
        return f"\"{escaped}\""
    return escaped


def csv_line(fields: Iterable[str]) -> str:
    return ",".join(escape_csv_field(field) for field in fields)


def result_row(result: ScanResult, include_mac: bool = True) -> List[str]:
    row = [result.address, result.hostname or ""]
    if include_mac:
        row.append(result.mac_address or "")
    row.append("yes" if result.is_alive else "no")
    row.append(";".join(service.name for service in result.open_services))
    return row


def results_to_csv(results: Sequence[ScanResult], include_mac: bool = True) -> str:
    """One header line plus one row per result, newline separated."""
    lines = [csv_line(CSV_HEADER if include_mac else CSV_HEADER_NO_MAC)]
    lines.extend(csv_line(result_row(result, include_mac)) for result in results)
    return "\n".join(lines)


def filter_results(
    results: Iterable[ScanResult],
    hide_no_response: bool = False,
    only_with_services: bool = False,
) -> List[ScanResult]:
    """View filter: optionally drop hosts that did not respond and hosts with no open services."""
    filtered = []
    for result in results:
        if hide_no_response and not result.is_alive:
            continue
        if only_with_services and not result.open_services:
            continue
        filtered.append(result)
    return filtered
