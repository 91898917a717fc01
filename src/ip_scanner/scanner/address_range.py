"""
Parsing of `A.B.C.D` / `A.B.C.D-A.B.C.D` range strings into ordered 32-bit address values.
"""
from typing import List, Optional, Tuple

from ..exceptions import InvalidRangeError

RANGE_SEPARATOR = "-"
LARGE_RANGE_THRESHOLD = 256
MAX_IPV4 = 0xFFFFFFFF


def ip_to_int(text: str) -> Optional[int]:
    """Packs a dotted quad into its big-endian 32-bit value, or None if it is not one."""
    parts = text.split(".")
    if len(parts) != 4:
        return None
    value = 0
    for part in parts:
        # isdigit() also accepts non-ASCII digits; require plain ASCII decimal octets
        if not part or not part.isascii() or not part.isdigit():
            return None
        octet = int(part)
        if octet > 255:
            return None
        value = (value << 8) | octet
    return value


def int_to_ip(value: int) -> str:
    if not 0 <= value <= MAX_IPV4:
        raise ValueError(f"{value} is not a 32-bit address value")
    return ".".join(str((value >> shift) & 0xFF) for shift in (24, 16, 8, 0))


def _bounds(range_input: str) -> Tuple[int, int]:
    trimmed = range_input.strip()
    if not trimmed:
        raise InvalidRangeError(range_input, "empty input")

    parts = trimmed.split(RANGE_SEPARATOR)
    if len(parts) > 2:
        raise InvalidRangeError(range_input, "more than one '-' separator")

    values = []
    for part in parts:
        value = ip_to_int(part.strip())
        if value is None:
            raise InvalidRangeError(range_input, f"{part.strip()!r} is not an IPv4 address")
        values.append(value)

    start, end = values[0], values[-1]
    if start > end:
        raise InvalidRangeError(range_input, "start address is greater than end address")
    return start, end


def parse_range(range_input: str) -> List[int]:
    """Expands a range string into the inclusive, strictly ascending list of address values.

    Raises:
        InvalidRangeError: for anything other than one address or one `start-end` pair with start <= end.
    """
    start, end = _bounds(range_input)
    return list(range(start, end + 1))


def count_for_range(range_input: str) -> Optional[int]:
    """Number of addresses `parse_range` would produce, without building the list. None if invalid."""
    try:
        start, end = _bounds(range_input)
    except InvalidRangeError:
        return None
    return end - start + 1


def is_large_range(count: int, threshold: int = LARGE_RANGE_THRESHOLD) -> bool:
    """Whether a range of `count` addresses should be confirmed by the operator before scanning."""
    return count > threshold
