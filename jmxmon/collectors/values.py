"""Remote attribute values and attribute-path traversal."""

import json
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from ..utils.errors import ValueParseFailure
from ..utils.metrics import format_two_decimals


_INTEGER_PATTERN = re.compile(r'^[+-]?\d+$')


@dataclass(frozen=True)
class Scalar:
    """A leaf value: number, string, boolean or null."""

    value: Any


@dataclass(frozen=True)
class Composite:
    """A nested value whose items are addressed by name."""

    items: Mapping[str, Any]


RemoteValue = Union[Scalar, Composite]


def wrap(raw: Any) -> RemoteValue:
    """Tag a decoded remote value as composite or scalar."""
    if isinstance(raw, Mapping):
        return Composite(raw)
    return Scalar(raw)


def unwrap(value: RemoteValue) -> Any:
    if isinstance(value, Composite):
        return dict(value.items)
    return value.value


def resolve_path(value: RemoteValue, segments: Sequence[str]) -> RemoteValue:
    """
    Walk nested composite values one path segment at a time.

    Args:
        value: Value the first path segment was read into
        segments: Remaining segments, e.g. ["used"] for HeapMemoryUsage.used

    Returns:
        RemoteValue: Value at the end of the path

    Raises:
        ValueParseFailure: If a segment does not resolve
    """
    walked = []
    for segment in segments:
        if not isinstance(value, Composite):
            raise ValueParseFailure(
                f"Cannot resolve '{segment}' after '{'.'.join(walked) or '<root>'}': "
                "value is not composite"
            )
        if segment not in value.items:
            raise ValueParseFailure(
                f"No item '{segment}' in composite value "
                f"(available: {', '.join(sorted(value.items))})"
            )
        value = wrap(value.items[segment])
        walked.append(segment)
    return value


def parse_int(raw: Any) -> Optional[int]:
    """
    Interpret a value as an integer the way its string form reads.

    Floating values such as 1.0 are not integers; booleans never are.

    Returns:
        Optional[int]: Parsed integer, None if the value is not integral
    """
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and _INTEGER_PATTERN.match(raw.strip()):
        return int(raw.strip())
    return None


def as_int(raw: Any, what: str = "value") -> int:
    """Integer value of a counter, raising ValueParseFailure otherwise."""
    number = parse_int(raw)
    if number is None:
        raise ValueParseFailure(f"Expected integer {what}, got {raw!r}")
    return number


def format_plain(raw: Any) -> str:
    """Format a value read without rate conversion."""
    if raw is None:
        return "null"
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, float):
        return format_two_decimals(raw)
    if isinstance(raw, (Mapping, list)):
        return json.dumps(raw, default=str)
    return str(raw)
