"""Bounded balanced-brace scanner.

Finds the first top-level ``{...}`` span in a buffer without parsing it.
The scan is aware of JSON strings and escapes so braces inside string
values do not count, and it gives up past a fixed nesting depth.
"""

from dataclasses import dataclass
from enum import Enum

MAX_NESTING_DEPTH = 64


class ScanStatus(str, Enum):
    """Outcome of a scan."""

    NONE = "none"            # No opening brace in the buffer
    PARTIAL = "partial"      # Opening brace found, span not closed yet
    COMPLETE = "complete"    # Balanced span found
    TOO_DEEP = "too_deep"    # Nesting exceeded the bound; not decodable


@dataclass(frozen=True)
class ScanResult:
    """Result of scanning a buffer.

    ``start`` is the index of the opening brace (or -1), ``end`` the index
    one past the closing brace for COMPLETE spans (or -1).
    """

    status: ScanStatus
    start: int = -1
    end: int = -1


def scan_balanced(buffer: str, start: int = 0, max_depth: int = MAX_NESTING_DEPTH) -> ScanResult:
    """Scan for the first balanced top-level brace span.

    Args:
        buffer: Text to scan
        start: Index to start scanning from
        max_depth: Maximum nesting depth before the span is rejected

    Returns:
        ScanResult describing the first span
    """
    opening = buffer.find("{", start)
    if opening < 0:
        return ScanResult(ScanStatus.NONE)

    depth = 0
    in_string = False
    escaped = False

    for index in range(opening, len(buffer)):
        char = buffer[index]

        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
            if depth > max_depth:
                return ScanResult(ScanStatus.TOO_DEEP, opening, index + 1)
        elif char == "}":
            depth -= 1
            if depth == 0:
                return ScanResult(ScanStatus.COMPLETE, opening, index + 1)

    return ScanResult(ScanStatus.PARTIAL, opening)
