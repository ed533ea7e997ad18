"""Lab report text parsing helpers."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

# One measurement per line: "<term>: <value> <unit>". Only the first colon
# separates the term; value and unit are both optional.
LINE_PATTERN = re.compile(
    r"""^
    (?P<term>[^:]+)
    :\s*
    (?P<value>-?\d+(?:\.\d+)?)?
    \s*
    (?P<unit>[A-Za-z0-9^/%.\-]*)
    """,
    re.VERBOSE,
)
LINE_BREAK = re.compile(r"\r?\n")


@dataclass(frozen=True)
class ParsedLine:
    raw_term: str
    value: Optional[float] = None
    unit: Optional[str] = None


def _to_number(token: Optional[str]) -> Optional[float]:
    if not token:
        return None
    try:
        number = float(token)
    except ValueError:
        return None
    # Very long digit runs overflow to inf; treat them like a missing value
    return number if math.isfinite(number) else None


def iter_lines(text: str) -> Iterator[str]:
    for raw in LINE_BREAK.split(text or ""):
        line = raw.strip()
        if line:
            yield line


def parse_line(line: str) -> Optional[ParsedLine]:
    match = LINE_PATTERN.match(line.strip())
    if not match:
        return None
    term = match.group("term").strip()
    if not term:
        return None
    unit = (match.group("unit") or "").strip() or None
    return ParsedLine(raw_term=term, value=_to_number(match.group("value")), unit=unit)


def parse_lines(text: str) -> List[ParsedLine]:
    """Extract (term, value, unit) triples from free-form report text.

    Lines without a colon, or with nothing before it, are skipped silently.
    The term keeps its original casing; matching against the catalog is
    case-insensitive and happens later.
    """
    results: List[ParsedLine] = []
    for line in iter_lines(text):
        parsed = parse_line(line)
        if parsed is not None:
            results.append(parsed)
    return results


__all__ = ["ParsedLine", "parse_line", "parse_lines", "iter_lines"]
