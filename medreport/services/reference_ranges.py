"""Typical reference intervals and range classification for catalog terms."""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Tuple

import yaml

from medreport.utils.exceptions import TableError

RANGES_PATH = Path(__file__).parent.parent / "config" / "ranges.yaml"

Interval = Tuple[float, float]


class Status(str, Enum):
    LOW = "low"
    HIGH = "high"
    IN_RANGE = "in-range"
    UNKNOWN = "unknown"

    @property
    def flagged(self) -> bool:
        return self in (Status.LOW, Status.HIGH)


@dataclass(frozen=True)
class RangeEntry:
    canonical_name: str
    unit: Optional[str] = None
    typical: Optional[Interval] = None


@dataclass(frozen=True)
class RangeResult:
    status: Status
    typical: Optional[Interval] = None
    unit: Optional[str] = None


class RangeTable(Mapping[str, RangeEntry]):
    """Read-only mapping of canonical name -> range entry."""

    def __init__(self, entries: Mapping[str, RangeEntry]):
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, name: str) -> RangeEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def classify(self, term: str, value: Optional[float]) -> RangeResult:
        return compare_to_range(self._entries.get(term), value)


def compare_to_range(entry: Optional[RangeEntry], value: Optional[float]) -> RangeResult:
    """Place a value relative to the entry's typical interval.

    Both bounds are inclusive and compared as-is, with no rounding.
    """
    if entry is None:
        return RangeResult(status=Status.UNKNOWN)
    if entry.typical is None or value is None:
        return RangeResult(status=Status.UNKNOWN, unit=entry.unit)
    low, high = entry.typical
    if value < low:
        status = Status.LOW
    elif value > high:
        status = Status.HIGH
    else:
        status = Status.IN_RANGE
    return RangeResult(status=status, typical=entry.typical, unit=entry.unit)


def _as_bound(name: str, raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise TableError(f"Range bound for '{name}' must be a number, got {raw!r}")
    return float(raw)


def _entry_from_row(name: str, row: Any) -> RangeEntry:
    if not isinstance(row, dict):
        raise TableError(f"Range entry '{name}' must be a mapping")
    unit = str(row.get("unit") or "").strip() or None
    typical = row.get("typical")
    if typical is None:
        return RangeEntry(canonical_name=name, unit=unit)
    if not isinstance(typical, (list, tuple)) or len(typical) != 2:
        raise TableError(f"Typical interval for '{name}' must be [low, high]")
    low, high = _as_bound(name, typical[0]), _as_bound(name, typical[1])
    if low > high:
        raise TableError(f"Typical interval for '{name}' has low > high ({low} > {high})")
    return RangeEntry(canonical_name=name, unit=unit, typical=(low, high))


def build_ranges(data: Mapping[str, Any]) -> RangeTable:
    if not isinstance(data, Mapping):
        raise TableError("Reference ranges must be a mapping of term name to entry")
    return RangeTable({str(name).strip(): _entry_from_row(str(name).strip(), row) for name, row in data.items()})


def load_ranges(path: Optional[os.PathLike] = None) -> RangeTable:
    path = Path(path or os.getenv("MEDREPORT_RANGES_PATH") or RANGES_PATH)
    with open(path, "r", encoding="utf-8") as f:
        return build_ranges(yaml.safe_load(f) or {})


__all__ = [
    "Status",
    "RangeEntry",
    "RangeResult",
    "RangeTable",
    "compare_to_range",
    "build_ranges",
    "load_ranges",
]
