"""Plain-language explanations at a chosen reading register."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Pattern, Sequence, Tuple

from medreport.services.glossary import CatalogEntry
from medreport.services.reference_ranges import Status
from medreport.utils.exceptions import TableError

FALLBACK_EXPLANATION = "This item is noted in the report."
DEFAULT_LEVEL = "standard"


@dataclass(frozen=True)
class Register:
    """A reading level: ordered word swaps, one status sentence per status
    and the reading-level instruction given to the narrative model."""

    name: str
    substitutions: Tuple[Tuple[str, str], ...] = ()
    status_clauses: Mapping[Status, str] = field(default_factory=dict)
    guidance: str = ""
    _pattern: Optional[Pattern[str]] = field(init=False, repr=False, compare=False, default=None)
    _lookup: Mapping[str, str] = field(init=False, repr=False, compare=False, default_factory=dict)

    def __post_init__(self):
        # One alternation means each span is rewritten at most once and
        # replacement text is never rescanned; earlier pairs win on overlap.
        # Finds match whole words only, so "enzyme" leaves "enzymes" alone.
        pattern = None
        if self.substitutions:
            alternation = "|".join(re.escape(find) for find, _ in self.substitutions)
            pattern = re.compile(rf"(?<!\w)(?:{alternation})(?!\w)")
        object.__setattr__(self, "_pattern", pattern)
        object.__setattr__(self, "_lookup", dict(self.substitutions))

    def simplify(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(lambda m: self._lookup[m.group(0)], text)

    def status_clause(self, status: Status) -> str:
        return self.status_clauses.get(status, "")


def _join(*parts: str) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


def compose_explanation(
    entry: Optional[CatalogEntry],
    status: Status,
    register: Register,
    fallback: str = FALLBACK_EXPLANATION,
) -> str:
    if entry is None:
        return fallback
    return _join(register.simplify(entry.explanation_template), register.status_clause(status))


def _register_from_row(name: str, row: Any) -> Register:
    if not isinstance(row, dict):
        raise TableError(f"Register '{name}' must be a mapping")
    pairs = []
    seen = set()
    for pair in row.get("substitutions") or []:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2 or not str(pair[0]):
            raise TableError(f"Register '{name}' has a malformed substitution: {pair!r}")
        find = str(pair[0])
        if find in seen:
            raise TableError(f"Register '{name}' has a duplicate substitution for '{find}'")
        seen.add(find)
        pairs.append((find, str(pair[1])))
    clauses: Dict[Status, str] = {}
    for key, text in (row.get("status") or {}).items():
        try:
            clauses[Status(key)] = str(text or "")
        except ValueError:
            raise TableError(f"Register '{name}' has an unknown status '{key}'") from None
    return Register(
        name=name,
        substitutions=tuple(pairs),
        status_clauses=MappingProxyType(clauses),
        guidance=" ".join(str(row.get("guidance") or "").split()),
    )


def build_registers(data: Mapping[str, Any]) -> Mapping[str, Register]:
    if not isinstance(data, Mapping) or not data:
        raise TableError("At least one reading register must be configured")
    registers = {str(name): _register_from_row(str(name), row) for name, row in data.items()}
    if DEFAULT_LEVEL not in registers:
        raise TableError(f"The '{DEFAULT_LEVEL}' register is required")
    return MappingProxyType(registers)


__all__ = [
    "FALLBACK_EXPLANATION",
    "DEFAULT_LEVEL",
    "Register",
    "compose_explanation",
    "build_registers",
]
