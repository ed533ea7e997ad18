"""Term catalog: canonical lab terms, their sections and plain-language templates."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

import yaml

from medreport.utils.exceptions import TableError

CONFIG_DIR = Path(__file__).parent.parent / "config"
TERMS_PATH = CONFIG_DIR / "terms.yaml"

_REQUIRED_FIELDS = ("section", "sectionTitle", "label", "simple")


@dataclass(frozen=True)
class CatalogEntry:
    canonical_name: str
    section: str
    section_title: str
    label: str
    explanation_template: str


class TermCatalog(Mapping[str, CatalogEntry]):
    """Read-only mapping of canonical name -> entry with case-insensitive lookup."""

    def __init__(self, entries: Mapping[str, CatalogEntry]):
        self._entries = MappingProxyType(dict(entries))
        index: Dict[str, CatalogEntry] = {}
        for name, entry in self._entries.items():
            key = name.strip().lower()
            if key in index:
                raise TableError(f"Catalog terms '{index[key].canonical_name}' and '{name}' differ only by case")
            index[key] = entry
        self._index = MappingProxyType(index)

    def __getitem__(self, name: str) -> CatalogEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, raw_term: str) -> Optional[CatalogEntry]:
        """Exact, case-insensitive match of a raw term against catalog keys."""
        return self._index.get((raw_term or "").strip().lower())


def _entry_from_row(name: str, row: Any) -> CatalogEntry:
    if not isinstance(row, dict):
        raise TableError(f"Catalog entry '{name}' must be a mapping")
    missing = [field for field in _REQUIRED_FIELDS if not str(row.get(field) or "").strip()]
    if missing:
        raise TableError(f"Catalog entry '{name}' is missing: {', '.join(missing)}")
    return CatalogEntry(
        canonical_name=name,
        section=str(row["section"]).strip(),
        section_title=str(row["sectionTitle"]).strip(),
        label=str(row["label"]).strip(),
        explanation_template=str(row["simple"]).strip(),
    )


def build_catalog(data: Mapping[str, Any]) -> TermCatalog:
    if not isinstance(data, Mapping):
        raise TableError("Term catalog must be a mapping of term name to entry")
    entries = {}
    for name, row in data.items():
        canonical = str(name).strip()
        if not canonical:
            raise TableError("Term catalog contains an empty term name")
        entries[canonical] = _entry_from_row(canonical, row)
    return TermCatalog(entries)


def load_catalog(path: Optional[os.PathLike] = None) -> TermCatalog:
    path = Path(path or os.getenv("MEDREPORT_TERMS_PATH") or TERMS_PATH)
    with open(path, "r", encoding="utf-8") as f:
        return build_catalog(yaml.safe_load(f) or {})


__all__ = ["CatalogEntry", "TermCatalog", "build_catalog", "load_catalog"]
