"""End-to-end lab report interpretation."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml

from medreport.services import gemini
from medreport.services.explanations import (
    DEFAULT_LEVEL,
    FALLBACK_EXPLANATION,
    Register,
    build_registers,
    compose_explanation,
)
from medreport.services.glossary import TermCatalog, load_catalog
from medreport.services.lab_parser import ParsedLine, parse_lines
from medreport.services.narrative import generate_narrative
from medreport.services.questions import QuestionPolicy, build_question_policy, generate_questions
from medreport.services.reference_ranges import Interval, RangeTable, Status, load_ranges
from medreport.utils.exceptions import ReportValidationError, TableError

logger = logging.getLogger("medreport")

INTERPRETATION_PATH = Path(__file__).parent.parent / "config" / "interpretation.yaml"

ON_UNMATCHED_DROP = "drop"
ON_UNMATCHED_BUCKET = "bucket-as-other"
UNMATCHED_POLICIES = (ON_UNMATCHED_DROP, ON_UNMATCHED_BUCKET)


@dataclass(frozen=True)
class ResolvedItem:
    term: str
    label: str
    section: str
    section_title: str
    status: Status
    explanation: str
    value: Optional[float] = None
    unit: Optional[str] = None
    typical: Optional[Interval] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "term": self.term,
            "label": self.label,
            "value": self.value,
            "unit": self.unit,
            "typical": list(self.typical) if self.typical else None,
            "status": self.status.value,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class Section:
    section: str
    section_title: str
    items: Tuple[ResolvedItem, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section": self.section,
            "section_title": self.section_title,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class InterpretationResult:
    sections: Tuple[Section, ...]
    questions: Tuple[str, ...]
    disclaimer: str
    narrative_used: bool = False
    narrative: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sections": [s.to_dict() for s in self.sections],
            "questions": list(self.questions),
            "disclaimer": self.disclaimer,
            "narrative_used": self.narrative_used,
            "narrative": self.narrative,
        }


@dataclass(frozen=True)
class InterpretationSettings:
    disclaimer: str
    registers: Mapping[str, Register]
    questions: QuestionPolicy
    fallback_explanation: str = FALLBACK_EXPLANATION
    unmatched_section: Tuple[str, str] = ("Other", "Other Findings")


def build_settings(data: Mapping[str, Any]) -> InterpretationSettings:
    if not isinstance(data, Mapping):
        raise TableError("Interpretation settings must be a mapping")
    disclaimer = " ".join(str(data.get("disclaimer") or "").split())
    if not disclaimer:
        raise TableError("A disclaimer is required")
    other = data.get("unmatched_section") or {}
    return InterpretationSettings(
        disclaimer=disclaimer,
        registers=build_registers(data.get("registers") or {}),
        questions=build_question_policy(data.get("questions") or {}),
        fallback_explanation=str(data.get("fallback_explanation") or FALLBACK_EXPLANATION),
        unmatched_section=(
            str(other.get("section") or "Other"),
            str(other.get("sectionTitle") or "Other Findings"),
        ),
    )


def load_settings(path: Optional[os.PathLike] = None) -> InterpretationSettings:
    path = Path(path or os.getenv("MEDREPORT_INTERPRETATION_PATH") or INTERPRETATION_PATH)
    with open(path, "r", encoding="utf-8") as f:
        return build_settings(yaml.safe_load(f) or {})


def aggregate_sections(items: Iterable[ResolvedItem]) -> Tuple[Section, ...]:
    """Group items by section id in order of first appearance."""
    grouped: Dict[str, Tuple[str, List[ResolvedItem]]] = {}
    for item in items:
        grouped.setdefault(item.section, (item.section_title, []))[1].append(item)
    return tuple(
        Section(section=section, section_title=title, items=tuple(members))
        for section, (title, members) in grouped.items()
    )


class ReportInterpreter:
    """Turns raw report text into sections, explanations and questions.

    Catalog, ranges and settings are supplied at construction and never
    modified, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        catalog: TermCatalog,
        ranges: RangeTable,
        settings: InterpretationSettings,
        on_unmatched: str = ON_UNMATCHED_DROP,
    ):
        if on_unmatched not in UNMATCHED_POLICIES:
            raise ValueError(f"on_unmatched must be one of {UNMATCHED_POLICIES}, got {on_unmatched!r}")
        self.catalog = catalog
        self.ranges = ranges
        self.settings = settings
        self.on_unmatched = on_unmatched

    @property
    def levels(self) -> Tuple[str, ...]:
        return tuple(self.settings.registers)

    def validate(self, text: Optional[str], level: Optional[str]) -> Tuple[str, Register]:
        if not isinstance(text, str) or not text.strip():
            raise ReportValidationError("Report text is required")
        level = level or DEFAULT_LEVEL
        register = self.settings.registers.get(level)
        if register is None:
            raise ReportValidationError(f"Unknown level '{level}'; expected one of: {', '.join(self.levels)}")
        return text, register

    def resolve(self, parsed: ParsedLine, register: Register) -> Optional[ResolvedItem]:
        entry = self.catalog.resolve(parsed.raw_term)
        if entry is None:
            if self.on_unmatched == ON_UNMATCHED_DROP:
                return None
            term, label = parsed.raw_term, parsed.raw_term
            section, section_title = self.settings.unmatched_section
        else:
            term, label = entry.canonical_name, entry.label
            section, section_title = entry.section, entry.section_title

        comparison = self.ranges.classify(term, parsed.value)
        return ResolvedItem(
            term=term,
            label=label,
            section=section,
            section_title=section_title,
            status=comparison.status,
            explanation=compose_explanation(
                entry, comparison.status, register, fallback=self.settings.fallback_explanation
            ),
            value=parsed.value,
            unit=comparison.unit or parsed.unit,
            typical=comparison.typical,
        )

    def interpret(
        self,
        text: str,
        level: Optional[str] = DEFAULT_LEVEL,
        use_narrative: bool = False,
        completer: Optional[Callable[[str], str]] = None,
    ) -> InterpretationResult:
        text, register = self.validate(text, level)
        parsed = parse_lines(text)
        items = [item for item in (self.resolve(p, register) for p in parsed) if item is not None]
        sections = aggregate_sections(items)
        questions = generate_questions(sections, self.settings.questions)

        logger.info({
            "function": "interpret",
            "level": register.name,
            "parsed": len(parsed),
            "resolved": len(items),
            "dropped": len(parsed) - len(items),
            "flagged": sum(1 for i in items if i.status.flagged),
            "sections": len(sections),
        })

        narrative_used, narrative = False, None
        if use_narrative:
            if completer is None and not gemini.is_configured():
                logger.info({"function": "interpret", "stage": "narrative_skipped", "reason": "not configured"})
            else:
                split = generate_narrative(text, register.guidance, completer=completer)
                if split is not None and (split.narrative or split.questions):
                    narrative_used = True
                    narrative = split.narrative or None
                    if split.questions:
                        questions = split.questions[: self.settings.questions.limit]

        return InterpretationResult(
            sections=sections,
            questions=tuple(questions),
            disclaimer=self.settings.disclaimer,
            narrative_used=narrative_used,
            narrative=narrative,
        )


@lru_cache(maxsize=1)
def get_interpreter() -> ReportInterpreter:
    """Process-wide interpreter built from the packaged (or overridden) tables."""
    policy = (os.getenv("ON_UNMATCHED") or ON_UNMATCHED_DROP).strip().lower()
    return ReportInterpreter(load_catalog(), load_ranges(), load_settings(), on_unmatched=policy)


def process_text(text: str, level: Optional[str] = DEFAULT_LEVEL, use_narrative: bool = False) -> Dict[str, Any]:
    return get_interpreter().interpret(text, level, use_narrative=use_narrative).to_dict()


__all__ = [
    "ON_UNMATCHED_DROP",
    "ON_UNMATCHED_BUCKET",
    "ResolvedItem",
    "Section",
    "InterpretationResult",
    "InterpretationSettings",
    "ReportInterpreter",
    "aggregate_sections",
    "build_settings",
    "load_settings",
    "get_interpreter",
    "process_text",
]
