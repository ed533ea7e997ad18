"""Optional free-text narrative from an external model, split into body and questions.

The split is a line-prefix heuristic: a line that starts with a digit, a
hyphen or a bullet glyph opens a new question. Text that does not follow
that shape is returned whole as narrative with no questions, and callers
keep their own generated questions.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from medreport.services import gemini
from medreport.services.questions import QUESTION_LIMIT

logger = logging.getLogger("medreport")

# "*" only counts as a bullet when followed by whitespace, so markdown bold is left alone
LIST_START = re.compile(r"^\s*(?:\d|-|[•·–—]|\*\s)")
LIST_MARKER = re.compile(r"^\s*(?:\d+\s*[.):]?|[-•·–—*])\s*")

DEFAULT_GUIDANCE = "Write for an adult with no medical training, at about an 8th-grade reading level."


@dataclass(frozen=True)
class NarrativeSplit:
    narrative: str
    questions: List[str] = field(default_factory=list)


def build_prompt(report_text: str, guidance: str = "") -> str:
    guidance = (guidance or "").strip() or DEFAULT_GUIDANCE
    return (
        "You help patients understand their lab reports. Summarize the results below "
        "in plain language in one or two short paragraphs. "
        f"{guidance} "
        "Do not diagnose, do not name diseases, and do not recommend treatment. "
        f"After the summary, list up to {QUESTION_LIMIT} numbered questions the patient "
        "could ask their doctor, one per line.\n\n"
        "Lab report:\n"
        f"{report_text.strip()}"
    )


def _chunks(text: str) -> List[List[str]]:
    chunks: List[List[str]] = [[]]
    for line in text.splitlines():
        if LIST_START.match(line) and (chunks[-1] or len(chunks) > 1):
            chunks.append([line])
        else:
            chunks[-1].append(line)
    return chunks


def split_narrative(text: str, limit: int = QUESTION_LIMIT) -> NarrativeSplit:
    """Split model output into a narrative body and at most `limit` questions."""
    chunks = _chunks(text or "")
    head, rest = chunks[0], chunks[1:]
    # Output that opens straight into a list has no narrative body
    if head and LIST_START.match(head[0]):
        head, rest = [], chunks
    if not rest:
        return NarrativeSplit(narrative=(text or "").strip(), questions=[])

    questions: List[str] = []
    for chunk in rest:
        first = LIST_MARKER.sub("", chunk[0], count=1)
        question = " ".join(part.strip() for part in [first, *chunk[1:]] if part.strip())
        if question:
            questions.append(question)
    return NarrativeSplit(narrative="\n".join(head).strip(), questions=questions[:limit])


def generate_narrative(
    report_text: str,
    guidance: str = "",
    completer: Optional[Callable[[str], str]] = None,
) -> Optional[NarrativeSplit]:
    """Ask the narrative service for a summary; None when it is unavailable.

    Any failure of the service is logged and reported as None so the
    structured result is never affected.
    """
    complete = completer or gemini.generate_text
    try:
        raw = complete(build_prompt(report_text, guidance))
    except Exception as exc:
        logger.warning({
            "function": "narrative",
            "stage": "unavailable",
            "error": exc.__class__.__name__,
            "reason": str(exc),
        })
        return None
    if not isinstance(raw, str) or not raw.strip():
        logger.warning({"function": "narrative", "stage": "empty"})
        return None
    split = split_narrative(raw)
    logger.info({
        "function": "narrative",
        "stage": "done",
        "narrative_chars": len(split.narrative),
        "questions": len(split.questions),
    })
    return split


__all__ = ["DEFAULT_GUIDANCE", "NarrativeSplit", "build_prompt", "split_narrative", "generate_narrative"]
