"""Follow-up questions a patient could bring to their clinician.

Questions are phrased as requests to discuss results, never as findings.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple

from medreport.utils.exceptions import TableError

QUESTION_LIMIT = 5
DEFAULT_FLAGGED_TEMPLATE = "Could we discuss my {label} result and whether a follow-up test is useful?"


@dataclass(frozen=True)
class QuestionPolicy:
    limit: int = QUESTION_LIMIT
    flagged_template: str = DEFAULT_FLAGGED_TEMPLATE
    generic: Tuple[str, ...] = ()


def generate_questions(sections: Iterable[Any], policy: QuestionPolicy) -> List[str]:
    questions: List[str] = []
    flagged = next(
        (item for section in sections for item in section.items if item.status.flagged),
        None,
    )
    if flagged is not None:
        questions.append(policy.flagged_template.format(label=flagged.label))
    questions.extend(policy.generic)
    return questions[: policy.limit]


def build_question_policy(data: Mapping[str, Any]) -> QuestionPolicy:
    data = data or {}
    try:
        limit = int(data.get("limit", QUESTION_LIMIT))
    except (TypeError, ValueError):
        raise TableError(f"Question limit must be an integer, got {data.get('limit')!r}") from None
    if not 0 < limit <= QUESTION_LIMIT:
        raise TableError(f"Question limit must be between 1 and {QUESTION_LIMIT}")
    template = str(data.get("flagged") or DEFAULT_FLAGGED_TEMPLATE)
    try:
        template.format(label="")
    except (KeyError, IndexError, ValueError) as exc:
        raise TableError(f"Flagged question template is invalid: {exc}") from exc
    generic = tuple(str(q).strip() for q in (data.get("generic") or []) if str(q).strip())
    return QuestionPolicy(limit=limit, flagged_template=template, generic=generic)


__all__ = ["QUESTION_LIMIT", "QuestionPolicy", "generate_questions", "build_question_policy"]
