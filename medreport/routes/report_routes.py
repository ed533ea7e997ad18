# medreport/routes/report_routes.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from medreport.middleware.rate_limit import SIMPLIFY_RATE_LIMIT, limiter
from medreport.schemas.report import HealthOut, SimplifyRequest, SimplifyResponse, TermOut
from medreport.services.report_pipeline import ReportInterpreter, get_interpreter
from medreport.utils.app import _env_bool
from medreport.utils.exceptions import ReportValidationError


router = APIRouter(prefix="/api", tags=["reports"])
logger = logging.getLogger("medreport")


def narrative_enabled() -> bool:
    return _env_bool("NARRATIVE_ENABLED", True)


@router.post(
    "/simplify",
    response_model=SimplifyResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
@limiter.limit(SIMPLIFY_RATE_LIMIT)
def simplify_report(
    request: Request,
    payload: SimplifyRequest,
    interpreter: ReportInterpreter = Depends(get_interpreter),
):
    """Interpret report text into sections, explanations and follow-up questions."""
    try:
        result = interpreter.interpret(
            payload.text,
            payload.level,
            use_narrative=payload.use_narrative and narrative_enabled(),
        )
    except ReportValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return SimplifyResponse.model_validate(result.to_dict())


@router.get("/terms", response_model=List[TermOut], response_model_exclude_none=True)
def list_terms(interpreter: ReportInterpreter = Depends(get_interpreter)):
    """Terms the interpreter recognises, with their typical ranges when known."""
    terms = []
    for name, entry in interpreter.catalog.items():
        reference = interpreter.ranges.get(name)
        terms.append(TermOut(
            term=name,
            label=entry.label,
            section=entry.section,
            section_title=entry.section_title,
            unit=reference.unit if reference else None,
            typical=reference.typical if reference else None,
        ))
    return terms


@router.get("/health", response_model=HealthOut)
def health(interpreter: ReportInterpreter = Depends(get_interpreter)):
    return HealthOut(terms=len(interpreter.catalog))
