# medreport/schemas/report.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional, Tuple

from medreport.utils.app import _env_int

MAX_TEXT_CHARS = _env_int("MAX_TEXT_CHARS", 20000)

StatusLiteral = Literal["low", "high", "in-range", "unknown"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SimplifyRequest(_CamelModel):
    """Request model for the report interpretation endpoint."""

    text: str = Field(..., min_length=1, max_length=MAX_TEXT_CHARS, description="Line-oriented lab report text.")
    level: str = Field("standard", description="Reading register, e.g. 'standard' or 'child'.")
    use_narrative: bool = Field(False, description="Also request a free-text narrative from the language model.")


class ReportItemOut(_CamelModel):
    term: str
    label: str
    value: Optional[float] = None
    unit: Optional[str] = None
    typical: Optional[Tuple[float, float]] = None
    status: StatusLiteral
    explanation: str


class ReportSectionOut(_CamelModel):
    section: str
    section_title: str
    items: List[ReportItemOut]


class SimplifyResponse(_CamelModel):
    """Response model for the report interpretation endpoint."""

    sections: List[ReportSectionOut] = Field(..., description="Recognised results grouped by clinical section.")
    questions: List[str] = Field(..., max_length=5, description="Questions the patient could ask a clinician.")
    disclaimer: str
    narrative_used: bool = False
    narrative: Optional[str] = None


class TermOut(_CamelModel):
    term: str
    label: str
    section: str
    section_title: str
    unit: Optional[str] = None
    typical: Optional[Tuple[float, float]] = None


class HealthOut(BaseModel):
    status: str = "ok"
    terms: int
