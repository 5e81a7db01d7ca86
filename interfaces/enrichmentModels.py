from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field


class EnrichmentField(str, Enum):
    SUMMARY = "summary"
    EXPLANATIONS = "explanations"
    RISK_SCORE = "risk_score"


class FieldState(str, Enum):
    NOT_REQUESTED = "not_requested"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ParseStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    COUNT_MISMATCH = "count_mismatch"
    INVALID_FORMAT = "invalid_format"


class Prompt(BaseModel):
    system: Optional[str] = None
    user: str


# Tagged parse results, one per prompt shape
class SummaryParseResult(BaseModel):
    status: ParseStatus
    summary: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ParseStatus.OK


class ExplanationsParseResult(BaseModel):
    status: ParseStatus
    explanations: List[str] = Field(default_factory=list)
    expected_count: int = 0
    actual_count: int = 0

    @property
    def ok(self) -> bool:
        return self.status == ParseStatus.OK


class RiskScoreParseResult(BaseModel):
    status: ParseStatus
    score: Optional[int] = None
    raw: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ParseStatus.OK


class EnrichmentEvent(BaseModel):
    record_id: int
    field: EnrichmentField
    state: FieldState
    error: Optional[str] = None


class EnrichmentStatusResponse(BaseModel):
    record_id: int
    summary: FieldState
    explanations: FieldState
    risk_score: FieldState
