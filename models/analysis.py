import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from utils.errors import InvalidTransitionError


class AnalysisType(str, Enum):
    SUMMARY = "SUMMARY"
    QUESTION_ANSWER = "QUESTION_ANSWER"
    TEMPLATE_GENERATION = "TEMPLATE_GENERATION"
    CLAUSE_EXTRACTION = "CLAUSE_EXTRACTION"


class AnalysisStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class AnalysisRecord(BaseModel):
    """
    One AI-derived result. COMPLETED implies a non-empty result and no error;
    FAILED implies a non-empty error message. Template generations carry no document_id.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    analysis_type: AnalysisType
    owner_id: int
    document_id: Optional[str] = None
    prompt: Optional[str] = None
    question: Optional[str] = None
    result: str = ""
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    status: AnalysisStatus = AnalysisStatus.PENDING
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_finished(self) -> bool:
        return self.status in (AnalysisStatus.COMPLETED, AnalysisStatus.FAILED)

    def start_processing(self) -> None:
        if self.status != AnalysisStatus.PENDING:
            raise InvalidTransitionError(f"Analysis {self.id} is {self.status.value}, expected PENDING")
        self.status = AnalysisStatus.PROCESSING

    def complete(self, result: str) -> None:
        if not result or not result.strip():
            raise ValueError("A completed analysis needs a non-empty result")
        self.result = result
        self.error_message = None
        self.status = AnalysisStatus.COMPLETED

    def fail(self, message: str) -> None:
        self.error_message = message or "Analysis failed"
        self.status = AnalysisStatus.FAILED


class AnalysisResponse(BaseModel):
    id: str
    analysis_type: AnalysisType
    document_id: Optional[str] = None
    result: str
    prompt: Optional[str] = None
    question: Optional[str] = None
    confidence_score: Optional[float] = None
    status: AnalysisStatus
    error_message: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: AnalysisRecord) -> "AnalysisResponse":
        return cls(**record.model_dump(exclude={"owner_id"}))


class QuestionRequest(BaseModel):
    question: str = Field(..., min_length=3)


class TemplateRequest(BaseModel):
    template_type: str = Field(..., min_length=1)
    requirements: str = ""
