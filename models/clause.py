import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ImportanceLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: str) -> "ImportanceLevel":
        """Case-insensitive lookup; raises ValueError for unknown labels."""
        return cls(value.strip().upper())


_RANKS = {
    ImportanceLevel.LOW: 0,
    ImportanceLevel.MEDIUM: 1,
    ImportanceLevel.HIGH: 2,
    ImportanceLevel.CRITICAL: 3,
}


class ClauseRecord(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    document_id: str
    analysis_id: Optional[str] = None
    clause_type: str
    clause_text: str
    start_position: Optional[int] = None
    end_position: Optional[int] = None
    plain_english_explanation: str = ""
    importance_level: ImportanceLevel = ImportanceLevel.MEDIUM
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ClauseResponse(BaseModel):
    id: str
    clause_type: str
    clause_text: str
    start_position: Optional[int] = None
    end_position: Optional[int] = None
    plain_english_explanation: str
    importance_level: ImportanceLevel
    confidence_score: Optional[float] = None
    created_at: datetime

    @classmethod
    def from_record(cls, clause: ClauseRecord) -> "ClauseResponse":
        return cls(**clause.model_dump(exclude={"document_id", "analysis_id"}))
