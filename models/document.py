import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from utils.errors import InvalidTransitionError


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# Terminal states only go back to PROCESSING through an explicit re-process.
_ALLOWED_TRANSITIONS = {
    ProcessingStatus.PENDING: {ProcessingStatus.PROCESSING},
    ProcessingStatus.PROCESSING: {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED},
    ProcessingStatus.COMPLETED: {ProcessingStatus.PROCESSING},
    ProcessingStatus.FAILED: {ProcessingStatus.PROCESSING},
}


class Document(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    file_name: str
    file_path: str
    original_name: str
    content_type: str
    file_size: int
    owner_id: int
    extracted_text: Optional[str] = None
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    processing_error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def _move_to(self, status: ProcessingStatus) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.processing_status]:
            raise InvalidTransitionError(
                f"Cannot move document {self.id} from {self.processing_status.value} to {status.value}"
            )
        self.processing_status = status
        self.updated_at = datetime.utcnow()

    def start_processing(self) -> None:
        self._move_to(ProcessingStatus.PROCESSING)
        self.extracted_text = None
        self.processing_error = None

    def complete(self, text: str) -> None:
        self._move_to(ProcessingStatus.COMPLETED)
        self.extracted_text = text

    def fail(self, message: str) -> None:
        self._move_to(ProcessingStatus.FAILED)
        self.processing_error = message or "Text extraction failed"

    @property
    def has_extracted_text(self) -> bool:
        return bool(self.extracted_text and self.extracted_text.strip())


class DocumentResponse(BaseModel):
    id: str
    file_name: str
    original_name: str
    file_size: int
    content_type: str
    processing_status: ProcessingStatus
    processing_error: Optional[str] = None
    has_extracted_text: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=document.id,
            file_name=document.file_name,
            original_name=document.original_name,
            file_size=document.file_size,
            content_type=document.content_type,
            processing_status=document.processing_status,
            processing_error=document.processing_error,
            has_extracted_text=document.has_extracted_text,
            created_at=document.created_at,
            updated_at=document.updated_at,
        )
