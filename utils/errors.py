from enum import Enum
from typing import Optional


class AppError(Exception):
	"""Base exception for application errors."""

	def __init__(self, message: str, original_error: Optional[Exception] = None):
		super().__init__(message)
		self.message = message
		self.original_error = original_error


class RejectionKind(str, Enum):
	EMPTY_FILE = "EMPTY_FILE"
	FILE_TOO_LARGE = "FILE_TOO_LARGE"
	UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"


class UploadValidationError(AppError):
	"""Raised when an upload is rejected before any record is created."""

	def __init__(self, kind: RejectionKind, message: str):
		super().__init__(message)
		self.kind = kind


class ExtractionError(AppError):
	"""Raised when text cannot be extracted from a stored file."""


class GatewayError(AppError):
	"""Raised when the AI endpoint call fails or returns an unusable reply."""


class DocumentNotReadyError(AppError):
	"""Raised when an analysis is requested on a document without extracted text."""


class InvalidTransitionError(AppError):
	pass
