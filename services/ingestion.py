import os
import re
import uuid
import logging
from datetime import datetime, timedelta
from pathlib import Path, PureWindowsPath
from typing import Callable, Optional

from models.document import Document, ProcessingStatus
from services.extractor import DOCX, MSWORD, PDF, extract_text
from utils import store
from utils.errors import ExtractionError, RejectionKind, UploadValidationError

logger = logging.getLogger("services.ingestion")

MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024
ALLOWED_CONTENT_TYPES = {PDF, MSWORD, DOCX}

_EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def _upload_dir() -> Path:
	return Path(os.getenv("UPLOAD_DIR", "uploads/documents"))


def _stale_after() -> timedelta:
	return timedelta(seconds=int(os.getenv("STALE_PROCESSING_SECONDS", "900")))


def _file_extension(filename: Optional[str]) -> str:
	if not filename:
		return ""
	# Client file names may carry either separator
	suffix = PureWindowsPath(filename).suffix
	return suffix if _EXTENSION_PATTERN.match(suffix) else ""


def is_stale(document: Document, now: Optional[datetime] = None) -> bool:
	"""True when a PROCESSING document has not moved for longer than STALE_PROCESSING_SECONDS."""
	if document.processing_status != ProcessingStatus.PROCESSING:
		return False
	now = now or datetime.utcnow()
	return now - document.updated_at > _stale_after()


class IngestionCoordinator:
	"""Validates uploads, stores their bytes and drives text extraction."""

	def __init__(
		self,
		extractor: Optional[Callable[[bytes, str], str]] = None,
		max_size: Optional[int] = None,
	):
		self.extractor = extractor or extract_text
		self.max_size = max_size if max_size is not None else MAX_FILE_SIZE_BYTES

	def validate(self, file_bytes: bytes, content_type: Optional[str]) -> None:
		if not file_bytes:
			raise UploadValidationError(RejectionKind.EMPTY_FILE, "File is empty")
		if len(file_bytes) > self.max_size:
			limit_mb = self.max_size // (1024 * 1024)
			raise UploadValidationError(
				RejectionKind.FILE_TOO_LARGE, f"File too large. Max {limit_mb}MB allowed"
			)
		if content_type not in ALLOWED_CONTENT_TYPES:
			raise UploadValidationError(
				RejectionKind.UNSUPPORTED_TYPE,
				"Invalid file type. Only PDF and Word documents are allowed.",
			)

	def accept(
		self,
		file_bytes: bytes,
		content_type: Optional[str],
		original_name: str,
		size_bytes: Optional[int],
		owner_id: int,
	) -> Document:
		"""Validate, write the bytes to disk and persist a PENDING document.

		The recorded size is the length of the payload; a differing declared size is only logged.
		"""
		size = len(file_bytes or b"")
		if size_bytes is not None and size_bytes != size:
			logger.warning(
				"upload_size_mismatch",
				extra={"file_name": original_name, "declared_bytes": size_bytes, "size_bytes": size},
			)
		try:
			self.validate(file_bytes, content_type)
		except UploadValidationError as e:
			logger.warning(
				"upload_rejected",
				extra={"file_name": original_name, "mime": content_type, "size_bytes": size, "kind": e.kind.value},
			)
			raise

		upload_dir = _upload_dir()
		upload_dir.mkdir(parents=True, exist_ok=True)
		storage_name = uuid.uuid4().hex + _file_extension(original_name)
		file_path = upload_dir / storage_name
		with open(file_path, "wb") as f:
			f.write(file_bytes)

		document = Document(
			file_name=storage_name,
			file_path=str(file_path),
			original_name=original_name,
			content_type=content_type,
			file_size=size,
			owner_id=owner_id,
		)
		store.documents.save(document)
		logger.info(
			"upload_accepted",
			extra={"doc_id": document.id, "user_id": owner_id, "file_name": original_name, "mime": content_type, "size_bytes": size},
		)
		return document

	def _run_extraction(self, document: Document, file_bytes: Optional[bytes] = None) -> Document:
		if is_stale(document):
			# The worker that owned this run is gone
			stale_seconds = int((datetime.utcnow() - document.updated_at).total_seconds())
			document.fail("Extraction was interrupted")
			logger.warning("stale_processing_taken_over", extra={"doc_id": document.id, "stale_seconds": stale_seconds})
		document.start_processing()
		store.documents.save(document)
		try:
			if file_bytes is None:
				file_bytes = Path(document.file_path).read_bytes()
			text = self.extractor(file_bytes, document.content_type)
			document.complete(text)
			logger.info("extraction_completed", extra={"doc_id": document.id, "chars": len(text)})
		except ExtractionError as e:
			document.fail(e.message)
			logger.error("extraction_failed", extra={"doc_id": document.id, "error": e.message})
		except OSError as e:
			document.fail(f"Stored file could not be read: {e}")
			logger.error("extraction_failed", extra={"doc_id": document.id, "error": str(e)}, exc_info=True)
		return store.documents.save(document)

	def extract(self, document_id: str) -> Optional[Document]:
		"""Run extraction for an accepted document; returns None if it no longer exists."""
		document = store.documents.get(document_id)
		if document is None:
			logger.warning("extraction_document_missing", extra={"doc_id": document_id})
			return None
		if document.processing_status == ProcessingStatus.PROCESSING and not is_stale(document):
			logger.warning("extraction_already_running", extra={"doc_id": document_id})
			return document
		return self._run_extraction(document)

	def process(
		self,
		file_bytes: bytes,
		content_type: Optional[str],
		original_name: str,
		size_bytes: Optional[int],
		owner_id: int,
	) -> Document:
		document = self.accept(file_bytes, content_type, original_name, size_bytes, owner_id)
		return self._run_extraction(document, file_bytes)

	def reprocess(self, document: Document) -> Document:
		logger.info("reprocess_requested", extra={"doc_id": document.id})
		return self._run_extraction(document)

	def delete_document(self, document: Document) -> None:
		try:
			Path(document.file_path).unlink()
			logger.info("stored_file_deleted", extra={"doc_id": document.id})
		except FileNotFoundError:
			pass
		store.delete_document_cascade(document)
