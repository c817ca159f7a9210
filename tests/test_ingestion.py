import io
import os
import pytest
from datetime import datetime, timedelta

from conftest import CONTRACT_TEXT, DOCX, PDF
from models.document import ProcessingStatus
from services.ingestion import IngestionCoordinator, MAX_FILE_SIZE_BYTES, is_stale
from utils import store
from utils.errors import ExtractionError, InvalidTransitionError, RejectionKind, UploadValidationError


def _failing_extractor(data, content_type):
	raise ExtractionError("corrupt file")


@pytest.mark.parametrize("content_type", [PDF, "application/msword", DOCX])
def test_process_completes_for_supported_types(content_type):
	coordinator = IngestionCoordinator(extractor=lambda data, ct: CONTRACT_TEXT)
	document = coordinator.process(b"%PDF-1.4 data", content_type, "contract.pdf", None, owner_id=7)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.extracted_text == CONTRACT_TEXT
	assert document.processing_error is None
	assert document.owner_id == 7
	# Persisted state matches the returned one
	assert store.documents.get(document.id).processing_status == ProcessingStatus.COMPLETED


def test_process_records_extraction_failure():
	coordinator = IngestionCoordinator(extractor=_failing_extractor)
	document = coordinator.process(b"data", PDF, "broken.pdf", 4, owner_id=1)
	assert document.processing_status == ProcessingStatus.FAILED
	assert document.processing_error == "corrupt file"
	assert document.extracted_text is None


def test_storage_name_keeps_extension_but_not_original_name():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	document = coordinator.process(b"data", DOCX, "My Lease.docx", None, owner_id=1)
	assert document.file_name.endswith(".docx")
	assert "Lease" not in document.file_name
	assert document.original_name == "My Lease.docx"
	with open(document.file_path, "rb") as f:
		assert f.read() == b"data"


def test_empty_payload_rejected_before_any_document():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	with pytest.raises(UploadValidationError) as exc:
		coordinator.process(b"", PDF, "empty.pdf", 0, owner_id=1)
	assert exc.value.kind == RejectionKind.EMPTY_FILE
	assert store.documents.list() == []


@pytest.mark.parametrize("content_type", [PDF, "text/plain"])
def test_oversized_payload_rejected_regardless_of_type(content_type):
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text", max_size=10)
	with pytest.raises(UploadValidationError) as exc:
		coordinator.process(b"x" * 11, content_type, "big.pdf", None, owner_id=1)
	assert exc.value.kind == RejectionKind.FILE_TOO_LARGE
	assert store.documents.list() == []


def test_declared_size_is_not_trusted():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text", max_size=10)
	with pytest.raises(UploadValidationError) as exc:
		coordinator.process(b"x" * 11, PDF, "big.pdf", 1, owner_id=1)
	assert exc.value.kind == RejectionKind.FILE_TOO_LARGE
	assert store.documents.list() == []

	# A non-empty payload declared as empty is still accepted, with its real size
	document = coordinator.process(b"x" * 4, PDF, "small.pdf", 0, owner_id=1)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.file_size == 4


def test_default_ceiling_is_fifty_mib():
	assert MAX_FILE_SIZE_BYTES == 50 * 1024 * 1024
	assert IngestionCoordinator().max_size == MAX_FILE_SIZE_BYTES


def test_unsupported_type_rejected():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	with pytest.raises(UploadValidationError) as exc:
		coordinator.process(b"hello", "text/plain", "notes.txt", None, owner_id=1)
	assert exc.value.kind == RejectionKind.UNSUPPORTED_TYPE


def test_size_exactly_at_ceiling_is_accepted():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text", max_size=10)
	document = coordinator.process(b"x" * 10, PDF, "edge.pdf", None, owner_id=1)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.file_size == 10


@pytest.mark.parametrize("name, extension", [
	("a.b/c", ""),
	("..\\..\\evil.pdf", ".pdf"),
	("contract.pdf/", ".pdf"),
	("weird.p?f", ""),
	("no_extension", ""),
])
def test_storage_name_uses_safe_extension_only(name, extension):
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	document = coordinator.process(b"data", PDF, name, None, owner_id=1)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.file_name == os.path.basename(document.file_path)
	assert document.file_name[32:] == extension
	assert document.original_name == name


def test_reprocess_overwrites_text_and_clears_error():
	texts = iter([ExtractionError("first run failed"), "second run text"])

	def _extractor(data, content_type):
		value = next(texts)
		if isinstance(value, Exception):
			raise value
		return value

	coordinator = IngestionCoordinator(extractor=_extractor)
	document = coordinator.process(b"data", PDF, "doc.pdf", None, owner_id=1)
	assert document.processing_status == ProcessingStatus.FAILED

	document = coordinator.reprocess(document)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.extracted_text == "second run text"
	assert document.processing_error is None


def test_reprocess_with_missing_file_fails():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	document = coordinator.process(b"data", PDF, "doc.pdf", None, owner_id=1)
	os.unlink(document.file_path)
	document = coordinator.reprocess(document)
	assert document.processing_status == ProcessingStatus.FAILED
	assert "could not be read" in document.processing_error


def test_terminal_state_cannot_complete_again():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	document = coordinator.process(b"data", PDF, "doc.pdf", None, owner_id=1)
	with pytest.raises(InvalidTransitionError):
		document.complete("again")


def test_extract_runs_accepted_document():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "from disk")
	document = coordinator.accept(b"data", PDF, "doc.pdf", None, owner_id=1)
	assert document.processing_status == ProcessingStatus.PENDING
	document = coordinator.extract(document.id)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.extracted_text == "from disk"
	assert coordinator.extract("missing") is None


def test_delete_document_is_idempotent_on_missing_file():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	document = coordinator.process(b"data", PDF, "doc.pdf", None, owner_id=1)
	os.unlink(document.file_path)
	coordinator.delete_document(document)
	assert store.documents.get(document.id) is None


def test_real_docx_extraction():
	from docx import Document as DocxDocument

	buffer = io.BytesIO()
	doc = DocxDocument()
	doc.add_paragraph("This Lease is made between Landlord and Tenant.")
	table = doc.add_table(rows=1, cols=2)
	table.rows[0].cells[0].text = "Rent"
	table.rows[0].cells[1].text = "1000 USD"
	doc.save(buffer)

	document = IngestionCoordinator().process(buffer.getvalue(), DOCX, "lease.docx", None, owner_id=1)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert "Landlord and Tenant" in document.extracted_text
	assert "Rent | 1000 USD" in document.extracted_text


def test_blank_pdf_fails_extraction():
	from pypdf import PdfWriter

	buffer = io.BytesIO()
	writer = PdfWriter()
	writer.add_blank_page(width=200, height=200)
	writer.write(buffer)

	blank = IngestionCoordinator().process(buffer.getvalue(), PDF, "blank.pdf", None, owner_id=1)
	assert blank.processing_status == ProcessingStatus.FAILED
	assert blank.processing_error == "No text extracted from document"


def test_legacy_doc_goes_through_tika(monkeypatch):
	calls = []

	def _from_buffer(data, serverEndpoint=None, requestOptions=None, **kwargs):
		calls.append((data, serverEndpoint, requestOptions))
		return {"status": 200, "content": "\n\n  This Agreement is made between the parties.  \n", "metadata": {}}

	monkeypatch.setenv("TIKA_SERVER_ENDPOINT", "http://tika.test:9998")
	monkeypatch.setattr("tika.parser.from_buffer", _from_buffer)
	document = IngestionCoordinator().process(b"\xd0\xcf\x11\xe0 word", "application/msword", "old.doc", None, owner_id=1)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.extracted_text == "This Agreement is made between the parties."
	assert document.file_name.endswith(".doc")
	assert calls[0][0] == b"\xd0\xcf\x11\xe0 word"
	assert calls[0][1] == "http://tika.test:9998"
	assert calls[0][2] == {"timeout": 60.0}


@pytest.mark.parametrize("reply, message", [
	({"status": 422, "content": None}, "Tika server returned status 422"),
	({"status": 200, "content": None}, "No text extracted from document"),
])
def test_legacy_doc_tika_failures(monkeypatch, reply, message):
	monkeypatch.setattr("tika.parser.from_buffer", lambda data, **kwargs: reply)
	document = IngestionCoordinator().process(b"\xd0\xcf\x11\xe0", "application/msword", "old.doc", None, owner_id=1)
	assert document.processing_status == ProcessingStatus.FAILED
	assert message in document.processing_error


def _stuck_document(coordinator, age_seconds):
	document = coordinator.accept(b"data", PDF, "stuck.pdf", None, owner_id=1)
	document.start_processing()
	document.updated_at = datetime.utcnow() - timedelta(seconds=age_seconds)
	return store.documents.save(document)


def test_fresh_processing_document_is_left_alone():
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "text")
	document = _stuck_document(coordinator, age_seconds=5)
	assert not is_stale(document)
	assert coordinator.extract(document.id).processing_status == ProcessingStatus.PROCESSING


def test_stale_processing_document_is_taken_over(monkeypatch):
	monkeypatch.setenv("STALE_PROCESSING_SECONDS", "60")
	coordinator = IngestionCoordinator(extractor=lambda data, ct: "recovered text")
	document = _stuck_document(coordinator, age_seconds=61)
	assert is_stale(document)
	document = coordinator.extract(document.id)
	assert document.processing_status == ProcessingStatus.COMPLETED
	assert document.extracted_text == "recovered text"
	assert document.processing_error is None
