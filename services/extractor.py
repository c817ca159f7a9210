import io
import os
import logging

from utils.errors import ExtractionError

logger = logging.getLogger("services.extractor")

PDF = "application/pdf"
MSWORD = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _extract_pdf(data: bytes) -> str:
	from pypdf import PdfReader
	reader = PdfReader(io.BytesIO(data))
	text = ""
	for page in reader.pages:
		text += (page.extract_text() or "") + "\n"
	return text


def _extract_docx(data: bytes) -> str:
	from docx import Document as DocxDocument
	doc = DocxDocument(io.BytesIO(data))
	paragraphs = [p.text for p in doc.paragraphs if p.text.strip()]
	text = "\n\n".join(paragraphs)
	# Table cells are not part of doc.paragraphs
	for table in doc.tables:
		for row in table.rows:
			row_text = " | ".join(cell.text.strip() for cell in row.cells)
			if row_text.strip(" |"):
				text += "\n" + row_text
	return text


def _extract_doc(data: bytes) -> str:
	"""Legacy Word binaries go through an Apache Tika server (TIKA_SERVER_ENDPOINT)."""
	from tika import parser as tika_parser
	parsed = tika_parser.from_buffer(
		data,
		serverEndpoint=os.getenv("TIKA_SERVER_ENDPOINT", "http://localhost:9998"),
		requestOptions={"timeout": float(os.getenv("TIKA_TIMEOUT_SECONDS", "60"))},
	)
	status = parsed.get("status")
	if status is not None and status != 200:
		raise ExtractionError(f"Tika server returned status {status}")
	return parsed.get("content") or ""


def extract_text(data: bytes, content_type: str) -> str:
	"""Convert raw file bytes of a declared content type into trimmed plain text."""
	if content_type == PDF:
		parser = _extract_pdf
	elif content_type == DOCX:
		parser = _extract_docx
	elif content_type == MSWORD:
		parser = _extract_doc
	else:
		raise ExtractionError(f"No text extractor for content type {content_type}")

	try:
		text = parser(data)
	except Exception as e:
		logger.warning("extractor_parse_failed", extra={"content_type": content_type, "error": str(e)})
		raise ExtractionError(f"Failed to extract text from file: {e}", original_error=e)

	text = (text or "").strip()
	if not text:
		raise ExtractionError("No text extracted from document")
	return text
