import logging
from typing import List, Optional

from models.analysis import AnalysisRecord, AnalysisStatus, AnalysisType
from models.clause import ClauseRecord
from models.document import Document
from services import prompts
from services.gateway import GeminiGateway
from services.interpreter import ResponseInterpreter
from utils import store
from utils.errors import AppError, DocumentNotReadyError, GatewayError
from utils.logging_config import hash_text

logger = logging.getLogger("services.analysis")


def _document_text(document: Document) -> str:
	if not document.has_extracted_text:
		raise DocumentNotReadyError(
			f"Document {document.id} has no extracted text (status {document.processing_status.value})"
		)
	return document.extracted_text


class AnalysisPipeline:
	"""
	Prompt Builder -> AI Gateway -> Response Interpreter -> Store.

	Each operation is split into begin_* (build the prompt and persist a PENDING
	record) and run() (call the gateway and finish the record) so the HTTP layer
	can hand run() to a worker. The synchronous operations do both in one call.
	Expected failures end up on the record as FAILED; they are never raised.
	"""

	def __init__(self, gateway=None, interpreter: Optional[ResponseInterpreter] = None):
		self.gateway = gateway or GeminiGateway()
		self.interpreter = interpreter or ResponseInterpreter()

	# -- begin: persist a PENDING (or already FAILED) record -----------------

	def _begin(self, analysis_type: AnalysisType, owner_id: int, document: Optional[Document] = None, question: Optional[str] = None, **inputs) -> AnalysisRecord:
		record = AnalysisRecord(
			analysis_type=analysis_type,
			owner_id=owner_id,
			document_id=document.id if document is not None else None,
			question=question,
		)
		try:
			if document is not None:
				inputs["document_text"] = _document_text(document)
			if question is not None:
				inputs["question"] = question
			record.prompt = prompts.build_prompt(analysis_type, **inputs)
		except AppError as e:
			record.fail(e.message)
			logger.warning("analysis_rejected", extra={"analysis_id": record.id, "doc_id": record.document_id, "error": e.message})
		store.analyses.save(record)
		logger.info(
			"analysis_created",
			extra={"analysis_id": record.id, "doc_id": record.document_id, "analysis_type": analysis_type.value, "status": record.status.value},
		)
		return record

	def begin_summary(self, document: Document) -> AnalysisRecord:
		return self._begin(AnalysisType.SUMMARY, document.owner_id, document)

	def begin_question(self, document: Document, question: str) -> AnalysisRecord:
		logger.info("question_received", extra={"doc_id": document.id, "question_hash": hash_text(question)})
		return self._begin(AnalysisType.QUESTION_ANSWER, document.owner_id, document, question=question)

	def begin_template(self, template_type: str, requirements: str, owner_id: int) -> AnalysisRecord:
		return self._begin(AnalysisType.TEMPLATE_GENERATION, owner_id, template_type=template_type, requirements=requirements)

	def begin_clause_extraction(self, document: Document) -> AnalysisRecord:
		return self._begin(AnalysisType.CLAUSE_EXTRACTION, document.owner_id, document)

	# -- run: gateway call and interpretation --------------------------------

	def _extract_and_store(self, record: AnalysisRecord, raw: str) -> List[ClauseRecord]:
		document = store.documents.get(record.document_id)
		if document is None:
			raise DocumentNotReadyError(f"Document {record.document_id} no longer exists")
		outcome = self.interpreter.parse_clauses(raw, document, analysis_id=record.id)
		saved = store.clauses.save_all(outcome.clauses)
		record.confidence_score = outcome.clauses[0].confidence_score if outcome.clauses else None
		record.complete(f"Extracted {len(saved)} clauses ({outcome.strategy}, {outcome.status.value.lower()})")
		return saved

	def run(self, analysis_id: str) -> Optional[AnalysisRecord]:
		record = store.analyses.get(analysis_id)
		if record is None:
			logger.warning("analysis_missing", extra={"analysis_id": analysis_id})
			return None
		self._execute(record)
		return record

	def _execute(self, record: AnalysisRecord) -> List[ClauseRecord]:
		# Finished, or already picked up by another worker
		if record.status != AnalysisStatus.PENDING:
			return []
		record.start_processing()
		store.analyses.save(record)

		produced: List[ClauseRecord] = []
		try:
			raw = self.gateway.invoke(record.prompt)
			if record.analysis_type == AnalysisType.CLAUSE_EXTRACTION:
				produced = self._extract_and_store(record, raw)
			else:
				result = self.interpreter.single_result(raw)
				if not result or not result.strip():
					raise GatewayError("Gemini API returned an empty response")
				record.complete(result)
		except AppError as e:
			record.fail(e.message)
			logger.error("analysis_failed", extra={"analysis_id": record.id, "doc_id": record.document_id, "error": e.message})
		except Exception as e:
			record.fail(f"Unexpected error during analysis: {e}")
			logger.error("analysis_failed", extra={"analysis_id": record.id, "doc_id": record.document_id}, exc_info=True)
		else:
			logger.info("analysis_completed", extra={"analysis_id": record.id, "doc_id": record.document_id, "analysis_type": record.analysis_type.value})
		store.analyses.save(record)
		return produced

	# -- synchronous operations ----------------------------------------------

	def summarize(self, document: Document) -> AnalysisRecord:
		record = self.begin_summary(document)
		self._execute(record)
		return record

	def answer_question(self, document: Document, question: str) -> AnalysisRecord:
		record = self.begin_question(document, question)
		self._execute(record)
		return record

	def generate_template(self, template_type: str, requirements: str, owner_id: int) -> AnalysisRecord:
		record = self.begin_template(template_type, requirements, owner_id)
		self._execute(record)
		return record

	def extract_clauses(self, document: Document) -> List[ClauseRecord]:
		"""Extract, persist and return clauses; any failure yields an empty list."""
		record = self.begin_clause_extraction(document)
		clauses = self._execute(record)
		if record.status == AnalysisStatus.FAILED:
			logger.warning("clause_extraction_empty", extra={"doc_id": document.id, "error": record.error_message})
		return clauses


def list_analyses(document_id: str) -> List[AnalysisRecord]:
	items = store.analyses.list_by(document_id=document_id)
	return sorted(items, key=lambda a: a.created_at, reverse=True)


def list_clauses(document_id: str) -> List[ClauseRecord]:
	items = store.clauses.list_by(document_id=document_id)
	return sorted(items, key=lambda c: (c.importance_level.rank, c.created_at), reverse=True)
