import re
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

from models.clause import ClauseRecord, ImportanceLevel
from models.document import Document

logger = logging.getLogger("services.interpreter")

JSON_CONFIDENCE = 0.8
HEURISTIC_CONFIDENCE = 0.6

# A "type:" line followed, possibly many lines later, by a "text:" line;
# either label may sit behind a list marker such as "1." or "-"
_LIST_MARKER = r"(?:[-*\d.)]+[ \t]*)?"
CLAUSE_PATTERN = re.compile(
	r"^[ \t]*" + _LIST_MARKER + r"(?:clause[ \t]+type|type)[ \t]*:[ \t]*(?P<type>[^\n]+?)[ \t]*\n"
	r".*?"
	r"^[ \t]*" + _LIST_MARKER + r"(?:clause[ \t]+text|text)[ \t]*:[ \t]*(?P<text>[^\n]+?)[ \t]*(?:\n|\Z)",
	re.IGNORECASE | re.MULTILINE | re.DOTALL,
)


class ParseStatus(str, Enum):
	SUCCESS = "SUCCESS"
	PARTIAL = "PARTIAL"
	FAILURE = "FAILURE"


@dataclass
class ParseOutcome:
	strategy: str
	status: ParseStatus
	clauses: List[ClauseRecord] = field(default_factory=list)
	dropped: int = 0
	reason: Optional[str] = None

	@property
	def failed(self) -> bool:
		return self.status == ParseStatus.FAILURE


def _as_text(value: Any) -> str:
	if value is None:
		return ""
	if isinstance(value, str):
		return value
	return str(value)


def strip_code_fence(raw: str) -> str:
	cleaned = raw.strip()
	if cleaned.startswith("```json"):
		cleaned = cleaned[7:]
	elif cleaned.startswith("```"):
		cleaned = cleaned[3:]
	if cleaned.endswith("```"):
		cleaned = cleaned[:-3]
	return cleaned.strip()


class JsonArrayStrategy:
	name = "json_array"

	def parse(self, raw: str, document_id: str) -> ParseOutcome:
		try:
			data = json.loads(strip_code_fence(raw))
		except (json.JSONDecodeError, TypeError) as e:
			return ParseOutcome(self.name, ParseStatus.FAILURE, reason=f"not valid JSON: {e}")
		if not isinstance(data, list):
			return ParseOutcome(self.name, ParseStatus.FAILURE, reason=f"expected a JSON array, got {type(data).__name__}")

		clauses: List[ClauseRecord] = []
		dropped = 0
		for index, element in enumerate(data):
			if not isinstance(element, dict):
				dropped += 1
				logger.warning("clause_element_dropped", extra={"doc_id": document_id, "index": index, "error": "not an object"})
				continue
			importance_raw = element.get("importance")
			importance_label = "MEDIUM" if importance_raw is None else _as_text(importance_raw)
			try:
				importance = ImportanceLevel.parse(importance_label)
			except ValueError:
				dropped += 1
				logger.warning(
					"clause_element_dropped",
					extra={"doc_id": document_id, "index": index, "error": f"unknown importance {importance_label!r}"},
				)
				continue
			clauses.append(
				ClauseRecord(
					document_id=document_id,
					clause_type=_as_text(element.get("clauseType")),
					clause_text=_as_text(element.get("clauseText")),
					plain_english_explanation=_as_text(element.get("explanation")),
					importance_level=importance,
					confidence_score=JSON_CONFIDENCE,
				)
			)
		status = ParseStatus.PARTIAL if dropped else ParseStatus.SUCCESS
		return ParseOutcome(self.name, status, clauses, dropped=dropped)


class HeuristicStrategy:
	name = "heuristic"

	def parse(self, raw: str, document_id: str) -> ParseOutcome:
		clauses = [
			ClauseRecord(
				document_id=document_id,
				clause_type=match.group("type").strip(),
				clause_text=match.group("text").strip(),
				importance_level=ImportanceLevel.MEDIUM,
				confidence_score=HEURISTIC_CONFIDENCE,
			)
			for match in CLAUSE_PATTERN.finditer(raw or "")
		]
		if not clauses:
			return ParseOutcome(self.name, ParseStatus.FAILURE, reason="no type/text pairs found")
		return ParseOutcome(self.name, ParseStatus.SUCCESS, clauses)


DEFAULT_STRATEGIES = (JsonArrayStrategy(), HeuristicStrategy())


def locate_offsets(clause: ClauseRecord, source_text: Optional[str]) -> None:
	if not source_text or not clause.clause_text:
		return
	start = source_text.find(clause.clause_text)
	if start >= 0:
		clause.start_position = start
		clause.end_position = start + len(clause.clause_text)


class ResponseInterpreter:
	"""Turns raw AI replies into analysis results or clause records."""

	def __init__(self, strategies: Sequence = DEFAULT_STRATEGIES):
		self.strategies = list(strategies)

	def single_result(self, raw: str) -> str:
		return raw

	def parse_clauses(self, raw: str, document: Document, analysis_id: Optional[str] = None) -> ParseOutcome:
		"""
		Run the strategies in order and return the first outcome that did not fail.
		When every strategy fails the last outcome is returned with no clauses.
		"""
		outcome = ParseOutcome("none", ParseStatus.FAILURE, reason="no strategies configured")
		for strategy in self.strategies:
			outcome = strategy.parse(raw, document.id)
			if not outcome.failed:
				break
			logger.info(
				"clause_parse_fallback",
				extra={"doc_id": document.id, "strategy": strategy.name, "error": outcome.reason},
			)

		for clause in outcome.clauses:
			clause.analysis_id = analysis_id
			locate_offsets(clause, document.extracted_text)

		logger.info(
			"clauses_parsed",
			extra={"doc_id": document.id, "strategy": outcome.strategy, "parse_status": outcome.status.value, "clauses": len(outcome.clauses), "dropped": outcome.dropped},
		)
		return outcome
