import os
import fcntl
from pathlib import Path
from typing import Callable, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
import logging

from models.analysis import AnalysisRecord
from models.clause import ClauseRecord
from models.document import Document

logger = logging.getLogger("store")

T = TypeVar("T", bound=BaseModel)


def _state_dir() -> Path:
	return Path(os.getenv("STATE_DIR", "state")).resolve()


class JsonStore(Generic[T]):
	"""
	File-backed key-value store: one JSON file per entity under STATE_DIR/<name>/.
	Shared between the API process and Celery workers, guarded by flock.
	"""

	def __init__(self, name: str, model: Type[T]):
		self.name = name
		self.model = model

	def _dir(self) -> Path:
		path = _state_dir() / self.name
		path.mkdir(parents=True, exist_ok=True)
		return path

	def _path(self, entity_id: str) -> Path:
		return self._dir() / f"{entity_id}.json"

	def save(self, entity: T) -> T:
		path = self._path(entity.id)
		with open(path, "a+", encoding="utf-8") as f:
			fcntl.flock(f.fileno(), fcntl.LOCK_EX)
			f.seek(0)
			f.truncate(0)
			f.write(entity.model_dump_json())
			f.flush()
			fcntl.flock(f.fileno(), fcntl.LOCK_UN)
		return entity

	def save_all(self, entities: Iterable[T]) -> List[T]:
		return [self.save(e) for e in entities]

	def get(self, entity_id: str) -> Optional[T]:
		try:
			with open(self._path(entity_id), "r", encoding="utf-8") as f:
				fcntl.flock(f.fileno(), fcntl.LOCK_SH)
				raw = f.read()
				fcntl.flock(f.fileno(), fcntl.LOCK_UN)
		except FileNotFoundError:
			return None
		if not raw:
			# Created by a writer that has not written yet
			return None
		return self.model.model_validate_json(raw)

	def delete(self, entity: T) -> None:
		try:
			self._path(entity.id).unlink()
		except FileNotFoundError:
			pass

	def list(self, predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
		items: List[T] = []
		for path in sorted(self._dir().glob("*.json")):
			entity = self.get(path.stem)
			if entity is None:
				# Removed between glob and read
				continue
			if predicate is None or predicate(entity):
				items.append(entity)
		return items

	def list_by(self, **fields) -> List[T]:
		return self.list(lambda e: all(getattr(e, k) == v for k, v in fields.items()))


documents: JsonStore[Document] = JsonStore("documents", Document)
analyses: JsonStore[AnalysisRecord] = JsonStore("analyses", AnalysisRecord)
clauses: JsonStore[ClauseRecord] = JsonStore("clauses", ClauseRecord)


def delete_document_cascade(document: Document) -> None:
	"""Delete a document together with the clauses and analyses that reference it."""
	removed_clauses = clauses.list_by(document_id=document.id)
	for clause in removed_clauses:
		clauses.delete(clause)
	removed_analyses = analyses.list_by(document_id=document.id)
	for analysis in removed_analyses:
		analyses.delete(analysis)
	documents.delete(document)
	logger.info(
		"document_cascade_deleted",
		extra={"doc_id": document.id, "clauses": len(removed_clauses), "analyses": len(removed_analyses)},
	)
