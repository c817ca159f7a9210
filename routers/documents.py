from fastapi import APIRouter, UploadFile, File, HTTPException, Query, Security
from models.document import Document, DocumentResponse, ProcessingStatus
from models.response import Page
from utils.response import api_response
from typing import Optional
from services.ingestion import IngestionCoordinator, is_stale
from tasks.celery_tasks import process_document_task
from utils.jwt import get_current_user_id
from utils import store
import logging

router = APIRouter(prefix="/documents", tags=["documents"])
logger = logging.getLogger("api.documents")


def get_owned_document(document_id: str, user_id: int) -> Document:
	"""Fetch a document scoped to its owner; other owners' documents are reported as missing."""
	document = store.documents.get(document_id)
	if document is None or document.owner_id != user_id:
		raise HTTPException(status_code=404, detail="Document not found")
	return document


def _matches(document: Document, term: str) -> bool:
	term = term.lower()
	return term in document.original_name.lower() or term in (document.extracted_text or "").lower()


@router.post("/upload")
async def upload_document(
	file: UploadFile = File(...),
	user_id: int = Security(get_current_user_id),
):
	content = await file.read()
	coordinator = IngestionCoordinator()
	document = coordinator.accept(content, file.content_type, file.filename or "upload", file.size, user_id)

	# Extraction runs on a worker; clients poll GET /documents/{id} for the outcome
	process_document_task.delay(document.id)
	document = store.documents.get(document.id) or document

	return api_response(
		data=DocumentResponse.from_document(document).model_dump(mode="json"),
		message="File uploaded successfully. Text extraction triggered.",
		status_code=201,
	)


@router.get("")
def list_documents(
	user_id: int = Security(get_current_user_id),
	search: Optional[str] = Query(None, description="Match on file name or extracted text"),
	offset: int = Query(0, ge=0),
	limit: int = Query(10, ge=1, le=100),
):
	term = search.strip() if search else ""
	owned = store.documents.list(lambda d: d.owner_id == user_id and (not term or _matches(d, term)))
	owned.sort(key=lambda d: d.created_at, reverse=True)
	items = [DocumentResponse.from_document(d).model_dump(mode="json") for d in owned[offset:offset + limit]]
	logger.info("documents_listed", extra={"returned": len(items), "total": len(owned), "offset": offset, "limit": limit})
	return api_response(
		data=Page(items=items, total=len(owned), offset=offset, limit=limit).model_dump(mode="json"),
		message="Documents fetched successfully.",
	)


@router.get("/{document_id}")
def get_document(document_id: str, user_id: int = Security(get_current_user_id)):
	document = get_owned_document(document_id, user_id)
	return api_response(data=DocumentResponse.from_document(document).model_dump(mode="json"), message="Document fetched successfully.")


@router.post("/{document_id}/reprocess")
def reprocess_document(document_id: str, user_id: int = Security(get_current_user_id)):
	document = get_owned_document(document_id, user_id)
	if document.processing_status == ProcessingStatus.PROCESSING and not is_stale(document):
		raise HTTPException(status_code=409, detail="Document is already being processed")
	logger.info("reprocess_requested", extra={"doc_id": document_id})
	process_document_task.delay(document.id)
	document = store.documents.get(document.id) or document
	return api_response(data=DocumentResponse.from_document(document).model_dump(mode="json"), message="Document reprocessing triggered.")


@router.delete("/{document_id}")
def delete_document(document_id: str, user_id: int = Security(get_current_user_id)):
	document = get_owned_document(document_id, user_id)
	IngestionCoordinator().delete_document(document)
	logger.info("document_deleted", extra={"doc_id": document_id})
	return api_response(data=None, message="Document deleted successfully")
