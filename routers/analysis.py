from fastapi import APIRouter, HTTPException, Security
from models.analysis import AnalysisRecord, AnalysisResponse, QuestionRequest, TemplateRequest
from models.clause import ClauseResponse
from routers.documents import get_owned_document
from services.analysis import AnalysisPipeline, list_analyses, list_clauses
from tasks.celery_tasks import run_analysis_task
from utils.jwt import get_current_user_id
from utils.response import api_response
from utils import store
import logging

router = APIRouter(prefix="/ai", tags=["ai"])
logger = logging.getLogger("api.ai")


def _dispatch(record: AnalysisRecord) -> AnalysisRecord:
	"""Hand a PENDING analysis to a worker and return its latest persisted state."""
	if not record.is_finished:
		run_analysis_task.delay(record.id)
	return store.analyses.get(record.id) or record


def _analysis_response(record: AnalysisRecord, message: str, **data):
	# 200 once finished, 202 while a worker still owns it
	status_code = 200 if record.is_finished else 202
	payload = AnalysisResponse.from_record(record).model_dump(mode="json")
	if data:
		payload = {"analysis": payload, **data}
	return api_response(data=payload, message=message, status_code=status_code)


@router.post("/documents/{document_id}/summarize")
def summarize_document(document_id: str, user_id: int = Security(get_current_user_id)):
	document = get_owned_document(document_id, user_id)
	record = _dispatch(AnalysisPipeline().begin_summary(document))
	return _analysis_response(record, "Summary requested.")


@router.post("/documents/{document_id}/extract-clauses")
def extract_clauses(document_id: str, user_id: int = Security(get_current_user_id)):
	document = get_owned_document(document_id, user_id)
	record = _dispatch(AnalysisPipeline().begin_clause_extraction(document))
	produced = [c for c in list_clauses(document_id) if c.analysis_id == record.id]
	return _analysis_response(
		record,
		"Clause extraction requested.",
		clauses=[ClauseResponse.from_record(c).model_dump(mode="json") for c in produced],
	)


@router.post("/documents/{document_id}/question")
def ask_question(document_id: str, request: QuestionRequest, user_id: int = Security(get_current_user_id)):
	document = get_owned_document(document_id, user_id)
	record = _dispatch(AnalysisPipeline().begin_question(document, request.question))
	return _analysis_response(record, "Question submitted.")


@router.post("/templates/generate")
def generate_template(request: TemplateRequest, user_id: int = Security(get_current_user_id)):
	record = _dispatch(AnalysisPipeline().begin_template(request.template_type, request.requirements, user_id))
	return _analysis_response(record, "Template generation requested.")


@router.get("/analyses/{analysis_id}")
def get_analysis(analysis_id: str, user_id: int = Security(get_current_user_id)):
	record = store.analyses.get(analysis_id)
	if record is None or record.owner_id != user_id:
		raise HTTPException(status_code=404, detail="Analysis not found")
	return api_response(data=AnalysisResponse.from_record(record).model_dump(mode="json"), message="Analysis fetched successfully.")


@router.get("/documents/{document_id}/analyses")
def get_document_analyses(document_id: str, user_id: int = Security(get_current_user_id)):
	get_owned_document(document_id, user_id)
	items = [AnalysisResponse.from_record(a).model_dump(mode="json") for a in list_analyses(document_id)]
	return api_response(data=items, message="Analyses fetched successfully.")


@router.get("/documents/{document_id}/clauses")
def get_document_clauses(document_id: str, user_id: int = Security(get_current_user_id)):
	get_owned_document(document_id, user_id)
	items = [ClauseResponse.from_record(c).model_dump(mode="json") for c in list_clauses(document_id)]
	return api_response(data=items, message="Clauses fetched successfully.")
