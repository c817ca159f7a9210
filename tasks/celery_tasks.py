from .celery_app import celery_app
import logging

from services.analysis import AnalysisPipeline
from services.ingestion import IngestionCoordinator

logger = logging.getLogger("tasks.pipeline")


@celery_app.task(name="tasks.process_document")
def process_document_task(document_id):
	"""Extract text for an accepted document; returns the final status or None."""
	logger.info("task_started", extra={"task": "process_document", "doc_id": document_id})
	document = IngestionCoordinator().extract(document_id)
	if document is None:
		return None
	logger.info("task_completed", extra={"task": "process_document", "doc_id": document_id, "status": document.processing_status.value})
	return document.processing_status.value


@celery_app.task(name="tasks.run_analysis")
def run_analysis_task(analysis_id):
	"""Call the AI endpoint for a PENDING analysis and record the outcome."""
	logger.info("task_started", extra={"task": "run_analysis", "analysis_id": analysis_id})
	record = AnalysisPipeline().run(analysis_id)
	if record is None:
		return None
	logger.info("task_completed", extra={"task": "run_analysis", "analysis_id": analysis_id, "status": record.status.value})
	return record.status.value
