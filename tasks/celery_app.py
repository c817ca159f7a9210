from celery import Celery
from celery.signals import task_postrun, task_prerun
import os
from utils.logging_config import bind_task_context, init_worker_logging, release_task_context

CELERY_BROKER_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

celery_app = Celery(
    "legal_document_assistant",
    broker=CELERY_BROKER_URL,
    backend=CELERY_BROKER_URL,
    include=["tasks.celery_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Run tasks inline (tests, single-process deployments)
    task_always_eager=os.getenv("CELERY_TASK_ALWAYS_EAGER", "0") == "1",
    task_acks_late=False,
)


@task_prerun.connect
def _on_task_prerun(task_id=None, **kwargs):
    bind_task_context(task_id)


@task_postrun.connect
def _on_task_postrun(task_id=None, **kwargs):
    release_task_context(task_id)


init_worker_logging()
