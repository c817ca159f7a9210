import json
import logging

from fastapi.testclient import TestClient
from utils.logging_config import (
	ContextFilter,
	JsonFormatter,
	bind_task_context,
	correlation_id_ctx,
	release_task_context,
)


def _format(**extra):
	record = logging.LogRecord("tasks.pipeline", logging.INFO, __file__, 1, "task_started", None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	ContextFilter().filter(record)
	return json.loads(JsonFormatter().format(record))


def test_worker_task_id_becomes_correlation_id():
	bind_task_context("task-123")
	try:
		payload = _format(doc_id="d1", task="process_document")
	finally:
		release_task_context("task-123")
	assert payload["correlation_id"] == "task-123"
	assert payload["doc_id"] == "d1"
	assert correlation_id_ctx.get() is None


def test_inline_task_keeps_request_correlation_id():
	token = correlation_id_ctx.set("req-1")
	try:
		bind_task_context("task-456")
		assert _format()["correlation_id"] == "req-1"
		release_task_context("task-456")
		assert correlation_id_ctx.get() == "req-1"
	finally:
		correlation_id_ctx.reset(token)


def test_request_id_is_echoed(app_client: TestClient):
	resp = app_client.get("/", headers={"X-Request-ID": "abc123"})
	assert resp.headers["X-Request-ID"] == "abc123"
